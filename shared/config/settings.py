import os
import warnings
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

_INSECURE_JWT_SECRET = "insecure-default-change-me"


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _default_database_url() -> str:
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    host = os.getenv("POSTGRES_HOST", "localhost")  # In Docker, this will be 'postgres'
    port = os.getenv("POSTGRES_PORT", "5433")
    name = os.getenv("POSTGRES_DB", "ecommerce")
    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"


@dataclass(frozen=True)
class Settings:
    database_url: str
    db_echo: bool = False
    create_tables: bool = True
    jwt_secret_key: str = _INSECURE_JWT_SECRET
    jwt_algorithm: str = "HS256"
    toss_secret_key: str | None = None
    toss_api_url: str = "https://api.tosspayments.com/v1/payments"
    payment_gateway_timeout: float = 10.0
    otlp_endpoint: str | None = None
    metrics_enabled: bool = True
    service_name: str = "checkout_service"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        jwt_secret = os.getenv("JWT_SECRET_KEY", "")
        if not jwt_secret:
            warnings.warn(
                "JWT_SECRET_KEY is not set. Using an insecure default. "
                "Set this env var in production!",
                stacklevel=2,
            )
            jwt_secret = _INSECURE_JWT_SECRET

        return cls(
            database_url=os.getenv("DATABASE_URL") or _default_database_url(),
            db_echo=_as_bool(os.getenv("DB_ECHO"), False),
            create_tables=_as_bool(os.getenv("CREATE_TABLES"), True),
            jwt_secret_key=jwt_secret,
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            toss_secret_key=os.getenv("TOSS_SECRET_KEY") or None,
            toss_api_url=os.getenv("TOSS_API_URL", cls.toss_api_url),
            payment_gateway_timeout=float(os.getenv("PAYMENT_GATEWAY_TIMEOUT", "10")),
            otlp_endpoint=os.getenv("OTLP_ENDPOINT") or None,
            metrics_enabled=_as_bool(os.getenv("METRICS_ENABLED"), True),
            service_name=os.getenv("SERVICE_NAME", "checkout_service"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
