from typing import Optional

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import Database, get_db
from shared.config.settings import Settings
from shared.errors import AppError, InternalError
from shared.observability import setup_observability

# IMPORTANT: import models so they register with Base
from services.product_service import models as product_models  # noqa: F401
from services.cart_service import models as cart_models  # noqa: F401
from services.order_service import models as order_models  # noqa: F401
from services.payment_service import models as payment_models  # noqa: F401

from services.product_service.router import router as product_router, admin_router as product_admin_router
from services.cart_service.router import router as cart_router
from services.order_service.router import router as order_router, admin_router as order_admin_router
from services.payment_service.router import router as payment_router
from services.payment_service.gateway import PaymentGateway, TossPaymentsGateway

logger = structlog.get_logger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "error": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": jsonable_errors(exc),
            },
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        return JSONResponse(status_code=500, content=InternalError("Internal server error").to_dict())


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[PaymentGateway] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()

    app = FastAPI(title="Checkout Service", version="1.0.0")
    app.state.settings = settings
    app.state.db = database or Database(settings.database_url, echo=settings.db_echo)
    app.state.gateway = gateway or TossPaymentsGateway(
        settings.toss_secret_key,
        settings.toss_api_url,
        timeout=settings.payment_gateway_timeout,
    )

    # --- OBSERVABILITY BOOTSTRAP ---
    setup_observability(app, settings)
    register_exception_handlers(app)

    app.include_router(product_router)
    app.include_router(product_admin_router)
    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(order_admin_router)
    app.include_router(payment_router)

    @app.get("/api/health")
    async def health_check(db: AsyncSession = Depends(get_db)):
        result = await db.execute(text("SELECT CURRENT_TIMESTAMP"))
        return {"status": "ok", "db_time": str(result.scalar_one())}

    @app.on_event("startup")
    async def startup_event():
        if settings.create_tables:
            await app.state.db.create_all()
        logger.info("service_started", service=settings.service_name)

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.gateway.aclose()
        await app.state.db.dispose()

    return app
