from dataclasses import dataclass

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from .identity import canonical_id
from .jwt_handler import verify_access_token

# Defines the expected header format (Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def get_current_user(request: Request, token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Dependency to validate JWT and return the caller's identity."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    settings = request.app.state.settings
    payload = verify_access_token(token, settings.jwt_secret_key, settings.jwt_algorithm)
    if payload is None:
        raise credentials_exception

    user_id = canonical_id(payload.get("sub"))
    if user_id is None:
        raise credentials_exception

    structlog.contextvars.bind_contextvars(user_id=user_id)
    return CurrentUser(id=user_id, role=payload.get("role") or "user")


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator privileges required",
        )
    return user
