from .jwt_handler import create_access_token, verify_access_token
from .identity import canonical_id, same_identity
from .dependencies import CurrentUser, get_current_user, require_admin

__all__ = [
    "create_access_token",
    "verify_access_token",
    "canonical_id",
    "same_identity",
    "CurrentUser",
    "get_current_user",
    "require_admin",
]
