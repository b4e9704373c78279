"""Firebase service module for authentication"""

from app.services.firebase.firebase_config import (
    get_firebase_app,
    initialize_firebase,
    is_firebase_initialized,
)
from app.services.firebase.firebase_auth import (
    TokenData,
    authenticate_request,
    exchange_code_for_session,
    find_user,
    get_current_user,
    get_current_user_or_create,
    get_optional_user,
    get_or_create_user,
    verify_session_cookie_async,
    verify_token_async,
)

__all__ = [
    "get_firebase_app",
    "initialize_firebase",
    "is_firebase_initialized",
    "TokenData",
    "authenticate_request",
    "exchange_code_for_session",
    "find_user",
    "get_current_user",
    "get_current_user_or_create",
    "get_optional_user",
    "get_or_create_user",
    "verify_session_cookie_async",
    "verify_token_async",
]
