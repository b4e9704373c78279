"""Firebase authentication: ID tokens, session cookies and user dependencies"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Tuple

from fastapi import Depends, HTTPException, Request
from firebase_admin import auth
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db import get_db
from app.models.user import User
from app.services.firebase.firebase_config import get_firebase_app
from app.services.trial import trial_service
from app.utils.sentry_utils import set_user_context

logger = logging.getLogger(__name__)


@dataclass
class TokenData:
    """Decoded Firebase token data"""

    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    email_verified: bool = False


def _token_data(decoded_token: dict) -> TokenData:
    return TokenData(
        uid=decoded_token["uid"],
        email=decoded_token.get("email"),
        name=decoded_token.get("name"),
        email_verified=decoded_token.get("email_verified", False),
    )


async def verify_token_async(id_token: str) -> TokenData:
    """
    Verify a Firebase ID token without blocking the event loop.

    Raises:
        HTTPException: If token verification fails
    """
    get_firebase_app()

    try:
        decoded_token = await asyncio.to_thread(auth.verify_id_token, id_token)
        return _token_data(decoded_token)
    except auth.ExpiredIdTokenError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except auth.RevokedIdTokenError:
        raise HTTPException(status_code=401, detail="Token has been revoked")
    except auth.InvalidIdTokenError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {str(e)}")
    except Exception as e:
        logger.error(f"Token verification failed: {e}")
        raise HTTPException(status_code=401, detail="Authentication failed")


async def verify_session_cookie_async(session_cookie: str) -> TokenData:
    """
    Verify a Firebase session cookie minted by the sign-in callback.

    Raises:
        HTTPException: If the cookie is expired, revoked or invalid
    """
    get_firebase_app()

    try:
        decoded = await asyncio.to_thread(auth.verify_session_cookie, session_cookie, True)
        return _token_data(decoded)
    except auth.ExpiredSessionCookieError:
        raise HTTPException(status_code=401, detail="Session has expired")
    except auth.RevokedSessionCookieError:
        raise HTTPException(status_code=401, detail="Session has been revoked")
    except auth.InvalidSessionCookieError as e:
        raise HTTPException(status_code=401, detail=f"Invalid session: {str(e)}")
    except Exception as e:
        logger.error(f"Session cookie verification failed: {e}")
        raise HTTPException(status_code=401, detail="Authentication failed")


async def exchange_code_for_session(code: str) -> Tuple[TokenData, str]:
    """
    Exchange the one-time code from the sign-in page for a session cookie.

    The code is a freshly issued Firebase ID token.

    Returns:
        Tuple of (token data, session cookie value)

    Raises:
        HTTPException: If the code is not a valid ID token
        firebase_admin.auth.FirebaseError: If Firebase refuses to mint the cookie
    """
    token_data = await verify_token_async(code)
    session_cookie = await asyncio.to_thread(
        auth.create_session_cookie,
        code,
        expires_in=timedelta(days=settings.session_cookie_days),
    )
    return token_data, session_cookie


def get_token_from_header(request: Request) -> Optional[str]:
    """Bearer token from the Authorization header, None when absent."""
    auth_header = request.headers.get("Authorization")

    if not auth_header:
        return None

    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=401, detail="Invalid authorization header format. Expected 'Bearer <token>'"
        )

    return auth_header.split("Bearer ")[1]


async def authenticate_request(request: Request) -> TokenData:
    """
    Resolve the caller from the Bearer token, falling back to the session cookie.

    Raises:
        HTTPException: If neither credential is present or valid
    """
    token = get_token_from_header(request)
    if token:
        token_data = await verify_token_async(token)
    else:
        session_cookie = request.cookies.get(settings.session_cookie_name)
        if not session_cookie:
            raise HTTPException(status_code=401, detail="Not authenticated")
        token_data = await verify_session_cookie_async(session_cookie)

    if not token_data.email:
        raise HTTPException(status_code=401, detail="Email not found in token")

    return token_data


async def find_user(token_data: TokenData, db: AsyncSession) -> Optional[User]:
    """Look up the user by Firebase UID, then by email (relinking the UID)."""
    result = await db.execute(select(User).where(User.firebase_uid == token_data.uid))
    user = result.scalar_one_or_none()

    if not user and token_data.email:
        result = await db.execute(select(User).where(User.email == token_data.email))
        user = result.scalar_one_or_none()

        if user:
            # Same email signed in through a different Firebase account
            user.firebase_uid = token_data.uid
            await db.commit()

    if user and user.is_deleted:
        return None
    return user


async def get_or_create_user(token_data: TokenData, db: AsyncSession) -> Tuple[User, bool]:
    """
    Find the user for ``token_data``, creating it on first sign-in.

    A new user gets their trial window in the same transaction.

    Returns:
        Tuple of (user, created)

    Raises:
        HTTPException: If the account has been deleted
    """
    result = await db.execute(select(User).where(User.firebase_uid == token_data.uid))
    existing = result.scalar_one_or_none()
    if existing is None and token_data.email:
        result = await db.execute(select(User).where(User.email == token_data.email))
        existing = result.scalar_one_or_none()

    if existing is not None:
        if existing.is_deleted:
            raise HTTPException(status_code=401, detail="Account has been deleted")
        if existing.firebase_uid != token_data.uid:
            existing.firebase_uid = token_data.uid
            await db.commit()
        return existing, False

    user = User(
        firebase_uid=token_data.uid,
        email=token_data.email,
        name=token_data.name,
    )
    db.add(user)
    await db.flush()

    db.add(trial_service.build_trial(user.id))
    await db.commit()
    await db.refresh(user)

    logger.info(f"Created user {user.id} with {trial_service.duration_hours}h trial")
    return user, True


async def get_current_user(
    request: Request, db: AsyncSession = Depends(get_db)
) -> User:
    """
    FastAPI dependency to get the current authenticated user.

    Soft-deleted and unknown users are rejected with 401.
    """
    token_data = await authenticate_request(request)
    user = await find_user(token_data, db)

    if not user:
        raise HTTPException(status_code=401, detail="User not found. Please sign in again.")

    set_user_context(user.id, user.email)
    return user


async def get_current_user_or_create(
    request: Request, db: AsyncSession = Depends(get_db)
) -> User:
    """FastAPI dependency like get_current_user, but provisions first-time users."""
    token_data = await authenticate_request(request)
    user, _ = await get_or_create_user(token_data, db)

    set_user_context(user.id, user.email)
    return user


async def get_optional_user(
    request: Request, db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """
    FastAPI dependency to optionally get the current user.

    Returns None instead of raising when the caller is not signed in.
    """
    try:
        token_data = await authenticate_request(request)
    except HTTPException:
        return None

    return await find_user(token_data, db)
