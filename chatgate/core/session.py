"""
Session resolution for incoming requests.

Sessions are issued by the identity provider; this module only verifies them.

Priority:
1. Bearer JWT from the Authorization header (or the session cookie),
   signed with SESSION_SECRET; the ``sub`` claim is the user id
2. X-User-Id header, when HEADER_AUTH_ENABLED (development and tests)

The admin flag and subscription type always come from the app_users row,
never from token claims. The resolved session is kept on request.state for
the rest of that request only.
"""
from typing import Optional
import logging

import jwt
from fastapi import Request
from sqlalchemy import select

from chatgate.core.config import settings
from chatgate.core.database import get_db_session, users
from chatgate.models.session import Session

logger = logging.getLogger(__name__)

_UNRESOLVED = object()


def _extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(settings.SESSION_COOKIE_NAME) or None


def decode_session_token(token: str) -> Optional[str]:
    """
    Verify a session JWT and return its subject.

    Returns None for tokens that are expired, malformed or signed with
    another key, or when no SESSION_SECRET is configured.
    """
    if not settings.SESSION_SECRET:
        logger.debug("No SESSION_SECRET configured, skipping JWT validation")
        return None

    try:
        payload = jwt.decode(
            token,
            settings.SESSION_SECRET,
            algorithms=[settings.SESSION_ALGORITHM],
            options={"verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        logger.info("Session token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid session token", extra={"error": str(e)})
        return None

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("Session token has no 'sub' claim")
        return None
    return str(user_id)


def load_session(user_id: str, auth_mechanism: str = "session_jwt") -> Optional[Session]:
    """Build a Session from the current user record, or None for unknown users."""
    with get_db_session() as db:
        row = db.execute(
            select(
                users.c.user_id,
                users.c.email,
                users.c.is_admin,
                users.c.subscription_type_id,
            ).where(users.c.user_id == user_id)
        ).first()

    if row is None:
        logger.info("Session subject has no user record", extra={"user_id": user_id})
        return None

    return Session(
        user_id=row.user_id,
        subscription_type_id=row.subscription_type_id,
        is_admin=bool(row.is_admin),
        email=row.email,
        auth_mechanism=auth_mechanism,
    )


def resolve_session(request: Request) -> Optional[Session]:
    token = _extract_token(request)
    if token:
        user_id = decode_session_token(token)
        return load_session(user_id, "session_jwt") if user_id else None

    if settings.HEADER_AUTH_ENABLED:
        header_user = request.headers.get("X-User-Id", "").strip()
        if header_user:
            return load_session(header_user, "x_user_id")

    return None


def get_session(request: Request) -> Optional[Session]:
    """
    FastAPI dependency: current session or None (does not raise).

    Use the AccessGate dependencies to require one.
    """
    cached = getattr(request.state, "session", _UNRESOLVED)
    if cached is not _UNRESOLVED:
        return cached
    session = resolve_session(request)
    request.state.session = session
    return session
