"""
chatgate/features/access/service.py

Access gate: the single place that decides admin and owner access.

The authorize_* functions return a decision and never raise; the require_*
dependencies turn a denial into UnauthenticatedError (401) or
PermissionError (403).
"""

from enum import Enum
from typing import Optional
import logging

from fastapi import Depends

from chatgate.core.errors import PermissionError, UnauthenticatedError
from chatgate.core.metrics import policy_denials_total
from chatgate.core.session import get_session
from chatgate.models.session import Session


logger = logging.getLogger(__name__)


class AccessResult(str, Enum):
    OK = "OK"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"


def authorize_authenticated(session: Optional[Session]) -> AccessResult:
    if session is None:
        return AccessResult.UNAUTHENTICATED
    return AccessResult.OK


def authorize_admin(session: Optional[Session]) -> AccessResult:
    """Registry mutations and cross-user reads: admins only."""
    if session is None:
        return AccessResult.UNAUTHENTICATED
    if not session.is_admin:
        return AccessResult.FORBIDDEN
    return AccessResult.OK


def authorize_owner(session: Optional[Session], resource_owner_id: str) -> AccessResult:
    """A user's own records: the owner only, admin or not."""
    if session is None:
        return AccessResult.UNAUTHENTICATED
    if session.user_id != resource_owner_id:
        return AccessResult.FORBIDDEN
    return AccessResult.OK


def raise_for_result(result: AccessResult, *, action: str, user_id: Optional[str] = None) -> None:
    """Translate a denial into the matching AppError."""
    if result == AccessResult.OK:
        return
    policy_denials_total.inc(labels={"reason": result.value.lower()})
    logger.warning(
        "[access] denied",
        extra={"action": action, "user_id": user_id, "result": result.value},
    )
    if result == AccessResult.UNAUTHENTICATED:
        raise UnauthenticatedError("Authentication required")
    raise PermissionError("You do not have access to this resource")


def require_session(session: Optional[Session] = Depends(get_session)) -> Session:
    """FastAPI dependency: any signed-in user."""
    raise_for_result(authorize_authenticated(session), action="authenticated")
    return session


def require_admin(session: Optional[Session] = Depends(get_session)) -> Session:
    """FastAPI dependency: signed-in admin."""
    raise_for_result(
        authorize_admin(session),
        action="admin",
        user_id=session.user_id if session else None,
    )
    return session


def ensure_owner(session: Optional[Session], resource_owner_id: str, *, action: str = "owner") -> None:
    raise_for_result(
        authorize_owner(session, resource_owner_id),
        action=action,
        user_id=session.user_id if session else None,
    )
