"""Tests for admin and owner authorization."""
import pytest

from chatgate.core.errors import PermissionError, UnauthenticatedError
from chatgate.core.metrics import policy_denials_total
from chatgate.features.access.service import (
    AccessResult,
    authorize_admin,
    authorize_authenticated,
    authorize_owner,
    ensure_owner,
    require_admin,
    require_session,
)
from chatgate.models.session import Session


ADMIN = Session(user_id="root", subscription_type_id=3, is_admin=True)
MEMBER = Session(user_id="member", subscription_type_id=1, is_admin=False)


def test_authorize_admin():
    assert authorize_admin(None) == AccessResult.UNAUTHENTICATED
    assert authorize_admin(MEMBER) == AccessResult.FORBIDDEN
    assert authorize_admin(ADMIN) == AccessResult.OK


def test_authorize_owner_ignores_admin_flag():
    assert authorize_owner(None, "member") == AccessResult.UNAUTHENTICATED
    assert authorize_owner(MEMBER, "member") == AccessResult.OK
    assert authorize_owner(MEMBER, "someone-else") == AccessResult.FORBIDDEN
    assert authorize_owner(ADMIN, "member") == AccessResult.FORBIDDEN


def test_authorize_authenticated():
    assert authorize_authenticated(None) == AccessResult.UNAUTHENTICATED
    assert authorize_authenticated(MEMBER) == AccessResult.OK


def test_require_admin_dependency():
    with pytest.raises(UnauthenticatedError):
        require_admin(None)
    with pytest.raises(PermissionError) as exc:
        require_admin(MEMBER)
    assert exc.value.status_code == 403
    assert require_admin(ADMIN) is ADMIN


def test_require_session_dependency():
    with pytest.raises(UnauthenticatedError):
        require_session(None)
    assert require_session(MEMBER) is MEMBER


def test_ensure_owner_counts_denials():
    ensure_owner(MEMBER, "member")
    with pytest.raises(PermissionError):
        ensure_owner(MEMBER, "other")
    assert policy_denials_total.value({"reason": "forbidden"}) == 1
