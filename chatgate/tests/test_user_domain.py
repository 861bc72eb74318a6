import pytest

from chatgate.core.errors import NotFoundError, ValidationError
from chatgate.features.registry.service import update_subscription_type
from chatgate.features.users.service import (
    count_users_with_subscription_type,
    get_or_create_user,
    get_user,
    list_users,
    update_user,
)


def test_new_user_gets_default_tier():
    user = get_or_create_user("newcomer")
    assert user.subscription_type_id == 1
    assert not user.is_admin
    assert user.display_name.startswith("@u_")


def test_get_or_create_is_idempotent():
    first = get_or_create_user("repeat", display_name="Repeat")
    second = get_or_create_user("repeat", display_name="Other")
    assert first == second
    assert second.display_name == "Repeat"


def test_cannot_create_user_on_inactive_tier():
    update_subscription_type("admin-1", 2, {"is_active": False})
    with pytest.raises(ValidationError):
        get_or_create_user("late-joiner", subscription_type_id=2)
    assert get_user("late-joiner") is None


def test_update_user_tier_and_admin_flag(make_user):
    make_user("promote-me")
    updated = update_user("admin-1", "promote-me", {"subscription_type_id": 2, "is_admin": True})
    assert updated.subscription_type_id == 2
    assert updated.is_admin
    assert count_users_with_subscription_type(2) == 1


def test_update_user_rejects_inactive_or_unknown_tier(make_user):
    make_user("stay-put")
    update_subscription_type("admin-1", 3, {"is_active": False})

    with pytest.raises(ValidationError):
        update_user("admin-1", "stay-put", {"subscription_type_id": 3})
    with pytest.raises(ValidationError):
        update_user("admin-1", "stay-put", {"subscription_type_id": 42})
    with pytest.raises(ValidationError):
        update_user("admin-1", "stay-put", {"email": "x@example.com"})

    assert get_user("stay-put").subscription_type_id == 1



def test_resending_current_inactive_tier_is_accepted(make_user):
    make_user("legacy", subscription_type_id=2)
    update_subscription_type("admin-1", 2, {"is_active": False})

    updated = update_user("admin-1", "legacy", {"subscription_type_id": 2, "is_admin": True})

    assert updated.subscription_type_id == 2
    assert updated.is_admin

def test_update_missing_user():
    with pytest.raises(NotFoundError):
        update_user("admin-1", "ghost", {"is_admin": True})


def test_list_users(make_user):
    make_user("u1")
    make_user("u2", subscription_type_id=3)
    assert {u.user_id for u in list_users()} == {"u1", "u2"}
    assert len(list_users(limit=1)) == 1
