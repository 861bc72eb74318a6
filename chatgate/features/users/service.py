"""
User domain service.
- get_user(user_id)
- get_or_create_user(user_id): new users get the default subscription type
- list_users() / update_user(): admin surface
- count_users_with_subscription_type()
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select, update

from chatgate.core.config import settings
from chatgate.core.database import get_db_session, insert_ignoring_conflicts, users as app_users
from chatgate.core.errors import NotFoundError, ValidationError
from chatgate.core.metrics import admin_mutations_total
from chatgate.features.audit.service import record_admin_audit
from chatgate.features.registry.service import count_referencing_users, get_subscription_type
from chatgate.models.user import User


logger = logging.getLogger(__name__)

ADMIN_UPDATABLE_FIELDS = ("is_admin", "subscription_type_id")


def normalize_display_name(user_id: str, display_name: Optional[str]) -> str:
    return User.normalized_display_name(user_id, display_name)


def _row_to_user(row) -> User:
    return User(
        user_id=row.user_id,
        subscription_type_id=row.subscription_type_id,
        created_at=row.created_at,
        email=row.email,
        display_name=row.display_name or normalize_display_name(row.user_id, None),
        is_admin=bool(row.is_admin),
    )


def _require_assignable(subscription_type_id: Any) -> int:
    if isinstance(subscription_type_id, bool) or not isinstance(subscription_type_id, int):
        raise ValidationError("subscription_type_id must be an integer")
    tier = get_subscription_type(subscription_type_id)
    if tier is None:
        raise ValidationError(f"Subscription type {subscription_type_id} does not exist")
    if not tier.is_active:
        raise ValidationError(f"Subscription type {subscription_type_id} is inactive and cannot be assigned")
    return subscription_type_id


def get_user(user_id: str) -> Optional[User]:
    with get_db_session() as session:
        row = session.execute(select(app_users).where(app_users.c.user_id == user_id)).first()
        return _row_to_user(row) if row else None


def get_or_create_user(
    user_id: str,
    *,
    email: Optional[str] = None,
    display_name: Optional[str] = None,
    subscription_type_id: Optional[int] = None,
    is_admin: bool = False,
) -> User:
    """
    Fetch a user, creating the record on first sight.

    New users get DEFAULT_SUBSCRIPTION_TYPE_ID unless a tier is given; the
    tier must exist and be active.
    """
    existing = get_user(user_id)
    if existing:
        return existing

    tier_id = _require_assignable(
        subscription_type_id if subscription_type_id is not None else settings.DEFAULT_SUBSCRIPTION_TYPE_ID
    )
    with get_db_session() as session:
        insert_ignoring_conflicts(
            session,
            app_users,
            {
                "user_id": user_id,
                "email": email,
                "display_name": normalize_display_name(user_id, display_name),
                "is_admin": is_admin,
                "subscription_type_id": tier_id,
                "created_at": datetime.now(timezone.utc),
            },
            ["user_id"],
        )

    logger.info("[users] user created", extra={"user_id": user_id, "subscription_type_id": tier_id})
    # Another request may have created the row first
    return get_user(user_id)


def list_users(limit: int = 100, offset: int = 0) -> List[User]:
    with get_db_session() as session:
        rows = session.execute(
            select(app_users).order_by(app_users.c.created_at, app_users.c.user_id).limit(limit).offset(offset)
        ).all()
        return [_row_to_user(row) for row in rows]


def count_users_with_subscription_type(subscription_type_id: int) -> int:
    return count_referencing_users(subscription_type_id)


def update_user(actor: str, user_id: str, changes: Dict[str, Any]) -> User:
    """
    Admin update of a user's admin flag and/or subscription type.

    Raises:
        NotFoundError: unknown user
        ValidationError: unknown field, or a change to a missing/inactive subscription type
    """
    values: Dict[str, Any] = {}
    for key, value in changes.items():
        if key not in ADMIN_UPDATABLE_FIELDS:
            raise ValidationError(f"Unknown field: {key}")
        if key == "is_admin":
            if not isinstance(value, bool):
                raise ValidationError("is_admin must be a boolean")
            values[key] = value
        else:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError("subscription_type_id must be an integer")
            values[key] = value
    if not values:
        raise ValidationError("No fields to update")

    with get_db_session() as session:
        current = session.execute(
            select(app_users).where(app_users.c.user_id == user_id).with_for_update()
        ).first()
        if not current:
            raise NotFoundError(f"User {user_id} not found")

        # Existing holders keep an inactive tier; only a change must be assignable
        if values.get("subscription_type_id", current.subscription_type_id) != current.subscription_type_id:
            _require_assignable(values["subscription_type_id"])

        before = {key: getattr(current, key) for key in values}
        session.execute(update(app_users).where(app_users.c.user_id == user_id).values(**values))
        record_admin_audit(
            actor,
            "update_user",
            target_resource=f"user:{user_id}",
            payload={"before": before, "after": values},
            db_session=session,
        )
        row = session.execute(select(app_users).where(app_users.c.user_id == user_id)).first()
        updated = _row_to_user(row)

    admin_mutations_total.inc(labels={"action": "update_user"})
    logger.info(
        "[users] user updated",
        extra={"actor": actor, "user_id": user_id, "fields": sorted(values)},
    )
    return updated
