"""
chatgate/features/registry/service.py

Subscription type registry.

Handles:
- Default catalog seeding (Regular, Premium, Enterprise)
- Admin CRUD over subscription types
- Delete-while-referenced protection

Reads take no locks. Each write runs in a single transaction that locks the
target row first, so concurrent edits of the same tier apply one after the
other.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select, insert, update, delete, func, text
from sqlalchemy.exc import IntegrityError

from chatgate.core.database import get_db_session, subscription_types, users
from chatgate.core.errors import NotFoundError, SubscriptionTypeInUseError, ValidationError
from chatgate.core.metrics import admin_mutations_total
from chatgate.features.audit.service import record_admin_audit
from chatgate.models.chat_model import CHAT_MODELS, DEFAULT_CHAT_MODEL, is_known_model
from chatgate.models.entitlements import UNLIMITED_SENTINEL
from chatgate.models.subscription_type import SubscriptionType


logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name",
    "description",
    "price",
    "max_messages_per_day",
    "available_model_ids",
    "is_active",
)

# Default catalog; ids are stable because users reference them
DEFAULT_SUBSCRIPTION_TYPES = {
    1: {
        "name": "Regular",
        "description": "Everyday chat with the basic model",
        "price": 0.0,
        "max_messages_per_day": 20,
        "available_model_ids": [DEFAULT_CHAT_MODEL],
    },
    2: {
        "name": "Premium",
        "description": "More messages and advanced models",
        "price": 20.0,
        "max_messages_per_day": 200,
        "available_model_ids": [DEFAULT_CHAT_MODEL, "gpt-3.5", "gpt-4"],
    },
    3: {
        "name": "Enterprise",
        "description": "Unlimited messages and every model",
        "price": 100.0,
        "max_messages_per_day": UNLIMITED_SENTINEL,
        "available_model_ids": [m.id for m in CHAT_MODELS],
    },
}


def _row_to_model(row) -> SubscriptionType:
    return SubscriptionType(
        id=row.id,
        name=row.name,
        description=row.description,
        price=float(row.price or 0),
        max_messages_per_day=row.max_messages_per_day,
        available_model_ids=list(row.available_model_ids or []),
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _validate_max_messages(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("max_messages_per_day must be an integer")
    if value < UNLIMITED_SENTINEL:
        raise ValidationError("max_messages_per_day must be -1 (unlimited) or >= 0")
    return value


def _validate_model_ids(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ValidationError("available_model_ids must be a list of model ids")
    unknown = sorted({v for v in value if not is_known_model(v)})
    if unknown:
        raise ValidationError(f"Unknown model ids: {', '.join(unknown)}")
    # Preserve order, drop duplicates
    return list(dict.fromkeys(value))


def _validate_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in UPDATABLE_FIELDS:
            raise ValidationError(f"Unknown field: {key}")
        if key == "name":
            if not isinstance(value, str) or not value.strip():
                raise ValidationError("name must be a non-empty string")
            cleaned[key] = value.strip()
        elif key == "price":
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ValidationError("price must be a non-negative number")
            cleaned[key] = float(value)
        elif key == "max_messages_per_day":
            cleaned[key] = _validate_max_messages(value)
        elif key == "available_model_ids":
            cleaned[key] = _validate_model_ids(value)
        elif key == "is_active":
            if not isinstance(value, bool):
                raise ValidationError("is_active must be a boolean")
            cleaned[key] = value
        else:
            cleaned[key] = value
    return cleaned


def seed_subscription_types() -> None:
    """
    Seed the default catalog (idempotent).

    Existing rows are left untouched so admin edits survive restarts.
    """
    now = datetime.now(timezone.utc)
    with get_db_session() as session:
        existing = set(session.execute(select(subscription_types.c.id)).scalars().all())
        for type_id, config in DEFAULT_SUBSCRIPTION_TYPES.items():
            if type_id in existing:
                continue
            session.execute(
                insert(subscription_types).values(
                    id=type_id,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                    **config,
                )
            )
            logger.info("[registry] seeded subscription type", extra={"subscription_type_id": type_id})
        if session.get_bind().dialect.name == "postgresql":
            # Explicit ids leave the serial sequence behind
            session.execute(text(
                "SELECT setval(pg_get_serial_sequence('subscription_types', 'id'), "
                "(SELECT MAX(id) FROM subscription_types))"
            ))


def get_subscription_type(subscription_type_id: int) -> Optional[SubscriptionType]:
    """Current committed state of one subscription type, or None."""
    with get_db_session() as session:
        row = session.execute(
            select(subscription_types).where(subscription_types.c.id == subscription_type_id)
        ).first()
        return _row_to_model(row) if row else None


def list_subscription_types(include_inactive: bool = False) -> List[SubscriptionType]:
    with get_db_session() as session:
        query = select(subscription_types).order_by(subscription_types.c.id)
        if not include_inactive:
            query = query.where(subscription_types.c.is_active.is_(True))
        return [_row_to_model(row) for row in session.execute(query).all()]


def create_subscription_type(actor: str, data: Dict[str, Any]) -> SubscriptionType:
    """
    Create a subscription type.

    Args:
        actor: Admin user_id (for the audit log)
        data: name, max_messages_per_day and available_model_ids are required;
              description, price and is_active are optional

    Raises:
        ValidationError: missing or malformed fields
    """
    missing = [k for k in ("name", "max_messages_per_day", "available_model_ids") if data.get(k) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    values = _validate_fields({k: v for k, v in data.items() if v is not None or k == "description"})
    values.setdefault("is_active", True)
    values.setdefault("price", 0.0)
    now = datetime.now(timezone.utc)

    with get_db_session() as session:
        result = session.execute(
            insert(subscription_types).values(created_at=now, updated_at=now, **values)
        )
        new_id = result.inserted_primary_key[0]
        record_admin_audit(
            actor,
            "create_subscription_type",
            target_resource=f"subscription_type:{new_id}",
            payload=values,
            db_session=session,
        )
        row = session.execute(
            select(subscription_types).where(subscription_types.c.id == new_id)
        ).first()
        created = _row_to_model(row)

    admin_mutations_total.inc(labels={"action": "create_subscription_type"})
    logger.info(
        "[registry] subscription type created",
        extra={"actor": actor, "subscription_type_id": created.id, "max_messages_per_day": created.max_messages_per_day},
    )
    return created


def update_subscription_type(actor: str, subscription_type_id: int, changes: Dict[str, Any]) -> SubscriptionType:
    """
    Apply a partial update (quota, models, active flag, display fields).

    The row is locked for the duration of the transaction; the new state is
    visible to the next entitlement resolution.

    Raises:
        NotFoundError: unknown subscription type
        ValidationError: malformed fields or empty change set
    """
    values = _validate_fields(changes)
    if not values:
        raise ValidationError("No fields to update")

    with get_db_session() as session:
        current = session.execute(
            select(subscription_types)
            .where(subscription_types.c.id == subscription_type_id)
            .with_for_update()
        ).first()
        if not current:
            raise NotFoundError(f"Subscription type {subscription_type_id} not found")

        before = {key: getattr(current, key) for key in values}
        session.execute(
            update(subscription_types)
            .where(subscription_types.c.id == subscription_type_id)
            .values(updated_at=datetime.now(timezone.utc), **values)
        )
        record_admin_audit(
            actor,
            "update_subscription_type",
            target_resource=f"subscription_type:{subscription_type_id}",
            payload={"before": before, "after": values},
            db_session=session,
        )
        row = session.execute(
            select(subscription_types).where(subscription_types.c.id == subscription_type_id)
        ).first()
        updated = _row_to_model(row)

    admin_mutations_total.inc(labels={"action": "update_subscription_type"})
    logger.info(
        "[registry] subscription type updated",
        extra={"actor": actor, "subscription_type_id": subscription_type_id, "fields": sorted(values)},
    )
    return updated


def count_referencing_users(subscription_type_id: int, db_session=None) -> int:
    stmt = select(func.count()).select_from(users).where(users.c.subscription_type_id == subscription_type_id)
    if db_session is not None:
        return int(db_session.execute(stmt).scalar() or 0)
    with get_db_session() as session:
        return int(session.execute(stmt).scalar() or 0)


def delete_subscription_type(actor: str, subscription_type_id: int) -> None:
    """
    Delete an unreferenced subscription type.

    Raises:
        NotFoundError: unknown subscription type
        SubscriptionTypeInUseError: at least one user holds the type
    """
    try:
        with get_db_session() as session:
            current = session.execute(
                select(subscription_types.c.id)
                .where(subscription_types.c.id == subscription_type_id)
                .with_for_update()
            ).first()
            if not current:
                raise NotFoundError(f"Subscription type {subscription_type_id} not found")

            referencing = count_referencing_users(subscription_type_id, db_session=session)
            if referencing:
                raise SubscriptionTypeInUseError(subscription_type_id, referencing)

            session.execute(delete(subscription_types).where(subscription_types.c.id == subscription_type_id))
            record_admin_audit(
                actor,
                "delete_subscription_type",
                target_resource=f"subscription_type:{subscription_type_id}",
                db_session=session,
            )
    except SubscriptionTypeInUseError:
        logger.warning(
            "[registry] delete rejected, subscription type in use",
            extra={"actor": actor, "subscription_type_id": subscription_type_id},
        )
        raise
    except IntegrityError:
        # A user was assigned the type between the count and the delete
        referencing = count_referencing_users(subscription_type_id)
        logger.warning(
            "[registry] delete rejected by foreign key",
            extra={"actor": actor, "subscription_type_id": subscription_type_id, "referencing_users": referencing},
        )
        raise SubscriptionTypeInUseError(subscription_type_id, max(referencing, 1))

    admin_mutations_total.inc(labels={"action": "delete_subscription_type"})
    logger.info(
        "[registry] subscription type deleted",
        extra={"actor": actor, "subscription_type_id": subscription_type_id},
    )

