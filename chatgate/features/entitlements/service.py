"""
chatgate/features/entitlements/service.py

Entitlement resolution.

Handles:
- Mapping a subscription type id to concrete Entitlements
- Model catalog filtering for the caller's tier

Every call reads the committed registry row; nothing is cached, so admin
edits apply to the next resolution. Inactive tiers still resolve for the
users that already hold them.
"""

from typing import List, Union
import logging

from sqlalchemy import select

from chatgate.core.database import get_db_session, subscription_types
from chatgate.core.errors import UnknownTierError
from chatgate.models.chat_model import CHAT_MODELS, ChatModel
from chatgate.models.entitlements import Entitlements, ceiling_from_raw
from chatgate.models.session import Session
from chatgate.models.user import User


logger = logging.getLogger(__name__)


def resolve(subscription_type_id: int) -> Entitlements:
    """
    Resolve a subscription type into Entitlements.

    Raises:
        UnknownTierError: the id is not present in the registry
    """
    with get_db_session() as session:
        row = session.execute(
            select(
                subscription_types.c.id,
                subscription_types.c.name,
                subscription_types.c.max_messages_per_day,
                subscription_types.c.available_model_ids,
            ).where(subscription_types.c.id == subscription_type_id)
        ).first()

    if row is None:
        logger.error(
            "[entitlements] unknown subscription type",
            extra={"subscription_type_id": subscription_type_id},
        )
        raise UnknownTierError(subscription_type_id)

    return Entitlements(
        subscription_type_id=row.id,
        name=row.name,
        max_messages_per_day=ceiling_from_raw(row.max_messages_per_day),
        available_model_ids=frozenset(row.available_model_ids or []),
    )


def resolve_for_user(subject: Union[User, Session]) -> Entitlements:
    """Resolve entitlements for a user record or an authenticated session."""
    return resolve(subject.subscription_type_id)


def list_allowed_models(entitlements: Entitlements) -> List[ChatModel]:
    """Catalog models granted by the entitlements, in catalog order."""
    return [model for model in CHAT_MODELS if entitlements.allows_model(model.id)]
