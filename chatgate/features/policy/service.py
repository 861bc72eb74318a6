"""
chatgate/features/policy/service.py

Policy pipeline for sending a chat message.

Order of checks (first denial wins, nothing after it runs):
1. session present
2. subscription type resolves to entitlements
3. requested model is in the tier's model set
4. an existing chat belongs to the caller
5. quota slot consumed

Quota is consumed last, so a request denied for any other reason never
spends a slot. A consumed slot is not refunded if the caller later abandons
the request.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

from chatgate.core.errors import (
    ModelNotAllowedError,
    PermissionError,
    QuotaExceededError,
    UnauthenticatedError,
    UnknownTierError,
)
from chatgate.core.metrics import policy_denials_total
from chatgate.features.access.service import AccessResult, authorize_owner
from chatgate.features.chats.service import get_chat
from chatgate.features.entitlements.service import resolve_for_user
from chatgate.features.quota.service import check_and_increment
from chatgate.models.chat import Chat
from chatgate.models.entitlements import Entitlements
from chatgate.models.quota import QuotaDecision
from chatgate.models.session import Session


logger = logging.getLogger(__name__)


class PolicyOutcome(str, Enum):
    ALLOWED = "ALLOWED"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    UNKNOWN_TIER = "UNKNOWN_TIER"
    MODEL_NOT_ALLOWED = "MODEL_NOT_ALLOWED"
    FORBIDDEN = "FORBIDDEN"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"


@dataclass(frozen=True)
class PolicyDecision:
    outcome: PolicyOutcome
    user_id: Optional[str] = None
    subscription_type_id: Optional[int] = None
    model_id: Optional[str] = None
    entitlements: Optional[Entitlements] = None
    chat: Optional[Chat] = None
    quota: Optional[QuotaDecision] = None

    @property
    def allowed(self) -> bool:
        return self.outcome == PolicyOutcome.ALLOWED

    def raise_for_denial(self) -> None:
        """Raise the AppError matching a denial; no-op when allowed."""
        if self.outcome == PolicyOutcome.ALLOWED:
            return
        if self.outcome == PolicyOutcome.UNAUTHENTICATED:
            raise UnauthenticatedError("Authentication required")
        if self.outcome == PolicyOutcome.UNKNOWN_TIER:
            raise UnknownTierError(self.subscription_type_id)
        if self.outcome == PolicyOutcome.MODEL_NOT_ALLOWED:
            raise ModelNotAllowedError(
                f"Model '{self.model_id}' is not included in your subscription",
                details={"model_id": self.model_id},
            )
        if self.outcome == PolicyOutcome.FORBIDDEN:
            raise PermissionError("Access denied to this chat")
        quota = self.quota
        raise QuotaExceededError(
            "You have exceeded your maximum number of messages for the day",
            details={
                "limit": quota.limit if quota else None,
                "used": quota.used if quota else None,
                "resets_at": quota.resets_at.isoformat() if quota else None,
            },
        )


def _deny(outcome: PolicyOutcome, **fields) -> PolicyDecision:
    policy_denials_total.inc(labels={"reason": outcome.value.lower()})
    logger.warning(
        f"[policy] {outcome.value}",
        extra={k: v for k, v in fields.items() if k in ("user_id", "subscription_type_id", "model_id")},
    )
    return PolicyDecision(outcome=outcome, **fields)


def authorize_chat_message(
    session: Optional[Session],
    chat_id: str,
    model_id: str,
) -> PolicyDecision:
    """
    Decide whether ``session`` may send a message to ``chat_id`` with
    ``model_id``. Never raises for policy denials; see
    PolicyDecision.raise_for_denial.
    """
    if session is None:
        return _deny(PolicyOutcome.UNAUTHENTICATED, model_id=model_id)

    base = {
        "user_id": session.user_id,
        "subscription_type_id": session.subscription_type_id,
        "model_id": model_id,
    }

    try:
        entitlements = resolve_for_user(session)
    except UnknownTierError:
        return _deny(PolicyOutcome.UNKNOWN_TIER, **base)

    if not entitlements.allows_model(model_id):
        return _deny(PolicyOutcome.MODEL_NOT_ALLOWED, entitlements=entitlements, **base)

    chat = get_chat(chat_id)
    if chat is not None and authorize_owner(session, chat.user_id) != AccessResult.OK:
        return _deny(PolicyOutcome.FORBIDDEN, entitlements=entitlements, chat=chat, **base)

    quota = check_and_increment(session.user_id, entitlements)
    if not quota.allowed:
        return _deny(PolicyOutcome.QUOTA_EXCEEDED, entitlements=entitlements, chat=chat, quota=quota, **base)

    logger.info(
        "[policy] ALLOWED",
        extra={**base, "used": quota.used, "limit": quota.limit},
    )
    return PolicyDecision(
        outcome=PolicyOutcome.ALLOWED,
        entitlements=entitlements,
        chat=chat,
        quota=quota,
        **base,
    )
