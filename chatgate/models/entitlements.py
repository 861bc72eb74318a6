"""
chatgate/models/entitlements.py

Resolved entitlements for a subscription type.

Entitlements are derived on demand from the registry and never persisted.
The daily message ceiling is a tagged variant: ``Unlimited`` or
``Limit(n)``. The raw ``-1`` sentinel only exists in storage and in API
payloads; ``ceiling_from_raw`` / ``ceiling_to_raw`` convert at that boundary.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Union

UNLIMITED_SENTINEL = -1


@dataclass(frozen=True)
class Unlimited:
    def __str__(self) -> str:
        return "unlimited"


@dataclass(frozen=True)
class Limit:
    value: int

    def __post_init__(self):
        if self.value < 0:
            raise ValueError(f"Limit must be non-negative, got {self.value}")

    def __str__(self) -> str:
        return str(self.value)


MessageCeiling = Union[Unlimited, Limit]

UNLIMITED = Unlimited()


def ceiling_from_raw(raw: int) -> MessageCeiling:
    if raw == UNLIMITED_SENTINEL:
        return UNLIMITED
    if raw < 0:
        raise ValueError(f"max_messages_per_day must be -1 or >= 0, got {raw}")
    return Limit(raw)


def ceiling_to_raw(ceiling: MessageCeiling) -> int:
    if isinstance(ceiling, Unlimited):
        return UNLIMITED_SENTINEL
    return ceiling.value


def ceiling_limit(ceiling: MessageCeiling) -> Optional[int]:
    """Finite limit, or None when unlimited."""
    if isinstance(ceiling, Limit):
        return ceiling.value
    return None


@dataclass(frozen=True)
class Entitlements:
    subscription_type_id: int
    name: str
    max_messages_per_day: MessageCeiling
    available_model_ids: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_unlimited(self) -> bool:
        return isinstance(self.max_messages_per_day, Unlimited)

    def allows_model(self, model_id: str) -> bool:
        return model_id in self.available_model_ids

    def to_dict(self) -> dict:
        return {
            "subscription_type_id": self.subscription_type_id,
            "name": self.name,
            "max_messages_per_day": ceiling_to_raw(self.max_messages_per_day),
            "available_model_ids": sorted(self.available_model_ids),
        }
