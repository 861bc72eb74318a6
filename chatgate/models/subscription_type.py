"""
chatgate/models/subscription_type.py

SubscriptionType model: a named bundle of entitlements assignable to a user.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class SubscriptionType(BaseModel):
    """
    SubscriptionType represents a tier in the registry.

    - max_messages_per_day: -1 means unlimited (storage/API boundary only;
      internally converted to a MessageCeiling)
    - is_active: inactive tiers cannot be assigned, but existing holders
      keep resolving to them
    """
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: Optional[str] = None
    price: float = 0.0
    max_messages_per_day: int
    available_model_ids: List[str]
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
