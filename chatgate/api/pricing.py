"""Public pricing list: active subscription types, no session required."""

from fastapi import APIRouter

from chatgate.features.registry.service import list_subscription_types
from chatgate.models.chat_model import CHAT_MODELS_BY_ID

router = APIRouter(prefix="/api", tags=["pricing"])


@router.get("/pricing")
def get_pricing() -> dict:
    plans = []
    for tier in list_subscription_types(include_inactive=False):
        plans.append({
            "id": tier.id,
            "name": tier.name,
            "description": tier.description,
            "price": tier.price,
            "max_messages_per_day": tier.max_messages_per_day,
            "unlimited": tier.max_messages_per_day == -1,
            "models": [
                {"id": model_id, "name": CHAT_MODELS_BY_ID[model_id].name}
                for model_id in tier.available_model_ids
                if model_id in CHAT_MODELS_BY_ID
            ],
        })
    return {"count": len(plans), "plans": plans}
