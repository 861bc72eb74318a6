from fastapi import APIRouter, Depends

from chatgate.features.access.service import require_session
from chatgate.features.entitlements.service import list_allowed_models, resolve_for_user
from chatgate.models.session import Session

router = APIRouter(prefix="/api", tags=["models"])


@router.get("/models")
def get_models(session: Session = Depends(require_session)) -> dict:
    """Chat models the caller's subscription type grants."""
    entitlements = resolve_for_user(session)
    return {
        "subscription_type_id": entitlements.subscription_type_id,
        "models": [model.model_dump() for model in list_allowed_models(entitlements)],
    }
