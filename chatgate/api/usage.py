from fastapi import APIRouter, Depends

from chatgate.features.access.service import require_session
from chatgate.features.entitlements.service import resolve_for_user
from chatgate.features.quota.service import get_usage
from chatgate.models.session import Session

router = APIRouter(prefix="/api", tags=["usage"])


@router.get("/usage")
def get_my_usage(session: Session = Depends(require_session)) -> dict:
    """Caller's message usage in the current UTC day."""
    entitlements = resolve_for_user(session)
    usage = get_usage(session.user_id, entitlements)
    return {
        "user_id": session.user_id,
        "entitlements": entitlements.to_dict(),
        "usage": usage.to_dict(),
    }
