"""
Admin API routes for the subscription registry and user records.

Every route requires an admin session (401 without a session, 403 for
non-admins). Mutations are written to the admin audit log.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from chatgate.core.errors import NotFoundError
from chatgate.features.access.service import require_admin
from chatgate.features.audit.service import list_admin_audit
from chatgate.features.registry.service import (
    create_subscription_type,
    delete_subscription_type,
    get_subscription_type,
    list_subscription_types,
    update_subscription_type,
)
from chatgate.features.users.service import list_users, update_user
from chatgate.models.session import Session

router = APIRouter(prefix="/api/admin", tags=["admin"])


class CreateSubscriptionTypeRequest(BaseModel):
    name: str
    description: Optional[str] = None
    price: float = 0.0
    max_messages_per_day: int
    available_model_ids: List[str]
    is_active: bool = True


class UpdateSubscriptionTypeRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    max_messages_per_day: Optional[int] = None
    available_model_ids: Optional[List[str]] = None
    is_active: Optional[bool] = None


class UpdateUserRequest(BaseModel):
    is_admin: Optional[bool] = None
    subscription_type_id: Optional[int] = None


@router.get("/subscription-types")
def list_types(
    include_inactive: bool = True,
    admin: Session = Depends(require_admin),
) -> dict:
    types = list_subscription_types(include_inactive=include_inactive)
    return {"count": len(types), "subscription_types": [t.model_dump(mode="json") for t in types]}


@router.get("/subscription-types/{subscription_type_id}")
def get_type(subscription_type_id: int, admin: Session = Depends(require_admin)) -> dict:
    tier = get_subscription_type(subscription_type_id)
    if tier is None:
        raise NotFoundError(f"Subscription type {subscription_type_id} not found")
    return tier.model_dump(mode="json")


@router.post("/subscription-types", status_code=201)
def create_type(body: CreateSubscriptionTypeRequest, admin: Session = Depends(require_admin)) -> dict:
    tier = create_subscription_type(admin.user_id, body.model_dump())
    return tier.model_dump(mode="json")


@router.patch("/subscription-types/{subscription_type_id}")
def update_type(
    subscription_type_id: int,
    body: UpdateSubscriptionTypeRequest,
    admin: Session = Depends(require_admin),
) -> dict:
    tier = update_subscription_type(admin.user_id, subscription_type_id, body.model_dump(exclude_unset=True))
    return tier.model_dump(mode="json")


@router.delete("/subscription-types/{subscription_type_id}")
def delete_type(subscription_type_id: int, admin: Session = Depends(require_admin)) -> dict:
    delete_subscription_type(admin.user_id, subscription_type_id)
    return {"deleted": True, "id": subscription_type_id}


@router.get("/users")
def list_all_users(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: Session = Depends(require_admin),
) -> dict:
    found = list_users(limit=limit, offset=offset)
    return {"count": len(found), "users": [u.model_dump(mode="json") for u in found]}


@router.patch("/users/{user_id}")
def update_user_record(user_id: str, body: UpdateUserRequest, admin: Session = Depends(require_admin)) -> dict:
    user = update_user(admin.user_id, user_id, body.model_dump(exclude_unset=True))
    return user.model_dump(mode="json")


@router.get("/audit")
def list_audit(
    action: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    admin: Session = Depends(require_admin),
) -> dict:
    events = list_admin_audit(action=action, limit=limit)
    return {"count": len(events), "events": events}
