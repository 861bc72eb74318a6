"""
chatgate/features/audit/service.py

Admin audit trail for registry and user mutations.
"""

import json
from typing import List, Optional

from sqlalchemy import insert, select
from sqlalchemy.orm import Session as DbSession

from chatgate.core.database import get_db_session, admin_audit
from chatgate.core.metrics import admin_mutations_total


def record_admin_audit(
    actor: str,
    action: str,
    target_resource: Optional[str] = None,
    payload: Optional[dict] = None,
    *,
    db_session: Optional[DbSession] = None,
) -> None:
    """
    Record an admin action in the audit log.

    Args:
        actor: Admin user_id performing the action
        action: Action name (e.g., "create_subscription_type", "update_user")
        target_resource: Resource affected ("subscription_type:3", "user:abc")
        payload: Additional context as dict (will be JSON-serialized)
        db_session: Write inside the caller's transaction when given
    """
    stmt = insert(admin_audit).values(
        actor=actor,
        action=action,
        target_resource=target_resource,
        payload_json=json.dumps(payload, default=str) if payload else None,
    )
    if db_session is not None:
        # Counted by the caller once its transaction commits
        db_session.execute(stmt)
        return
    with get_db_session() as session:
        session.execute(stmt)
    admin_mutations_total.inc(labels={"action": action})


def list_admin_audit(action: Optional[str] = None, limit: int = 100) -> List[dict]:
    with get_db_session() as session:
        query = select(admin_audit).order_by(admin_audit.c.id.desc()).limit(limit)
        if action:
            query = query.where(admin_audit.c.action == action)
        rows = session.execute(query).all()
        return [
            {
                "id": row.id,
                "actor": row.actor,
                "action": row.action,
                "target_resource": row.target_resource,
                "payload": json.loads(row.payload_json) if row.payload_json else None,
                "created_at": row.created_at,
            }
            for row in rows
        ]
