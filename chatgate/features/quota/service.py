"""
chatgate/features/quota/service.py

Daily message quota tracker.

Handles:
- Atomic check-and-increment per (user, UTC day)
- Usage reads for the current window
- Pruning of old counters (retention worker)

Windows are UTC calendar days. A new day starts with no counter row; the row
is created on the first message, so rollover needs no background job.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
import logging

from sqlalchemy import select, update, delete, func

from chatgate.core.database import get_db_session, insert_ignoring_conflicts, quota_counters
from chatgate.core.metrics import quota_decisions_total
from chatgate.models.entitlements import Entitlements, ceiling_limit
from chatgate.models.quota import QuotaDecision, QuotaStatus, QuotaUsage


logger = logging.getLogger(__name__)


def _normalize_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def quota_window(now: Optional[datetime] = None) -> Tuple[date, datetime]:
    """Return (window_start, resets_at) for the UTC day containing ``now``."""
    day = _normalize_now(now).date()
    resets_at = datetime.combine(day + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return day, resets_at


def check_and_increment(
    user_id: str,
    entitlements: Entitlements,
    *,
    now: Optional[datetime] = None,
) -> QuotaDecision:
    """
    Consume one message slot for ``user_id`` in the current window.

    Limited tiers use one conditional UPDATE (``count < limit``), so two
    callers racing for the last slot cannot both succeed. Unlimited tiers
    always increment and are never denied.

    Returns:
        QuotaDecision with status ALLOWED or QUOTA_EXCEEDED
    """
    window_start, resets_at = quota_window(now)
    limit = ceiling_limit(entitlements.max_messages_per_day)
    match = (quota_counters.c.user_id == user_id) & (quota_counters.c.window_start == window_start)

    with get_db_session() as session:
        insert_ignoring_conflicts(
            session,
            quota_counters,
            {"user_id": user_id, "window_start": window_start, "count": 0},
            ["user_id", "window_start"],
        )

        stmt = update(quota_counters).where(match).values(
            count=quota_counters.c.count + 1,
            updated_at=func.now(),
        )
        if limit is not None:
            stmt = stmt.where(quota_counters.c.count < limit)
        result = session.execute(stmt)
        allowed = result.rowcount == 1

        used = session.execute(select(quota_counters.c.count).where(match)).scalar() or 0

    status = QuotaStatus.ALLOWED if allowed else QuotaStatus.QUOTA_EXCEEDED
    quota_decisions_total.inc(
        labels={"status": status.value, "ceiling": "unlimited" if limit is None else "limited"}
    )

    if not allowed:
        logger.warning(
            "[quota] QUOTA_EXCEEDED",
            extra={
                "user_id": user_id,
                "subscription_type_id": entitlements.subscription_type_id,
                "window_start": window_start.isoformat(),
                "used": used,
                "limit": limit,
            },
        )

    return QuotaDecision(
        status=status,
        user_id=user_id,
        window_start=window_start,
        used=used,
        limit=limit,
        resets_at=resets_at,
    )


def get_usage(
    user_id: str,
    entitlements: Entitlements,
    *,
    now: Optional[datetime] = None,
) -> QuotaUsage:
    """Messages used in the current window; 0 when no counter exists yet."""
    window_start, resets_at = quota_window(now)
    with get_db_session() as session:
        used = session.execute(
            select(quota_counters.c.count)
            .where(quota_counters.c.user_id == user_id)
            .where(quota_counters.c.window_start == window_start)
        ).scalar()

    return QuotaUsage(
        user_id=user_id,
        window_start=window_start,
        used=used or 0,
        limit=ceiling_limit(entitlements.max_messages_per_day),
        resets_at=resets_at,
    )


def prune_counters(before: date, *, dry_run: bool = False) -> int:
    """
    Delete counters whose window started before ``before``.

    Returns:
        Number of rows deleted (or that would be deleted when dry_run)
    """
    condition = quota_counters.c.window_start < before
    with get_db_session() as session:
        if dry_run:
            return int(
                session.execute(select(func.count()).select_from(quota_counters).where(condition)).scalar() or 0
            )
        result = session.execute(delete(quota_counters).where(condition))
        return int(result.rowcount or 0)
