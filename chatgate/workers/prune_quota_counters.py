"""Retention job for daily quota counters."""
from datetime import date, datetime, timedelta, timezone
import logging

from chatgate.core.config import settings
from chatgate.features.quota.service import prune_counters

logger = logging.getLogger("chatgate.cleanup.quota")


def prune_quota_counters(
    *,
    retention_days: int | None = None,
    dry_run: bool | None = None,
    today: date | None = None,
) -> dict:
    """
    Delete counters whose window started more than ``retention_days`` ago.

    The current window is never pruned, whatever the retention.
    """
    days = retention_days if retention_days is not None else int(settings.QUOTA_RETENTION_DAYS or 30)
    days = max(days, 1)
    dry = dry_run if dry_run is not None else bool(settings.QUOTA_CLEANUP_DRY_RUN)
    current = today or datetime.now(timezone.utc).date()
    cutoff = current - timedelta(days=days)

    candidates = prune_counters(cutoff, dry_run=True)
    deleted = 0
    if not dry and candidates:
        deleted = prune_counters(cutoff)

    logger.info(
        "[cleanup] quota counter retention",
        extra={
            "retention_days": days,
            "dry_run": dry,
            "cutoff": cutoff.isoformat(),
            "candidates": candidates,
            "deleted": deleted,
        },
    )
    return {
        "retention_days": days,
        "dry_run": dry,
        "cutoff": cutoff.isoformat(),
        "candidates": candidates,
        "deleted": deleted,
    }


if __name__ == "__main__":
    from chatgate.core.logging import configure_logging

    configure_logging(settings.ENV)
    result = prune_quota_counters()
    print(result)
