from __future__ import annotations

from datetime import datetime, timedelta

from loguru import logger

from padel_alert.storage.seen_cache import SeenCache


def purge_seen_activities(seen_cache: SeenCache, retention_days: int) -> int:
    """Forget seen activities that started more than ``retention_days`` ago"""
    cutoff = datetime.now() - timedelta(days=retention_days)
    logger.info(f"Purging seen activities that started before {cutoff:%Y-%m-%d}")
    try:
        count = seen_cache.purge_expired(cutoff)
    except Exception as e:
        logger.error(f"Error purging seen activities: {e}")
        return 0
    logger.info(f"Purged {count} seen activities")
    return count
