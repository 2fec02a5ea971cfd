"""Celery tasks for inquiry lifecycle automation."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from celery_app import celery
from src.config import settings
from src.database.engine import async_session
from src.exceptions import InvalidStateException

logger = logging.getLogger(__name__)


async def _expire_inquiries_async() -> dict:
    """Move live inquiries whose ``expires_at`` has passed to EXPIRED.

    Each inquiry is expired in its own savepoint so one failure does not
    undo the rest of the batch.
    """
    from src.modules.inquiry.service import InquiryService

    stats = {"checked": 0, "expired": 0, "skipped": 0, "errors": 0}
    now = datetime.now(UTC)

    async with async_session() as session:
        svc = InquiryService(session)
        inquiries = await svc.sweep_expired(
            now=now, limit=settings.inquiry_expiry_sweep_batch_size
        )
        stats["checked"] = len(inquiries)

        for inquiry_id in [i.id for i in inquiries]:
            try:
                async with session.begin_nested():
                    await svc.apply_expiry(inquiry_id, now=now)
                stats["expired"] += 1
            except InvalidStateException as exc:
                # Changed by a user between the sweep and the update.
                logger.info("Skipping expiry of inquiry %s: %s", inquiry_id, exc.message)
                stats["skipped"] += 1
            except Exception:
                logger.exception("Error expiring inquiry %s", inquiry_id)
                stats["errors"] += 1

        await session.commit()

    return stats


# ---------------------------------------------------------------------------
# Celery task definitions
# ---------------------------------------------------------------------------


@celery.task(name="src.modules.inquiry.tasks.expire_inquiries")
def expire_inquiries():
    """Expire inquiries past their expiry date."""
    stats = asyncio.run(_expire_inquiries_async())
    logger.info("expire_inquiries complete: %s", stats)
    return stats
