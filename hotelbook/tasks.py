"""Celery background tasks for booking housekeeping."""

import asyncio
import logging

from celery import shared_task

from hotelbook.api.deps import build_booking_service
from hotelbook.database import close_db

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


# ==================== HOLD EXPIRY ====================


@shared_task(bind=True, max_retries=3)
def expire_held_bookings(self):
    """Cancel On Hold bookings whose hold period has passed.

    Runs every ``hold_sweep_minutes``.
    """
    try:
        expired = run_async(_expire_held_bookings())
    except Exception as exc:
        logger.exception("Hold expiry sweep failed")
        raise self.retry(exc=exc, countdown=60)
    if expired:
        logger.info("Auto-cancelled %s expired holds", expired)
    return {"status": "success", "expired": expired}


async def _expire_held_bookings() -> int:
    try:
        return await build_booking_service().expire_holds()
    finally:
        # Pooled connections belong to this event loop
        await close_db()


# ==================== COMPLETION ====================


@shared_task(bind=True, max_retries=3)
def complete_finished_stays(self):
    """Mark confirmed bookings completed once check-out has passed."""
    try:
        completed = run_async(_complete_finished_stays())
    except Exception as exc:
        logger.exception("Completion sweep failed")
        raise self.retry(exc=exc, countdown=300)
    return {"status": "success", "completed": completed}


async def _complete_finished_stays() -> int:
    try:
        return await build_booking_service().complete_due_bookings()
    finally:
        await close_db()
