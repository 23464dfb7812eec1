"""
arq background worker.

Run with ``arq mediconnect.worker.WorkerSettings``. Handles email delivery
queued by ``EmailDispatcher`` and the minutely stale-booking sweep.
"""

import asyncio

import structlog
from arq.cron import cron

from mediconnect.core.mailer import deliver_email
from mediconnect.core.tasks import get_redis_settings
from mediconnect.database import AsyncSessionLocal, engine
from mediconnect.middleware.logging import configure_logging
from mediconnect.services.sweep_service import cancel_stale_appointments

logger = structlog.get_logger(__name__)


async def send_email_task(
    ctx: dict,
    to: str,
    subject: str,
    text: str,
    html: str | None = None,
) -> bool:
    """Deliver one queued email; SMTP errors propagate so arq retries the job."""
    logger.info("email_task_started", job_id=ctx.get("job_id"), to=to)
    await asyncio.to_thread(deliver_email, to, subject, text, html)
    return True


async def auto_cancel_stale_appointments_task(ctx: dict) -> int:
    """Cancel pending, unpaid bookings older than ``AUTO_CANCEL_AFTER_MINUTES``."""
    async with AsyncSessionLocal() as db:
        try:
            return await cancel_stale_appointments(db)
        except Exception as e:
            await db.rollback()
            logger.error("stale_sweep_failed", error=str(e))
            raise


async def startup(ctx: dict) -> None:
    """Worker startup hook."""
    configure_logging()
    logger.info("worker_startup")


async def shutdown(ctx: dict) -> None:
    """Worker shutdown hook."""
    await engine.dispose()
    logger.info("worker_shutdown")


class WorkerSettings:
    """arq worker settings."""

    functions = [send_email_task]
    redis_settings = get_redis_settings()
    on_startup = startup
    on_shutdown = shutdown

    max_jobs = 20
    job_timeout = 120
    keep_result = 3600
    max_tries = 3

    # Every minute at second 0
    cron_jobs = [
        cron(auto_cancel_stale_appointments_task, second=0, run_at_startup=False),
    ]
