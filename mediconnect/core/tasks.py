"""Background job dispatch through the arq queue."""

import structlog
from arq import create_pool
from arq.connections import ArqRedis, RedisSettings

from mediconnect.config import settings

logger = structlog.get_logger(__name__)

_pool: ArqRedis | None = None


def get_redis_settings() -> RedisSettings:
    """Build arq Redis settings from application settings."""
    return RedisSettings(
        host=settings.redis_host,
        port=settings.redis_port,
        username=settings.redis_username or None,
        password=settings.redis_password or None,
        conn_timeout=5,
        conn_retries=1,
        conn_retry_delay=1,
    )


async def get_job_pool() -> ArqRedis:
    """Get or create the shared arq connection pool."""
    global _pool

    if _pool is None:
        _pool = await create_pool(get_redis_settings())

    return _pool


async def close_job_pool() -> None:
    """Close the shared arq connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None


class EmailDispatcher:
    """
    Fire-and-forget email sender.

    ``send`` only enqueues a ``send_email_task`` job; delivery happens in the
    arq worker. Enqueue failures are logged and reported as ``False`` so the
    triggering state transition is never affected.
    """

    async def send(
        self,
        to: str,
        subject: str,
        text: str,
        html: str | None = None,
    ) -> bool:
        """Queue an email for delivery."""
        if not to:
            logger.warning("email_skipped_no_recipient", subject=subject)
            return False

        try:
            pool = await get_job_pool()
            await pool.enqueue_job("send_email_task", to, subject, text, html)
            logger.info("email_enqueued", to=to, subject=subject)
            return True
        except Exception as e:
            logger.warning("email_enqueue_failed", to=to, subject=subject, error=str(e))
            return False


_email_dispatcher = EmailDispatcher()


def get_email_dispatcher() -> EmailDispatcher:
    """Dependency returning the process-wide email dispatcher."""
    return _email_dispatcher
