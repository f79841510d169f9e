"""Celery worker configuration.

Delivers the outbound email queue. Reservation operations only enqueue rows;
this worker is the only place SMTP is spoken.
"""

import asyncio
import logging

from celery import Celery
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from playhub.core.config import settings
from playhub.services.email import process_email_batch

logger = logging.getLogger(__name__)

celery_app = Celery(
    "playhub",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone=settings.timezone,
    enable_utc=True,
    beat_schedule={
        "process-email-queue": {
            "task": "playhub.worker.process_email_queue",
            "schedule": 30.0,
        },
    },
)


async def _process(limit: int) -> dict[str, int]:
    # A fresh engine per run: asyncpg connections cannot cross event loops
    engine = create_async_engine(settings.database_url, echo=settings.database_echo)
    try:
        session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        return await process_email_batch(session_factory, limit=limit)
    finally:
        await engine.dispose()


@celery_app.task(name="playhub.worker.process_email_queue")
def process_email_queue(limit: int = 20) -> dict[str, int]:
    counts = asyncio.run(_process(limit))
    if any(counts.values()):
        logger.info("Email queue: %s", counts)
    return counts
