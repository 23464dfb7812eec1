"""Tests for background jobs and email dispatch."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mediconnect import worker
from mediconnect.core import tasks
from mediconnect.core.mailer import build_message
from mediconnect.core.tasks import EmailDispatcher


@pytest.mark.asyncio
async def test_send_email_task_delivers() -> None:
    with patch.object(worker, "deliver_email") as deliver:
        result = await worker.send_email_task(
            {"job_id": "job-1"}, "alice@example.com", "Subject", "Body"
        )

    assert result is True
    deliver.assert_called_once_with("alice@example.com", "Subject", "Body", None)


@pytest.mark.asyncio
async def test_send_email_task_propagates_smtp_errors() -> None:
    """SMTP failures raise so arq retries the job."""
    import smtplib

    with patch.object(worker, "deliver_email", side_effect=smtplib.SMTPException("down")):
        with pytest.raises(smtplib.SMTPException):
            await worker.send_email_task({}, "alice@example.com", "Subject", "Body")


@pytest.mark.asyncio
async def test_dispatcher_enqueues_job(monkeypatch) -> None:
    pool = MagicMock()
    pool.enqueue_job = AsyncMock()
    monkeypatch.setattr(tasks, "get_job_pool", AsyncMock(return_value=pool))

    assert await EmailDispatcher().send("alice@example.com", "Hi", "Text") is True
    pool.enqueue_job.assert_awaited_once_with(
        "send_email_task", "alice@example.com", "Hi", "Text", None
    )


@pytest.mark.asyncio
async def test_dispatcher_never_raises(monkeypatch) -> None:
    monkeypatch.setattr(tasks, "get_job_pool", AsyncMock(side_effect=ConnectionError("no redis")))

    assert await EmailDispatcher().send("alice@example.com", "Hi", "Text") is False
    assert await EmailDispatcher().send("", "Hi", "Text") is False


def test_build_message_has_text_and_html() -> None:
    msg = build_message("alice@example.com", "Subject", "plain body", "<p>html body</p>")
    assert msg["To"] == "alice@example.com"
    assert msg["Subject"] == "Subject"
    parts = msg.get_payload()
    assert [p.get_content_type() for p in parts] == ["text/plain", "text/html"]


def test_worker_registers_jobs() -> None:
    assert worker.send_email_task in worker.WorkerSettings.functions
    assert len(worker.WorkerSettings.cron_jobs) == 1
