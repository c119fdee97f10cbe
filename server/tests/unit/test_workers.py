"""Unit tests for background workers."""

import asyncio
from datetime import timedelta

import pytest

from charter.core.clock import utcnow
from charter.models.idempotency import IdempotencyRecord
from charter.models.notification import NotificationStatus
from charter.models.quote_request import RequestStatus
from charter.services.idempotency_service import IdempotencyService
from charter.services.notification_service import NotificationOutbox
from charter.services.request_service import RequestService
from charter.workers import idempotency_cleanup_worker, notification_worker, request_expiry_worker
from charter.workers.base import BaseWorker
from charter.workers.idempotency_cleanup_worker import IdempotencyCleanupWorker
from charter.workers.manager import WorkerManager
from charter.workers.notification_worker import NotificationWorker
from charter.workers.request_expiry_worker import RequestExpiryWorker

from conftest import LifecycleFactory


class RecordingSender:
    def __init__(self):
        self.sent = []

    async def send(self, kind, recipient, payload):
        self.sent.append((kind, recipient))


class FlakyWorker(BaseWorker):
    def __init__(self):
        super().__init__(name="Flaky", interval_seconds=0)
        self.calls = 0
        self.recovered = asyncio.Event()

    async def process(self):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("first iteration fails")
        self.recovered.set()


@pytest.mark.asyncio
async def test_request_expiry_worker_persists_expiry(session_factory, now, monkeypatch):
    monkeypatch.setattr(request_expiry_worker, "async_session_factory", session_factory)
    async with session_factory() as db:
        stale = await LifecycleFactory(db, now - timedelta(days=2)).request()
        fresh = await LifecycleFactory(db, now).request()

    await RequestExpiryWorker(batch_size=1).process()

    async with session_factory() as db:
        service = RequestService(db)
        assert (await service.get_request_by_code(stale.request_code)).status == RequestStatus.EXPIRED.value
        assert (await service.get_request_by_code(fresh.request_code)).status == RequestStatus.SUBMITTED.value


@pytest.mark.asyncio
async def test_notification_worker_drains_outbox(session_factory, now, monkeypatch):
    monkeypatch.setattr(notification_worker, "async_session_factory", session_factory)
    async with session_factory() as db:
        quote_request = await LifecycleFactory(db, now).request()

    sender = RecordingSender()
    await NotificationWorker(sender=sender).process()

    assert sender.sent == [("request-submitted", quote_request.client_code)]
    async with session_factory() as db:
        [event] = await NotificationOutbox(db).list_events(quote_request.request_code)
        assert event.status == NotificationStatus.SENT.value


@pytest.mark.asyncio
async def test_idempotency_cleanup_worker_purges_expired_records(session_factory, monkeypatch):
    monkeypatch.setattr(idempotency_cleanup_worker, "async_session_factory", session_factory)
    async with session_factory() as db:
        await IdempotencyService(db).store_response("live-key", "quote/accept", {"a": 1}, 200, {"ok": True})
        db.add(IdempotencyRecord(
            idempotency_key="old-key",
            method="quote/accept",
            request_body_hash="0" * 64,
            response_status_code=200,
            response_body="{}",
            expires_at=utcnow() - timedelta(hours=1),
        ))
        await db.commit()

    await IdempotencyCleanupWorker().process()

    async with session_factory() as db:
        service = IdempotencyService(db)
        assert await service.check_idempotency("live-key", "quote/accept", {"a": 1}) is not None
        assert await service.purge_expired() == 0


@pytest.mark.asyncio
async def test_worker_keeps_running_after_failed_iteration():
    worker = FlakyWorker()

    await worker.start()
    assert worker.is_running
    await asyncio.wait_for(worker.recovered.wait(), timeout=2)
    await worker.stop()

    assert worker.calls >= 2
    assert not worker.is_running


@pytest.mark.asyncio
async def test_worker_manager_tracks_workers():
    manager = WorkerManager()

    assert manager.get_worker_status() == {
        "request_expiry": False,
        "notification_dispatch": False,
        "idempotency_cleanup": False,
    }
    assert isinstance(manager.get_worker("request_expiry"), RequestExpiryWorker)
    with pytest.raises(KeyError):
        manager.get_worker("unknown_worker")

    # Nothing running, nothing to stop
    await manager.stop_all()
