from __future__ import annotations

import asyncio

import pytest
from fakes import FakeBackend, FakeSocketClient, FakeTransport, fast_settings, http_error

from jobtrack.application.ports.backend import BatchItem, ProcessingOptions
from jobtrack.application.use_cases.submit_batch import SubmitBatchUseCase
from jobtrack.core.errors import NotConnectedError, SubmissionError, ValidationError
from jobtrack.core.events import BatchSubmitted, EventBus
from jobtrack.core.jobs import JobRegistry, JobStatus
from jobtrack.services.transport_session import JOIN_TASK, TransportSession

ITEMS = [
    BatchItem("blob://1", "one.pdf"),
    BatchItem("blob://2", "two.pdf"),
    BatchItem("blob://3", "three.pdf"),
]


def test_submission_seeds_registry_and_subscribes_in_order() -> None:
    bus = EventBus()
    registry = JobRegistry(bus)
    backend = FakeBackend(job_ids=["a", "b", "c"])
    transport = FakeTransport()
    submitted: list[BatchSubmitted] = []
    bus.subscribe(BatchSubmitted, submitted.append)
    uc = SubmitBatchUseCase(backend, registry, lambda: transport, event_bus=bus)

    result = asyncio.run(uc.execute(ITEMS, ProcessingOptions(auto_save=True)))

    assert result.job_ids == ("a", "b", "c")
    assert result.pairs() == [("a", "one.pdf"), ("b", "two.pdf"), ("c", "three.pdf")]
    assert [(r.job_id, r.display_name, r.status) for r in registry.snapshot()] == [
        ("a", "one.pdf", JobStatus.PENDING),
        ("b", "two.pdf", JobStatus.PENDING),
        ("c", "three.pdf", JobStatus.PENDING),
    ]
    assert transport.subscribed == ["a", "b", "c"]
    assert backend.create_calls[0][1].auto_save is True
    assert submitted[0].job_ids == ("a", "b", "c")


def test_backend_failure_leaves_registry_untouched() -> None:
    registry = JobRegistry(EventBus())
    backend = FakeBackend(job_ids=["a", "b", "c"])
    backend.fail_with = http_error(502)
    transport = FakeTransport()
    uc = SubmitBatchUseCase(backend, registry, lambda: transport)

    with pytest.raises(SubmissionError) as exc:
        asyncio.run(uc.execute(ITEMS))

    assert exc.value.cause is backend.fail_with
    assert len(registry) == 0
    assert transport.subscribed == []


def test_not_connected_fails_before_any_backend_call() -> None:
    registry = JobRegistry(EventBus())
    backend = FakeBackend(job_ids=["a", "b", "c"])

    for provider in (lambda: None, lambda: FakeTransport(connected=False)):
        uc = SubmitBatchUseCase(backend, registry, provider)
        with pytest.raises(NotConnectedError):
            asyncio.run(uc.execute(ITEMS))

    assert backend.create_calls == []
    assert len(registry) == 0


def test_empty_batch_is_rejected() -> None:
    backend = FakeBackend()
    uc = SubmitBatchUseCase(backend, JobRegistry(EventBus()), lambda: FakeTransport())

    with pytest.raises(ValidationError):
        asyncio.run(uc.execute([]))

    assert backend.create_calls == []


def test_job_id_count_mismatch_is_a_submission_error() -> None:
    registry = JobRegistry(EventBus())
    uc = SubmitBatchUseCase(FakeBackend(job_ids=["a", "b"]), registry, lambda: FakeTransport())

    with pytest.raises(SubmissionError):
        asyncio.run(uc.execute(ITEMS))

    assert len(registry) == 0


def test_already_tracked_ids_are_a_submission_error() -> None:
    registry = JobRegistry(EventBus())
    registry.create("b", "old.pdf")
    transport = FakeTransport()
    uc = SubmitBatchUseCase(FakeBackend(job_ids=["a", "b", "c"]), registry, lambda: transport)

    with pytest.raises(SubmissionError):
        asyncio.run(uc.execute(ITEMS))

    assert [r.job_id for r in registry.snapshot()] == ["b"]
    assert transport.subscribed == []


def test_submission_joins_channels_over_a_live_session() -> None:
    async def scenario() -> None:
        bus = EventBus()
        registry = JobRegistry(bus)
        client = FakeSocketClient()
        session = TransportSession(
            fast_settings(), bus, keep_subscription=registry.is_active, client_factory=lambda _s: client
        )
        await session.connect()
        assert await session.wait_connected(1.0)
        uc = SubmitBatchUseCase(FakeBackend(job_ids=["x", "y", "z"]), registry, lambda: session)

        await uc.execute(ITEMS)

        assert client.sent(JOIN_TASK) == ["x", "y", "z"]
        await session.close()

    asyncio.run(scenario())


def test_session_closed_during_backend_call_is_not_an_error() -> None:
    async def scenario() -> None:
        bus = EventBus()
        registry = JobRegistry(bus)
        client = FakeSocketClient()
        session = TransportSession(
            fast_settings(), bus, keep_subscription=registry.is_active, client_factory=lambda _s: client
        )
        await session.connect()
        assert await session.wait_connected(1.0)
        backend = FakeBackend(job_ids=["x", "y", "z"])
        backend.on_create = session.close
        uc = SubmitBatchUseCase(backend, registry, lambda: session)

        result = await uc.execute(ITEMS)

        assert result.job_ids == ("x", "y", "z")
        assert [r.job_id for r in registry.snapshot()] == ["x", "y", "z"]
        assert client.sent(JOIN_TASK) == []

    asyncio.run(scenario())


def test_transport_released_during_backend_call_is_not_an_error() -> None:
    registry = JobRegistry(EventBus())
    holder: dict[str, FakeTransport | None] = {"transport": FakeTransport()}
    backend = FakeBackend(job_ids=["a", "b", "c"])

    async def release() -> None:
        holder["transport"] = None

    backend.on_create = release
    uc = SubmitBatchUseCase(backend, registry, lambda: holder["transport"])

    result = asyncio.run(uc.execute(ITEMS))

    assert len(result) == 3
    assert all(registry.is_active(j) for j in result.job_ids)
