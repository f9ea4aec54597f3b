from __future__ import annotations

import pytest

from jobtrack.core.errors import DuplicateJobError
from jobtrack.core.events import EventBus
from jobtrack.core.events.job_events import JobsSeeded, RegistryChanged, RegistryCleared
from jobtrack.core.jobs import EventKind, JobRegistry, JobStatus, JobUpdate


def test_create_inserts_pending_record() -> None:
    reg = JobRegistry(EventBus())

    rec = reg.create("j1", "invoice-1.pdf")

    assert rec.status is JobStatus.PENDING
    assert rec.progress == 0
    assert rec.updates == []
    assert "j1" in reg
    assert len(reg) == 1


def test_create_rejects_duplicate_ids() -> None:
    reg = JobRegistry(EventBus())
    reg.create("j1", "a.pdf")

    with pytest.raises(DuplicateJobError):
        reg.create("j1", "again.pdf")

    rec = reg.get("j1")
    assert rec is not None
    assert rec.display_name == "a.pdf"


def test_create_many_is_all_or_nothing() -> None:
    reg = JobRegistry(EventBus())
    reg.create("j2", "existing.pdf")

    with pytest.raises(DuplicateJobError):
        reg.create_many([("j1", "a.pdf"), ("j2", "b.pdf"), ("j3", "c.pdf")])

    assert [r.job_id for r in reg.snapshot()] == ["j2"]


def test_snapshot_keeps_insertion_order_during_processing() -> None:
    reg = JobRegistry(EventBus())
    reg.create_many([("b", "b.pdf"), ("a", "a.pdf"), ("c", "c.pdf")])

    reg.apply_update(JobUpdate(job_id="c", kind=EventKind.COMPLETE, progress=100))
    reg.apply_update(JobUpdate(job_id="a", kind=EventKind.PROGRESS, progress=70))

    assert [r.job_id for r in reg.snapshot()] == ["b", "a", "c"]


def test_get_and_snapshot_return_copies() -> None:
    reg = JobRegistry(EventBus())
    reg.create("a", "a.pdf")
    reg.apply_update(JobUpdate(job_id="a", kind=EventKind.PROGRESS, progress=5, raw={"n": 1}))

    rec = reg.get("a")
    assert rec is not None
    rec.updates.append({"mutated": True})
    rec.progress = 99
    reg.snapshot()[0].updates.clear()

    fresh = reg.get("a")
    assert fresh is not None
    assert fresh.progress == 5
    assert fresh.updates == [{"n": 1}]


def test_apply_update_for_untracked_job_returns_none() -> None:
    reg = JobRegistry(EventBus())

    assert reg.apply_update(JobUpdate(job_id="ghost", kind=EventKind.PROGRESS, progress=10)) is None
    assert len(reg) == 0


def test_registry_enforces_terminal_state_regardless_of_candidate() -> None:
    reg = JobRegistry(EventBus())
    reg.create("j", "x.pdf")
    reg.apply_update(JobUpdate(job_id="j", kind=EventKind.ERROR, error="boom"))

    outcome = reg.apply_update(
        JobUpdate(job_id="j", kind=EventKind.COMPLETE, progress=100, result={"ok": True}, raw={"late": 1})
    )

    assert outcome is not None
    assert not outcome.applied
    rec = reg.get("j")
    assert rec is not None
    assert rec.status is JobStatus.FAILED
    assert rec.error == "boom"
    assert rec.result is None
    assert rec.progress == 0
    assert rec.updates[-1] == {"late": 1}


def test_mutations_are_published_on_the_bus() -> None:
    bus = EventBus()
    reg = JobRegistry(bus)
    seeded: list[JobsSeeded] = []
    changes: list[RegistryChanged] = []
    cleared: list[RegistryCleared] = []
    bus.subscribe(JobsSeeded, seeded.append)
    bus.subscribe(RegistryChanged, changes.append)
    bus.subscribe(RegistryCleared, cleared.append)

    reg.create_many([("a", "a.pdf"), ("b", "b.pdf")])
    reg.apply_update(JobUpdate(job_id="b", kind=EventKind.PROGRESS, progress=10))
    reg.clear()

    assert seeded[0].job_ids == ("a", "b")
    assert [c.job_ids for c in changes] == [("a", "b"), ("b",)]
    assert [c.revision for c in changes] == [1, 2]
    assert cleared[0].job_ids == ("a", "b")
    assert cleared[0].revision == 3


def test_clear_forgets_local_jobs() -> None:
    reg = JobRegistry(EventBus())
    reg.create_many([("a", "a.pdf"), ("b", "b.pdf")])

    dropped = reg.clear()

    assert dropped == ["a", "b"]
    assert reg.snapshot() == []
    assert not reg.is_active("a")
    # ids can be tracked again after a clear
    reg.create("a", "a.pdf")
    assert reg.is_active("a")
