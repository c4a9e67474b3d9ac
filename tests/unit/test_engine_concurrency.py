"""Concurrency tests for per-subject serialisation and version checks."""

import asyncio

import pytest

from stepflow import (
    Step,
    StorageUnavailable,
    VersionConflict,
    WorkflowDefinition,
    WorkflowEngine,
)
from stepflow.persistence import InMemoryProfileStore


def _definition() -> WorkflowDefinition:
    return WorkflowDefinition("signup", [Step("a"), Step("b"), Step("c")])


class SlowStore(InMemoryProfileStore):
    """Yields to the event loop between read and write to invite races."""

    def __init__(self, delay: float = 0.01) -> None:
        super().__init__()
        self.delay = delay
        self.saves = 0

    async def load(self, subject_id):
        state = await super().load(subject_id)
        await asyncio.sleep(self.delay)
        return state

    async def save(self, state, expected_version):
        await asyncio.sleep(self.delay)
        saved = await super().save(state, expected_version)
        self.saves += 1
        return saved


class AlwaysConflictingStore(InMemoryProfileStore):
    def __init__(self) -> None:
        super().__init__()
        self.attempts = 0

    async def save(self, state, expected_version):
        self.attempts += 1
        raise VersionConflict(state.subject_id, expected_version)


@pytest.mark.asyncio
async def test_concurrent_same_step_submissions_record_once():
    store = SlowStore()
    engine = WorkflowEngine(_definition(), store)
    payloads = [{"attempt": i} for i in range(10)]

    results = await asyncio.gather(
        *(engine.submit_step("u1", "a", p) for p in payloads)
    )

    assert all(r.success for r in results)
    state = await engine.get_instance("u1")
    assert state.completed_steps == ["a"]
    assert state.step_payloads["a"] in payloads
    assert state.version == len(payloads)
    # lock entries are dropped once nobody holds them
    assert len(engine._locks) == 0


@pytest.mark.asyncio
async def test_different_subjects_proceed_independently():
    engine = WorkflowEngine(_definition(), SlowStore())

    await asyncio.gather(
        *(engine.submit_step(f"user-{i}", "a", {"i": i}) for i in range(5))
    )

    for i in range(5):
        state = await engine.get_instance(f"user-{i}")
        assert state.completed_steps == ["a"]
        assert state.step_payloads["a"] == {"i": i}


@pytest.mark.asyncio
async def test_status_reads_see_consistent_snapshots():
    engine = WorkflowEngine(_definition(), SlowStore(delay=0.005))

    async def writer():
        for step in ("a", "b", "c"):
            await engine.submit_step("u1", step, {"step": step})

    async def reader():
        seen = []
        for _ in range(20):
            state = await engine.get_instance("u1")
            assert set(state.completed_steps) == set(state.step_payloads)
            seen.append(len(state.completed_steps))
            await asyncio.sleep(0.001)
        return seen

    _, seen = await asyncio.gather(writer(), reader())
    assert seen == sorted(seen)


@pytest.mark.asyncio
async def test_engines_sharing_a_store_resolve_conflicts():
    """Two engines model two processes writing through one store."""
    store = SlowStore()
    first = WorkflowEngine(_definition(), store)
    second = WorkflowEngine(_definition(), store)

    await asyncio.gather(
        first.submit_step("u1", "a", {"from": "first"}),
        second.submit_step("u1", "a", {"from": "second"}),
    )

    state = await first.get_instance("u1")
    assert state.completed_steps == ["a"]
    assert state.step_payloads["a"] in ({"from": "first"}, {"from": "second"})
    assert state.version == 2


@pytest.mark.asyncio
async def test_conflict_retries_are_bounded():
    store = AlwaysConflictingStore()
    engine = WorkflowEngine(_definition(), store, max_conflict_retries=2)

    with pytest.raises(VersionConflict) as excinfo:
        await engine.submit_step("u1", "a", {})

    assert isinstance(excinfo.value, StorageUnavailable)
    assert store.attempts == 3
    assert await store.load("u1") is None
