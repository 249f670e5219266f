import asyncio

import pytest

from core.state import StressLevel
from interview_room.errors import ConflictError
from interview_room.policy import ReassurancePolicy
from interview_room.session.actor import SessionActor


def test_reassurance_only_considered_under_high_stress():
    policy = ReassurancePolicy(probability=1.0)
    assert policy.should_reassure(StressLevel.LOW) is False
    assert policy.should_reassure(StressLevel.MEDIUM) is False
    assert policy.should_reassure(StressLevel.HIGH) is True


def test_reassurance_probability_edges_are_fixed():
    never = ReassurancePolicy(probability=0.0)
    assert not any(never.should_reassure(StressLevel.HIGH) for _ in range(50))


def test_seeded_policy_is_reproducible():
    first = ReassurancePolicy(probability=0.5, seed=42)
    second = ReassurancePolicy(probability=0.5, seed=42)

    draws_a = [first.should_reassure(StressLevel.HIGH) for _ in range(30)]
    draws_b = [second.should_reassure(StressLevel.HIGH) for _ in range(30)]
    assert draws_a == draws_b
    assert True in draws_a and False in draws_a


@pytest.mark.asyncio
async def test_actor_runs_jobs_one_at_a_time_in_order():
    actor = SessionActor()
    trace: list[str] = []

    def _job(name: str):
        async def _run():
            trace.append(f"start:{name}")
            await asyncio.sleep(0.01)
            trace.append(f"end:{name}")
            return name

        return _run

    results = await asyncio.gather(*[actor.submit(_job(str(i))) for i in range(5)])

    assert results == ["0", "1", "2", "3", "4"]
    for i in range(5):
        assert trace[2 * i] == f"start:{i}"
        assert trace[2 * i + 1] == f"end:{i}"
    await actor.stop()


@pytest.mark.asyncio
async def test_actor_survives_failing_job():
    actor = SessionActor()

    async def _boom():
        raise RuntimeError("handler bug")

    async def _ok():
        return "still alive"

    with pytest.raises(RuntimeError):
        await actor.submit(_boom)
    assert await actor.submit(_ok) == "still alive"
    await actor.stop()


@pytest.mark.asyncio
async def test_stopped_actor_rejects_jobs():
    actor = SessionActor()
    await actor.stop()

    async def _job():
        return 1

    with pytest.raises(ConflictError):
        await actor.submit(_job)
