import asyncio
import time

import pytest

from core.state import SessionStatus
from interview_room.errors import NotFoundError
from interview_room.session.registry import SessionRegistry


@pytest.mark.asyncio
async def test_get_or_create_race_yields_single_session():
    registry = SessionRegistry()

    results = await asyncio.gather(*[registry.get_or_create("iv-race") for _ in range(25)])

    sessions = {id(session) for session, _ in results}
    created = [flag for _, flag in results if flag]
    assert len(sessions) == 1
    assert created == [True]
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_get_unknown_interview_raises_not_found():
    registry = SessionRegistry()
    with pytest.raises(NotFoundError):
        await registry.get("missing")


@pytest.mark.asyncio
async def test_sweep_removes_only_expired_completed_sessions():
    registry = SessionRegistry()
    now_ts = time.time()

    old, _ = await registry.get_or_create("old")
    old.status = SessionStatus.COMPLETED
    old.completed_at = now_ts - 7200

    recent, _ = await registry.get_or_create("recent")
    recent.status = SessionStatus.COMPLETED
    recent.completed_at = now_ts - 10

    live, _ = await registry.get_or_create("live")
    live.status = SessionStatus.ACTIVE

    removed = await registry.sweep_completed(retention_sec=3600, now_ts=now_ts)

    assert [session.interview_id for session in removed] == ["old"]
    assert {session.interview_id for session in await registry.all()} == {"recent", "live"}


@pytest.mark.asyncio
async def test_remove_returns_session_once():
    registry = SessionRegistry()
    await registry.get_or_create("iv-x")

    assert (await registry.remove("iv-x")).interview_id == "iv-x"
    assert await registry.remove("iv-x") is None
