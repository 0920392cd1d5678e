from __future__ import annotations

import threading
import time
from typing import List

import pytest

from combat_tracker.services.errors import PersistenceError
from combat_tracker.services.save_dispatcher import SaveDispatcher, SaveWarning


@pytest.mark.asyncio
async def test_submitted_jobs_run_in_order_off_the_loop() -> None:
    dispatcher = SaveDispatcher()
    calls: List[int] = []
    threads: List[int] = []

    def _job(value: int) -> None:
        threads.append(threading.get_ident())
        calls.append(value)

    for value in range(5):
        dispatcher.submit("job", _job, value)
    await dispatcher.flush()

    assert calls == [0, 1, 2, 3, 4]
    assert threading.get_ident() not in threads
    assert dispatcher.pending_count == 0


@pytest.mark.asyncio
async def test_failed_background_save_becomes_warning() -> None:
    received: List[SaveWarning] = []
    dispatcher = SaveDispatcher(on_failure=received.append)

    def _fail() -> None:
        raise PersistenceError("disk full")

    dispatcher.submit("Initiative roll", _fail)
    await dispatcher.flush()

    assert len(dispatcher.warnings) == 1
    assert dispatcher.warnings[0].label == "Initiative roll"
    assert "failed to save" in dispatcher.warnings[0].message
    assert "disk full" in dispatcher.warnings[0].message
    assert received == list(dispatcher.warnings)

    dispatcher.clear_warnings()
    assert dispatcher.warnings == ()


@pytest.mark.asyncio
async def test_stale_state_saves_are_dropped() -> None:
    dispatcher = SaveDispatcher()
    written: List[int] = []

    dispatcher.submit_state(2, "state", written.append, 2)
    assert dispatcher.submit_state(2, "state", written.append, 2) is None
    assert dispatcher.submit_state(1, "state", written.append, 1) is None
    dispatcher.submit_state(3, "state", written.append, 3)
    await dispatcher.flush()

    # v2 was superseded by v3 before it reached the store.
    assert written == [3]


@pytest.mark.asyncio
async def test_run_returns_result_and_propagates_errors() -> None:
    dispatcher = SaveDispatcher()

    assert await dispatcher.run("sum", sum, [1, 2, 3]) == 6

    def _fail() -> None:
        raise PersistenceError("unreadable")

    with pytest.raises(PersistenceError):
        await dispatcher.run("load", _fail)
    assert dispatcher.warnings == ()


@pytest.mark.asyncio
async def test_checkpoint_waits_for_earlier_submissions() -> None:
    dispatcher = SaveDispatcher()
    order: List[str] = []

    def _slow(name: str) -> None:
        time.sleep(0.05)
        order.append(name)

    dispatcher.submit("delete", _slow, "background")
    dispatcher.submit_state(1, "state", _slow, "state")
    await dispatcher.run("insert", order.append, "checkpoint")

    assert order == ["background", "state", "checkpoint"]
    assert dispatcher.pending_count == 0


@pytest.mark.asyncio
async def test_failed_checkpoint_still_runs_after_earlier_submissions() -> None:
    dispatcher = SaveDispatcher()
    order: List[str] = []

    def _fail() -> None:
        order.append("checkpoint")
        raise PersistenceError("clash")

    dispatcher.submit("delete", order.append, "background")
    with pytest.raises(PersistenceError):
        await dispatcher.run("insert", _fail)

    assert order == ["background", "checkpoint"]
