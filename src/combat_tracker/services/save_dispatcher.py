"""Background persistence for a live combat session."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, List, Set, Tuple, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class SaveWarning:
    """A background save that failed; the in-memory state was kept."""

    label: str
    message: str


FailureCallback = Callable[[SaveWarning], None]


class SaveDispatcher:
    """
    Runs blocking persistence jobs off the event loop, one at a time.

    ``submit`` is fire-and-forget: failures are logged and recorded as
    warnings, never raised. ``run`` is an awaited checkpoint whose failure
    propagates to the caller. Every job, checkpoints included, is started as
    a task and queues on one FIFO lock, so jobs reach the store in the order
    they were issued and a checkpoint waits behind earlier submissions.
    """

    def __init__(self, on_failure: FailureCallback | None = None) -> None:
        self._on_failure = on_failure
        self._lock = asyncio.Lock()
        self._pending: Set[asyncio.Task[None]] = set()
        self._warnings: List[SaveWarning] = []
        self._latest_state_version = 0

    @property
    def warnings(self) -> Tuple[SaveWarning, ...]:
        return tuple(self._warnings)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def clear_warnings(self) -> None:
        self._warnings.clear()

    def submit(self, label: str, fn: Callable[..., Any], *args: Any) -> asyncio.Task[None]:
        """Schedule ``fn(*args)`` in a worker thread without waiting for it."""
        task = asyncio.create_task(self._run_job(label, fn, args))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def submit_state(
        self, version: int, label: str, fn: Callable[..., Any], *args: Any
    ) -> asyncio.Task[None] | None:
        """
        Schedule a bulk state save stamped with a snapshot version.

        A version not newer than the last one submitted is dropped, and a
        queued save is skipped if a newer one was submitted before it ran.
        """
        if version <= self._latest_state_version:
            logger.debug("Skipping stale state save v{} (latest v{})", version, self._latest_state_version)
            return None
        self._latest_state_version = version
        task = asyncio.create_task(self._run_state_job(version, label, fn, args))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def run(self, label: str, fn: Callable[..., T], *args: Any) -> T:
        """Run ``fn(*args)`` after every earlier job and return its result; errors propagate."""
        task = asyncio.create_task(self._run_checkpoint(label, fn, args))
        return await task

    async def flush(self) -> None:
        """Wait for every job submitted so far, including ones queued meanwhile."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _run_checkpoint(self, label: str, fn: Callable[..., T], args: Tuple[Any, ...]) -> T:
        async with self._lock:
            logger.debug("Running checkpoint '{}'", label)
            return await asyncio.to_thread(fn, *args)

    async def _run_job(self, label: str, fn: Callable[..., Any], args: Tuple[Any, ...]) -> None:
        async with self._lock:
            try:
                await asyncio.to_thread(fn, *args)
            except Exception as exc:
                self._record_failure(label, exc)

    async def _run_state_job(
        self, version: int, label: str, fn: Callable[..., Any], args: Tuple[Any, ...]
    ) -> None:
        async with self._lock:
            if version < self._latest_state_version:
                logger.debug("Dropping superseded state save v{}", version)
                return
            try:
                await asyncio.to_thread(fn, *args)
            except Exception as exc:
                self._record_failure(label, exc)

    def _record_failure(self, label: str, exc: Exception) -> None:
        warning = SaveWarning(label=label, message=f"{label} succeeded but failed to save: {exc}")
        self._warnings.append(warning)
        logger.warning("Background save '{}' failed: {}", label, exc)
        if self._on_failure is not None:
            self._on_failure(warning)
