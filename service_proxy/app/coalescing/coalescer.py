"""
Request coalescing for cache-miss thundering herd protection.
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

T = TypeVar("T")


@dataclass
class PendingFetch:
    """An in-flight producer invocation shared by every caller of ``key``."""
    key: str
    task: "asyncio.Task[Any]"
    created_at: float
    joined: int = 0


class RequestCoalescer:
    """At most one live producer invocation per key.

    The first caller for a key registers a :class:`PendingFetch` and starts
    the producer as a task; callers arriving before it settles await the
    same task and receive the very same result (or exception). The record
    is removed inside the task itself, before its result becomes visible,
    so no caller can attach to an already-settled fetch.

    Callers wait through :func:`asyncio.shield`: a caller that is cancelled
    stops waiting, but the shared fetch runs to completion for everyone
    else.
    """

    def __init__(self, *, metrics: Optional["MetricsCollector"] = None, clock: Callable[[], float] = time.monotonic):
        self.metrics = metrics
        self.logger = get_logger("proxy.coalescer")
        self._clock = clock
        self._pending: Dict[str, PendingFetch] = {}
        # Guards check-and-insert on the registry; never held across an await.
        self._lock = threading.Lock()
        self.invocations = 0
        self.joins = 0

    async def coalesce(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        """Run ``producer`` for ``key`` unless a run is already in flight."""
        with self._lock:
            record = self._pending.get(key)
            if record is None:
                task = asyncio.get_running_loop().create_task(self._run(key, producer))
                task.add_done_callback(self._on_done)
                record = PendingFetch(key=key, task=task, created_at=self._clock())
                self._pending[key] = record
                self.invocations += 1
                in_flight = len(self._pending)
                joined = False
            else:
                record.joined += 1
                self.joins += 1
                in_flight = len(self._pending)
                joined = True

        if joined:
            self.logger.debug("Joined in-flight fetch", cache_key=key, waiters=record.joined + 1)
        self._update_gauge(in_flight)

        return await asyncio.shield(record.task)

    async def _run(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        try:
            return await producer()
        finally:
            current = asyncio.current_task()
            with self._lock:
                record = self._pending.get(key)
                if record is not None and record.task is current:
                    del self._pending[key]
                in_flight = len(self._pending)
            self._update_gauge(in_flight)

    def _on_done(self, task: "asyncio.Task[Any]") -> None:
        # Retrieve the exception so asyncio does not report it as unhandled
        # when every waiter was cancelled; waiters surface it themselves.
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.debug("Coalesced producer raised", error=str(exc), error_type=type(exc).__name__)

    def _update_gauge(self, in_flight: int) -> None:
        if self.metrics:
            self.metrics.set_gauge("inflight_fetches", in_flight)

    def is_pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "in_flight": len(self._pending),
                "invocations": self.invocations,
                "joins": self.joins,
            }
