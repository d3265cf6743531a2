"""
Test helper functions and fakes for the caching proxy.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Union

import httpx


class FakeClock:
    """Manually advanced clock usable wherever a ``time.time``-style callable is expected."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemorySharedCache:
    """Shared-tier stand-in honoring the get/set/delete/clear_all contract."""

    def __init__(self):
        self.data: Dict[str, bytes] = {}
        self.ttls: Dict[str, float] = {}
        self.calls: List[tuple] = []

    async def get(self, key: str) -> Optional[bytes]:
        self.calls.append(("get", key))
        return self.data.get(key)

    async def set(self, key: str, value: bytes, ttl: float) -> None:
        self.calls.append(("set", key))
        self.data[key] = value
        self.ttls[key] = ttl

    async def delete(self, key: str) -> None:
        self.calls.append(("delete", key))
        self.data.pop(key, None)
        self.ttls.pop(key, None)

    async def clear_all(self) -> int:
        self.calls.append(("clear_all", None))
        removed = len(self.data)
        self.data.clear()
        self.ttls.clear()
        return removed

    async def ping(self) -> bool:
        return True


class UnavailableSharedCache:
    """Shared tier that fails every call, as an unreachable Redis would."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error or ConnectionError("shared cache unreachable")
        self.calls: List[str] = []

    async def _fail(self, operation: str):
        self.calls.append(operation)
        raise self.error

    async def get(self, key: str) -> Optional[bytes]:
        return await self._fail("get")

    async def set(self, key: str, value: bytes, ttl: float) -> None:
        await self._fail("set")

    async def delete(self, key: str) -> None:
        await self._fail("delete")

    async def clear_all(self) -> int:
        return await self._fail("clear_all")

    async def ping(self) -> bool:
        return await self._fail("ping")


class SleepRecorder:
    """Records requested backoff delays without actually waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


ScriptedReply = Union[httpx.Response, Exception, Callable[[httpx.Request], Any]]


class ScriptedUpstream:
    """``httpx.MockTransport`` handler replaying a scripted list of responses.

    Each entry is an ``httpx.Response`` to return, an exception to raise, or
    a (possibly async) callable producing one. The last entry repeats once
    the script runs out.
    """

    def __init__(self, *responses: ScriptedReply, delay: float = 0.0):
        if not responses:
            raise ValueError("at least one response is required")
        self.responses = list(responses)
        self.delay = delay
        self.requests: List[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        index = min(len(self.requests), len(self.responses) - 1)
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        entry = self.responses[index]
        if isinstance(entry, Exception):
            raise entry
        if callable(entry) and not isinstance(entry, httpx.Response):
            result = entry(request)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        # A Response is bound to the request it answers; copy per call
        return httpx.Response(entry.status_code, headers=entry.headers, content=entry.content)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), follow_redirects=True)
