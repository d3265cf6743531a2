"""
Upstream fetcher with per-attempt timeout and exponential backoff.
"""

import asyncio
import dataclasses
from typing import Any, Awaitable, Callable, Optional, TYPE_CHECKING

import httpx

from shared.logging import get_logger
from shared.retry import RetryConfig, retry_async
from .outcome import FailureKind, FetchFailure, FetchOutcome, FetchSuccess

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


def is_json_content_type(content_type: str) -> bool:
    """Whether a Content-Type header declares a JSON body."""
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


class ResilientFetcher:
    """Fetch a resource by URL, retrying retryable failures.

    Performs up to ``max_retries + 1`` attempts. Each attempt is bounded by
    ``attempt_timeout`` seconds; between attempt ``i`` and ``i + 1`` the
    fetcher waits ``backoff_base * 2 ** i`` seconds. Only timeouts, transport
    failures and 5xx statuses are retried. The fetcher never raises for
    upstream problems and never touches a cache; it returns a
    :class:`FetchSuccess` or :class:`FetchFailure`.
    """

    def __init__(
        self,
        attempt_timeout: float,
        max_retries: int,
        backoff_base: float,
        *,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional["MetricsCollector"] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be positive")
        self.attempt_timeout = attempt_timeout
        self.retry_config = RetryConfig(
            max_retries=max_retries,
            base_delay=backoff_base,
            max_delay=float("inf"),
            exponential_base=2.0,
        )
        self.metrics = metrics
        self.logger = get_logger("proxy.fetcher")
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep

    @property
    def max_retries(self) -> int:
        return self.retry_config.max_retries

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=httpx.Timeout(self.attempt_timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the upstream HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> FetchOutcome:
        """Fetch ``url``, returning the final outcome with its attempt count."""
        outcome, attempts = await retry_async(
            lambda: self._attempt(url),
            should_retry=lambda result: not result.ok and result.retryable,
            config=self.retry_config,
            name="upstream_fetch",
            sleep=self._sleep,
        )

        if outcome.ok:
            return dataclasses.replace(outcome, attempts=attempts)

        exhausted = outcome.retryable
        self.logger.error(
            "Upstream fetch failed",
            url=url,
            reason=outcome.reason,
            kind=outcome.kind.value,
            status=outcome.status,
            attempts=attempts,
            exhausted=exhausted,
        )
        return dataclasses.replace(outcome, attempts=attempts, exhausted=exhausted)

    async def _attempt(self, url: str) -> FetchOutcome:
        """Run a single bounded attempt and classify its result."""
        client = self._get_client()
        try:
            response = await asyncio.wait_for(client.get(url), timeout=self.attempt_timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            outcome: FetchOutcome = FetchFailure(
                reason=f"Upstream request timed out after {self.attempt_timeout:g}s",
                kind=FailureKind.TIMEOUT,
            )
        except httpx.TransportError as exc:
            outcome = FetchFailure(
                reason=str(exc) or exc.__class__.__name__,
                kind=FailureKind.TRANSPORT,
            )
        except httpx.DecodingError as exc:
            outcome = FetchFailure(
                reason=f"Undecodable upstream body: {exc}",
                kind=FailureKind.MALFORMED,
            )
        except httpx.RequestError as exc:
            # Redirect loops and other request-level failures a retry cannot fix
            outcome = FetchFailure(
                reason=str(exc) or exc.__class__.__name__,
                kind=FailureKind.CLIENT_ERROR,
            )
        except httpx.InvalidURL as exc:
            outcome = FetchFailure(reason=str(exc), kind=FailureKind.CLIENT_ERROR)
        else:
            outcome = self._classify_response(response)

        self._record_attempt(outcome)
        if not outcome.ok:
            self.logger.warning(
                "Upstream attempt failed",
                url=url,
                reason=outcome.reason,
                kind=outcome.kind.value,
                status=outcome.status,
            )
        return outcome

    def _classify_response(self, response: httpx.Response) -> FetchOutcome:
        status = response.status_code
        if status >= 500:
            return FetchFailure(reason=f"HTTP {status}", kind=FailureKind.SERVER_ERROR, status=status)
        if not response.is_success:
            return FetchFailure(reason=f"HTTP {status}", kind=FailureKind.CLIENT_ERROR, status=status)

        content_type = response.headers.get("content-type", "")
        if is_json_content_type(content_type):
            try:
                payload = response.json()
            except ValueError:
                return FetchFailure(
                    reason="Upstream declared JSON but sent a malformed body",
                    kind=FailureKind.MALFORMED,
                    status=status,
                )
            return FetchSuccess(payload=payload, status=status, content_type=content_type, structured=True)

        return FetchSuccess(payload=response.text, status=status, content_type=content_type, structured=False)

    def _record_attempt(self, outcome: FetchOutcome) -> None:
        if not self.metrics:
            return
        result = "success" if outcome.ok else outcome.kind.value
        self.metrics.increment_counter("upstream_fetch_attempts_total", result=result)
