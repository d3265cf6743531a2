"""
Fetch outcome types returned by the resilient fetcher.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union


class FailureKind(Enum):
    """Classification of a failed upstream fetch."""
    TIMEOUT = "timeout"              # attempt exceeded its deadline
    SERVER_ERROR = "server_error"    # upstream status >= 500
    TRANSPORT = "transport"          # connection reset, DNS, refused...
    CLIENT_ERROR = "client_error"    # any other non-2xx status
    MALFORMED = "malformed"          # declared JSON that does not parse

    @property
    def retryable(self) -> bool:
        return self in (FailureKind.TIMEOUT, FailureKind.SERVER_ERROR, FailureKind.TRANSPORT)


@dataclass(frozen=True)
class FetchSuccess:
    """Upstream answered with a usable representation."""
    payload: Any
    status: int
    content_type: str = ""
    structured: bool = False
    attempts: int = 1

    ok = True


@dataclass(frozen=True)
class FetchFailure:
    """Upstream fetch failed; never cached."""
    reason: str
    kind: FailureKind
    status: Optional[int] = None
    attempts: int = 1
    exhausted: bool = False

    ok = False

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


FetchOutcome = Union[FetchSuccess, FetchFailure]
