"""Rate-limit primitives: counter windows, backend interface, exceptions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Scopes
# ---------------------------------------------------------------------------

SCOPE_CLIENT = "client"
SCOPE_HOUR = "hour"
SCOPE_DAY = "day"

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RateLimited(Exception):
    """Raised when a request exceeds one of the rate-limit windows."""

    def __init__(self, message: str, *, scope: str = SCOPE_CLIENT) -> None:
        super().__init__(message)
        self.scope = scope


class RateLimiterUnavailable(Exception):
    """Raised when the counter store cannot be reached during a check.

    The limiter fails closed: no request is admitted without a counted
    slot.
    """


# ---------------------------------------------------------------------------
# Counter windows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CounterWindow:
    """One bucketed counter checked for a request.

    Attributes:
        scope: ``client`` | ``hour`` | ``day``.
        key: Store key, already including the bucket id.
        ceiling: Maximum admitted requests in the bucket.
        ttl_ms: Expiry set on the key after every increment.
    """

    scope: str
    key: str
    ceiling: int
    ttl_ms: int


# ---------------------------------------------------------------------------
# Abstract backend
# ---------------------------------------------------------------------------


class CounterBackend(ABC):
    """Interface for rate-limit counter stores."""

    @abstractmethod
    async def check_and_increment(
        self, windows: Sequence[CounterWindow]
    ) -> int | None:
        """Atomically admit a request against every window.

        If any window's ``current + 1`` exceeds its ceiling, nothing is
        incremented and the index of the *first* such window is returned.
        Otherwise every counter is incremented, its expiry refreshed, and
        ``None`` is returned.

        Raises:
            RateLimiterUnavailable: when the store cannot be reached.
        """

    @abstractmethod
    async def get_counts(self, keys: Sequence[str]) -> list[int]:
        """Return the current count for each key (``0`` when absent)."""

    @abstractmethod
    async def aclose(self) -> None:
        """Release any resources held by the backend."""
