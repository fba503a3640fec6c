"""Best-effort execution helpers.

Every upstream call in the pipeline goes through :func:`with_timeout`, which
races the call against a timer and hands back a :class:`SourceResult` instead
of raising. Callers choose the fallback value at the call site.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Generic, Optional, TypeVar

from ..errors import ProviderUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SourceStatus(str, Enum):
    OK = "ok"
    PARTIAL = "partial"
    TIMEOUT = "timeout"
    ERROR = "error"
    DISABLED = "disabled"


@dataclass(frozen=True)
class SourceResult(Generic[T]):
    value: T
    status: SourceStatus = SourceStatus.OK
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is SourceStatus.OK

    @property
    def degraded(self) -> bool:
        return self.status is not SourceStatus.OK

    @classmethod
    def success(cls, value: T) -> "SourceResult[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, value: T, status: SourceStatus, reason: str) -> "SourceResult[T]":
        return cls(value=value, status=status, reason=reason)


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: float,
    fallback: T,
    *,
    source: str,
) -> SourceResult[T]:
    """Await ``awaitable`` for at most ``timeout`` seconds.

    Timeouts, provider errors and unexpected exceptions all resolve to
    ``fallback`` with a non-ok status; nothing propagates. The slow call is
    cancelled, so a late result is never observed.
    """

    try:
        value = await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.debug("%s timed out after %.2fs", source, timeout)
        return SourceResult.failed(fallback, SourceStatus.TIMEOUT, f"timed out after {timeout:g}s")
    except ProviderUnavailable as exc:
        return SourceResult.failed(fallback, SourceStatus.DISABLED, str(exc))
    except Exception as exc:  # noqa: BLE001
        logger.debug("%s failed: %s", source, exc)
        return SourceResult.failed(fallback, SourceStatus.ERROR, str(exc) or exc.__class__.__name__)
    return SourceResult.success(value)


async def run_source(
    awaitable: Awaitable[SourceResult[T]],
    timeout: float,
    fallback: T,
    *,
    source: str,
) -> SourceResult[T]:
    """Like :func:`with_timeout` for fetchers that already report a SourceResult."""

    outcome = await with_timeout(awaitable, timeout, None, source=source)
    if outcome.ok and outcome.value is not None:
        return outcome.value
    return SourceResult.failed(fallback, outcome.status, outcome.reason or "no result")


__all__ = ["SourceStatus", "SourceResult", "with_timeout", "run_source"]
