from __future__ import annotations

import asyncio
import errno
import socket
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from migrator.logging import logger


T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]

# Host not reachable yet, typically while the database container is still starting.
_CONNECTION_ERRNOS = frozenset({errno.EHOSTUNREACH, errno.ENETUNREACH})


class ExecutionStrategy(Protocol):
    async def execute(self, operation: Operation[T]) -> T: ...


def is_transient_error(exc: BaseException) -> bool:
    """
    Connection-level failures worth re-running the whole operation for.

    Anything raised by the schema change or the seeder itself (constraint violations,
    programming errors) is not transient.
    """
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        return isinstance(exc, (OperationalError, InterfaceError))
    if isinstance(exc, (ConnectionError, TimeoutError, socket.gaierror)):
        return True
    return isinstance(exc, OSError) and exc.errno in _CONNECTION_ERRNOS


class NoRetryExecutionStrategy:
    async def execute(self, operation: Operation[T]) -> T:
        return await operation()


class RetryingExecutionStrategy:
    """
    Re-runs an operation sequentially while it fails with transient errors.

    The operation is re-invoked from the start, so it must be idempotent. The error of
    the final attempt, and any non-transient error, is raised unchanged.
    """

    def __init__(
        self,
        max_retries: int = 6,
        delay_ms: int = 1000,
        max_delay_ms: int = 30000,
        *,
        is_transient: Callable[[BaseException], bool] = is_transient_error,
        on_retry: Callable[[int, BaseException], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.delay_ms = delay_ms
        self.max_delay_ms = max_delay_ms
        self._is_transient = is_transient
        self._on_retry = on_retry
        self._sleep = sleep

    def delay_for(self, retry: int) -> float:
        """Seconds to wait before the given retry (1-based)."""
        return min(self.delay_ms * (2 ** (retry - 1)), self.max_delay_ms) / 1000.0

    async def execute(self, operation: Operation[T]) -> T:
        for attempt in range(self.max_retries + 1):
            try:
                return await operation()
            except Exception as e:  # noqa: BLE001
                if attempt >= self.max_retries or not self._is_transient(e):
                    raise
                retry = attempt + 1
                delay = self.delay_for(retry)
                logger.warning(
                    "transient_failure_retrying",
                    retry=retry,
                    max_retries=self.max_retries,
                    delay_s=delay,
                    error=repr(e),
                )
                if self._on_retry is not None:
                    self._on_retry(retry, e)
                await self._sleep(delay)
        raise AssertionError("unreachable")
