"""Bounded-concurrency request queue with retry and cooperative cancellation.

Work items are zero-argument callables returning awaitables. At most
``max_concurrent`` of them run at once on the event loop; the rest wait in
FIFO order. Transient failures (rate limiting, network errors) are retried
with exponential backoff, and every wait is cut short by the item's cancel
token.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Generic, Optional, Set, TypeVar

import aiohttp

from ..common.logging_utils import extra_context, is_debug_enabled
from ..constants import Constants
from ..errors import CancellationError, FetchError, TransientFetchError
from .cancel import CancelToken, cancellable_sleep

logger = logging.getLogger(__name__)

T = TypeVar("T")

Work = Callable[[], Awaitable[T]]
SleepFn = Callable[[float, CancelToken], Awaitable[None]]


def is_transient_error(exc: BaseException) -> bool:
    """Return True for failures worth retrying: HTTP 429 and network-level errors."""
    if isinstance(exc, TransientFetchError):
        return True
    if isinstance(exc, FetchError):
        return exc.status == 429
    if isinstance(exc, aiohttp.ClientResponseError):
        return exc.status == 429
    return isinstance(
        exc,
        (
            aiohttp.ClientConnectionError,
            ConnectionResetError,
            ConnectionRefusedError,
            asyncio.TimeoutError,
            TimeoutError,
        ),
    )


def _record_attempts(exc: BaseException, attempts: int) -> None:
    try:
        setattr(exc, "attempts", attempts)
    except AttributeError:
        pass


@dataclass
class QueuedTask(Generic[T]):
    """A submitted work item, owned by the queue until its future settles."""

    work: Work
    cancel_token: CancelToken
    future: "asyncio.Future[T]"


class RequestQueue:
    """Runs asynchronous work with a concurrency limit, retries and cancellation."""

    def __init__(
        self,
        max_concurrent: int = Constants.QUEUE_MAX_CONCURRENT,
        max_retries: int = Constants.QUEUE_MAX_RETRIES,
        base_delay: float = Constants.QUEUE_BASE_RETRY_DELAY_MS / 1000,
        is_transient: Callable[[BaseException], bool] = is_transient_error,
        sleep: Optional[SleepFn] = None,
    ):
        """Initialize the queue.

        Args:
            max_concurrent: Maximum number of items running at once.
            max_retries: Retries after the first attempt for transient failures.
            base_delay: Backoff before the second attempt, in seconds; doubles
                for each further attempt.
            is_transient: Predicate deciding whether a failure is retried.
            sleep: Cancellable backoff wait, ``sleep(delay, token)``.
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")
        self._max_concurrent = max_concurrent
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._is_transient = is_transient
        self._sleep: SleepFn = sleep or cancellable_sleep
        self._waiting: Deque[QueuedTask[Any]] = deque()
        self._running = 0
        self._tasks: Set[asyncio.Task] = set()

    @property
    def queue_size(self) -> int:
        """Items waiting for admission."""
        return len(self._waiting)

    @property
    def running_count(self) -> int:
        """Items admitted and not yet settled."""
        return self._running

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    def enqueue(self, work: Work, cancel_token: Optional[CancelToken] = None) -> "asyncio.Future[T]":
        """Submit ``work`` and return a future settled exactly once with its outcome.

        Must be called from inside the running event loop.
        """
        loop = asyncio.get_running_loop()
        task: QueuedTask[Any] = QueuedTask(
            work=work,
            cancel_token=cancel_token or CancelToken(),
            future=loop.create_future(),
        )
        self._waiting.append(task)
        self._process()
        return task.future

    def abort_all(self, reason: str = "Request queue aborted") -> int:
        """Reject every waiting item with ``CancellationError``.

        Running items are left alone; cancel their tokens to stop them.

        Returns:
            Number of items rejected.
        """
        aborted = 0
        while self._waiting:
            task = self._waiting.popleft()
            if not task.future.done():
                task.future.set_exception(CancellationError(reason))
            aborted += 1
        if aborted:
            logger.info(
                "Aborted %d queued request(s)",
                aborted,
                extra=extra_context(event="queue_abort", component="request_queue", count=aborted),
            )
        return aborted

    def _process(self) -> None:
        while self._running < self._max_concurrent and self._waiting:
            task = self._waiting.popleft()
            if task.cancel_token.cancelled or task.future.done():
                if not task.future.done():
                    task.future.set_exception(
                        CancellationError(task.cancel_token.reason or "Request aborted")
                    )
                continue
            self._running += 1
            runner = asyncio.ensure_future(self._run(task))
            self._tasks.add(runner)
            runner.add_done_callback(self._tasks.discard)

    async def _run(self, task: QueuedTask[Any]) -> None:
        try:
            result = await self._execute_with_retry(task.work, task.cancel_token)
        except CancellationError as exc:
            if not task.future.done():
                task.future.set_exception(exc)
        except asyncio.CancelledError:
            if not task.future.done():
                task.future.set_exception(CancellationError("Request task cancelled"))
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            if task.future.done():
                pass
            elif task.cancel_token.cancelled:
                task.future.set_exception(
                    CancellationError(task.cancel_token.reason or "Request aborted")
                )
            else:
                task.future.set_exception(exc)
        else:
            if not task.future.done():
                task.future.set_result(result)
        finally:
            self._running -= 1
            self._process()

    async def _execute_with_retry(self, work: Work, token: CancelToken) -> Any:
        attempt = 0
        while True:
            attempt += 1
            token.raise_if_cancelled()
            try:
                return await work()
            except CancellationError:
                raise
            except Exception as exc:  # pylint: disable=broad-exception-caught
                if attempt > self._max_retries or not self._is_transient(exc):
                    _record_attempts(exc, attempt)
                    raise
                delay = self._base_delay * (2 ** (attempt - 1))
                logger.warning(
                    "Transient failure on attempt %d/%d: %s; retrying in %.2fs",
                    attempt,
                    self._max_retries + 1,
                    exc,
                    delay,
                    extra=extra_context(
                        event="retry",
                        component="request_queue",
                        outcome="transient_error",
                        attempt=attempt,
                        delay_s=delay,
                    ),
                )
                await self._sleep(delay, token)
                if is_debug_enabled(logger):
                    logger.debug(
                        "Backoff finished",
                        extra=extra_context(event="retry", component="request_queue", attempt=attempt + 1),
                    )
