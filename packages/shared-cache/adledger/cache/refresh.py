"""Background refresh pool and in-process single-flight."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RefreshWorkerPool:
    """Bounded thread pool for background refreshes.

    Callers never wait on submitted tasks. A failing task is logged from the
    worker thread before its future completes, so `wait_idle` returning means
    every task, including its error handling, has finished.

    Example:
        pool = RefreshWorkerPool(max_workers=4)
        pool.submit("hotel_1/meta/2026-10", refresh, key)
        ...
        pool.shutdown()
    """

    def __init__(self, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="refresh")
        self._pending = 0
        self._idle = threading.Condition()

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        with self._idle:
            self._pending += 1
        try:
            future = self._executor.submit(self._run, name, fn, *args, **kwargs)
        except RuntimeError:
            self._task_done()
            raise
        logger.debug(f"Scheduled refresh {name}")
        return future

    def _run(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            logger.error(f"Refresh {name} failed: {type(e).__name__}: {e}")
            raise
        finally:
            self._task_done()
        logger.debug(f"Refresh {name} completed")
        return result

    def _task_done(self) -> None:
        with self._idle:
            self._pending -= 1
            self._idle.notify_all()

    @property
    def pending(self) -> int:
        with self._idle:
            return self._pending

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every submitted refresh has finished. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class SingleFlight:
    """Collapse concurrent calls for the same key into one execution.

    The first caller runs the function; callers arriving while it runs get
    its result (or its exception). Once it finishes the key is forgotten.
    """

    def __init__(self) -> None:
        self._calls: dict[Hashable, Future] = {}
        self._lock = threading.Lock()

    def do(self, key: Hashable, fn: Callable[[], T]) -> T:
        with self._lock:
            future = self._calls.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._calls[key] = future

        if not leader:
            return future.result()

        try:
            result = fn()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                del self._calls[key]

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._calls
