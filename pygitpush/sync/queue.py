"""Single-consumer work queue for mutating requests."""

import logging
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SerialWriteQueue:
    """Runs submitted callables one at a time, in submission order.

    At most one write is in flight at any moment. Use as a context manager
    so the worker thread is shut down with the sync:

        with SerialWriteQueue() as queue:
            futures = [queue.submit(upload, item) for item in batch]
            results = queue.drain(futures)
    """

    def __init__(self, name: str = "pygitpush-write"):
        self.name = name
        self._executor: Optional[ThreadPoolExecutor] = None
        self.submitted = 0

    def __enter__(self) -> "SerialWriteQueue":
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=self.name
        )
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close(cancel_pending=exc_type is not None)

    def close(self, cancel_pending: bool = False) -> None:
        """Shut the worker down, optionally dropping queued items."""
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=cancel_pending)
            self._executor = None

    def submit(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> "Future[T]":
        """Queue ``fn(*args, **kwargs)`` behind every earlier submission."""
        if self._executor is None:
            raise RuntimeError("SerialWriteQueue is not running")
        self.submitted += 1
        return self._executor.submit(fn, *args, **kwargs)

    def drain(self, futures: Iterable["Future[T]"]) -> list[T]:
        """Wait for futures in order and return their results.

        The first failure is re-raised; items queued after it are
        cancelled.
        """
        pending = list(futures)
        results: list[T] = []
        for index, future in enumerate(pending):
            try:
                results.append(future.result())
            except BaseException:
                cancelled = sum(1 for f in pending[index + 1 :] if f.cancel())
                if cancelled:
                    logger.debug(f"Cancelled {cancelled} queued write(s)")
                raise
        return results
