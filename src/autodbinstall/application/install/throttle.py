"""
Throttled parallel execution engine.

Runs one unit of work per item with at most ``limit`` units in flight and
yields results as they complete. A failing unit never cancels or delays the
others: exceptions are converted into results through ``on_error``.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Generic, Iterable, Iterator, TypeVar

from autodbinstall.domain.settings import DEFAULT_THROTTLE

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class KeyedLocks:
    """One lock per key; serialises units that share a key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())


class ThrottledRunner(Generic[T, R]):
    """
    Bounded-concurrency runner.

    Usage:
        runner = ThrottledRunner(work_fn, key_fn, on_error, limit=10)
        for result in runner.run(items):
            ...
    """

    def __init__(self, work_fn: Callable[[T], R], key_fn: Callable[[T], str],
                 on_error: Callable[[T, BaseException], R], limit: int = DEFAULT_THROTTLE) -> None:
        if limit < 1:
            raise ValueError("Throttle must be at least 1")
        self.work_fn = work_fn
        self.key_fn = key_fn
        self.on_error = on_error
        self.limit = limit
        self._locks = KeyedLocks()

    def run(self, items: Iterable[T]) -> Iterator[R]:
        """Yield one result per item, in completion order."""
        items = list(items)
        if not items:
            return
        if len(items) == 1:
            # Single unit runs inline without pool overhead
            yield self._run_single(items[0])
            return

        workers = min(self.limit, len(items))
        logger.info("Processing %d targets with throttle %d", len(items), workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="install") as pool:
            pending: dict[Future, T] = {pool.submit(self._run_single, item): item for item in items}
            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    item = pending.pop(future)
                    try:
                        yield future.result()
                    except Exception as exc:  # pylint: disable=broad-except
                        # _run_single already converts errors; this only fires if on_error raised
                        logger.error("Unit for %s failed outside its boundary: %s", self.key_fn(item), exc)
                        yield self.on_error(item, exc)

    def _run_single(self, item: T) -> R:
        """Execute a single unit under its key lock."""
        key = self.key_fn(item)
        with self._locks.get(key):
            try:
                return self.work_fn(item)
            except Exception as exc:  # pylint: disable=broad-except
                logger.exception("Unexpected failure while processing %s", key)
                return self.on_error(item, exc)
