"""
The worker pool shared by every phase of a judging session.
"""
import contextlib
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Iterator, TypeVar

log = logging.getLogger(__name__)

_T = TypeVar('_T')
_R = TypeVar('_R')


class WorkerPool:
    """Bounds the number of units of work (an unpack, a file scan, or the
    complete judging of one submission) in flight at any time.

    A single pool is meant to be shared by all phases of a session, so
    the bound is global rather than per phase.  The active and peak
    counters are kept for diagnostics and tests.
    """

    def __init__(self, threads: int) -> None:
        self.threads = max(1, threads)
        self._semaphore = threading.BoundedSemaphore(self.threads)
        self._lock = threading.Lock()
        self.active = 0
        self.peak = 0

    @contextlib.contextmanager
    def permit(self) -> Iterator[None]:
        """Hold one permit for the duration of the with block."""
        self._semaphore.acquire()
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            yield
        finally:
            with self._lock:
                self.active -= 1
            self._semaphore.release()

    def map(self, job: Callable[[_T], _R], items: Iterable[_T]) -> list[_R]:
        """Run job on every item concurrently, each under a permit.

        Results are returned in the order of items.  An exception raised
        by a job is re-raised here once all jobs have finished.
        """
        items = list(items)
        if not items:
            return []
        with ThreadPoolExecutor(min(self.threads, len(items))) as executor:
            futures = [executor.submit(self._guarded, job, item) for item in items]
        return [future.result() for future in futures]

    def _guarded(self, job: Callable[[_T], _R], item: _T) -> _R:
        with self.permit():
            return job(item)
