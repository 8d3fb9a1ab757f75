from __future__ import annotations

"""Thread-parallel loops with per-worker resources.

Workers are Python threads; the heavy kernels release the GIL (numba
`nogil=True`). Each worker is identified by a rank in `[0, nthreads)` and
pulls chunks of a flat index range from a shared cursor:

- `dynamic`: fixed-size chunks
- `guided`: chunks of `remaining / nthreads`, never below the minimum chunk

BLAS is limited to one thread inside parallel regions.
"""

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
import contextlib
import os
import threading
from typing import Any, Iterator

from threadpoolctl import threadpool_limits

from compjk.eri.engine import EngineFamily

SCHEDULES = ("dynamic", "guided")


def default_num_threads() -> int:
    """Worker count from `COMPJK_NUM_THREADS`, else the CPU count."""

    v = os.environ.get("COMPJK_NUM_THREADS", "").strip()
    if v:
        n = int(v)
        if n < 1:
            raise ValueError("COMPJK_NUM_THREADS must be >= 1")
        return n
    return int(os.cpu_count() or 1)


@contextlib.contextmanager
def blas_thread_limit(n: int) -> Iterator[None]:
    """Temporarily limit BLAS threads for this process."""

    n = int(n)
    if n < 1:
        raise ValueError("BLAS thread limit must be >= 1")
    with threadpool_limits(limits=n, user_api="blas"):
        yield


class _Cursor:
    def __init__(self, n: int, nthreads: int, schedule: str, chunk: int) -> None:
        self.n = int(n)
        self.nthreads = int(nthreads)
        self.schedule = schedule
        self.chunk = max(1, int(chunk))
        self.pos = 0
        self.lock = threading.Lock()

    def next(self) -> tuple[int, int] | None:
        with self.lock:
            start = self.pos
            if start >= self.n:
                return None
            if self.schedule == "guided":
                size = max(self.chunk, (self.n - start) // self.nthreads)
            else:
                size = self.chunk
            stop = min(self.n, start + size)
            self.pos = stop
            return start, stop


class WorkerPool:
    """Worker-rank indexed engines plus a chunked parallel-for.

    Parameters
    ----------
    nthreads : int
        Number of workers.
    engines : dict
        One canonical engine per `EngineFamily`; rank 0 keeps the canonical
        instance, every other rank gets a `clone()`.
    """

    def __init__(self, nthreads: int, engines: dict[EngineFamily, Any] | None = None) -> None:
        nthreads = int(nthreads)
        if nthreads < 1:
            raise ValueError("nthreads must be >= 1")
        self.nthreads = nthreads
        self._engines: dict[EngineFamily, list[Any]] = {}
        for family, engine in (engines or {}).items():
            self.add(family, engine)

    def add(self, family: EngineFamily, engine: Any) -> None:
        self._engines[family] = [engine] + [engine.clone() for _ in range(self.nthreads - 1)]

    def __contains__(self, family: EngineFamily) -> bool:
        return family in self._engines

    def engines(self, family: EngineFamily) -> list[Any]:
        return self._engines[family]

    def engine(self, family: EngineFamily, rank: int) -> Any:
        return self._engines[family][int(rank)]

    def parallel_for(
        self,
        n: int,
        body: Callable[[int, int, int], Any],
        *,
        schedule: str = "dynamic",
        chunk: int = 1,
    ) -> list[Any]:
        """Run `body(rank, start, stop)` over `[0, n)` in chunks.

        Returns the chunk results ordered by `start`, independent of which
        worker ran them. An exception raised by `body` propagates after all
        workers have stopped.
        """

        if schedule not in SCHEDULES:
            raise ValueError(f"schedule must be one of {SCHEDULES}")
        n = int(n)
        if n <= 0:
            return []
        nworkers = min(self.nthreads, n)
        cursor = _Cursor(n, nworkers, schedule, chunk)

        def worker(rank: int) -> list[tuple[int, Any]]:
            out: list[tuple[int, Any]] = []
            while True:
                span = cursor.next()
                if span is None:
                    return out
                out.append((span[0], body(rank, span[0], span[1])))

        if nworkers == 1:
            results = worker(0)
        else:
            results = []
            with blas_thread_limit(1), ThreadPoolExecutor(max_workers=nworkers) as pool:
                futs = [pool.submit(worker, rank) for rank in range(nworkers)]
                for fut in futs:
                    results.extend(fut.result())
        results.sort(key=lambda item: item[0])
        return [val for _start, val in results]


__all__ = ["SCHEDULES", "WorkerPool", "blas_thread_limit", "default_num_threads"]
