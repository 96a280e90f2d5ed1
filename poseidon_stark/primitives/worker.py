"""Fixed-size worker pool for data-parallel prover work.

Units of work (one column, one gate region, one leaf row) are independent and
only read shared trace data; results come back in submission order. `map`
returns after every unit has finished, which is the only synchronisation
point.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class Worker:
    """Thread pool handle; `num_threads=1` runs everything inline."""

    def __init__(self, num_threads: Optional[int] = None):
        if num_threads is None:
            num_threads = os.cpu_count() or 1
        if num_threads < 1:
            raise ValueError(f"num_threads must be positive, got {num_threads}")
        self.num_threads = num_threads

    def map(self, fn: Callable[[T], R], items: Iterable[T]) -> List[R]:
        items = list(items)
        if self.num_threads == 1 or len(items) <= 1:
            return [fn(item) for item in items]
        with ThreadPoolExecutor(max_workers=min(self.num_threads, len(items))) as pool:
            return list(pool.map(fn, items))

    def __repr__(self) -> str:
        return f"Worker(num_threads={self.num_threads})"
