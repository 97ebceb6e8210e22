"""
Fork-join helper for the per-sample stages of the pipeline.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Sequence, TypeVar

import numpy as np

T = TypeVar("T")
R = TypeVar("R")


def partition(items: Sequence[T], num_parts: int) -> List[List[T]]:
    """Split items into at most `num_parts` contiguous, non-empty chunks."""
    num_parts = max(1, min(int(num_parts), len(items)))
    bounds = np.linspace(0, len(items), num_parts + 1).astype(int)
    return [list(items[start:stop]) for start, stop in zip(bounds[:-1], bounds[1:])]


def parallel_map(
    func: Callable[[T], Iterable[R]],
    items: Sequence[T],
    num_threads: int
) -> List[R]:
    """
    Apply `func` to every item on a fixed pool of threads.

    The items are partitioned into disjoint chunks, one per worker. Each
    worker collects the results of its chunk in a private list; the lists are
    concatenated once every worker has finished. Callers must not rely on the
    order of the returned results.

    Args:
        func: Function returning an iterable of results for one item
        items: Items to process
        num_threads: Number of worker threads

    Returns:
        Concatenated results of all items
    """
    items = list(items)
    if not items:
        return []

    def work(chunk: List[T]) -> List[R]:
        results = []
        for item in chunk:
            results.extend(func(item))
        return results

    chunks = partition(items, num_threads)
    if len(chunks) == 1:
        return work(chunks[0])

    with ThreadPoolExecutor(max_workers=len(chunks)) as executor:
        futures = [executor.submit(work, chunk) for chunk in chunks]
        outputs = [future.result() for future in futures]

    return [result for output in outputs for result in output]
