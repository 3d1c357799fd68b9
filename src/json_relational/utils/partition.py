"""Contiguous work partitioning shared by the parallel phases."""

from typing import List, Sequence, Tuple, TypeVar

T = TypeVar("T")


def partition(items: Sequence[T], parts: int) -> List[Tuple[int, List[T]]]:
    """
    Split ``items`` into ``parts`` contiguous chunks.

    Every chunk holds ``len(items) // parts`` items and the last one also
    absorbs the remainder. Empty chunks are omitted, so fewer than ``parts``
    chunks come back when there are fewer items than parts.

    Args:
        items: Sequence to split
        parts: Requested number of chunks (values below 1 count as 1)

    Returns:
        List of ``(start_offset, chunk)`` tuples in sequence order
    """
    parts = max(1, parts)
    size = len(items) // parts
    remainder = len(items) % parts
    chunks = []

    for part in range(parts):
        start = part * size
        count = size + remainder if part == parts - 1 else size
        if count > 0:
            chunks.append((start, list(items[start:start + count])))

    return chunks
