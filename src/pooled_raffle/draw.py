from __future__ import annotations

from bisect import bisect_right
from typing import List, Sequence

from .errors import RangeInvariantViolation
from .ledger import WeightedRange
from .project_constants import USD_UNIT


def to_usd(value: int) -> float:
    return round(value / USD_UNIT, 2)


def check_partition(ranges: Sequence[WeightedRange], pool_usd: int) -> None:
    """Ranges must be contiguous from 0, non-empty and end exactly at pool_usd."""
    cursor = 0
    for i, r in enumerate(ranges):
        if r.start != cursor or r.end <= r.start:
            raise RangeInvariantViolation(
                f"Range {i} [{r.start}, {r.end}) breaks the partition at {cursor}"
            )
        cursor = r.end
    if cursor != pool_usd:
        raise RangeInvariantViolation(
            f"Ranges cover [0, {cursor}) but pool is {pool_usd}"
        )


def compute_point(random_word: int, pool_usd: int) -> int:
    if pool_usd <= 0:
        raise RangeInvariantViolation("Cannot draw from an empty pool.")
    return random_word % pool_usd


def find_winner(ranges: List[WeightedRange], point: int) -> WeightedRange:
    ends = [r.end for r in ranges]
    idx = bisect_right(ends, point)
    if idx >= len(ranges) or not ranges[idx].start <= point < ranges[idx].end:
        raise RangeInvariantViolation(f"No range contains draw point {point}.")
    return ranges[idx]


def resolve(ranges: List[WeightedRange], random_word: int, pool_usd: int) -> str:
    """Maps a random word onto the weighted partition and returns the depositor."""
    return find_winner(ranges, compute_point(random_word, pool_usd)).depositor
