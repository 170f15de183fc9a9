"""Interval algebra over time ranges: merging deletions and computing what is kept."""

from typing import Iterable

from wordcut.models import TimeRange


def merge_ranges(ranges: Iterable[TimeRange]) -> list[TimeRange]:
    """Sort and merge overlapping ranges.

    Touching ranges (``b.start == a.end``) are merged too, so adjacent word
    deletions never leave a zero-width gap between them.
    """
    ordered = sorted(ranges, key=lambda r: r.start)
    if not ordered:
        return []

    merged: list[TimeRange] = [ordered[0]]
    for current in ordered[1:]:
        last = merged[-1]
        if current.start <= last.end:
            merged[-1] = TimeRange(start=last.start, end=max(last.end, current.end))
        else:
            merged.append(current)
    return merged


def kept_ranges(duration: float, deleted: Iterable[TimeRange]) -> list[TimeRange]:
    """Return the parts of ``[0, duration]`` not covered by any deleted range."""
    merged = merge_ranges(deleted)
    if not merged:
        return [TimeRange(start=0.0, end=duration)]

    kept: list[TimeRange] = []
    cursor = 0.0
    for gap in merged:
        if cursor < gap.start:
            kept.append(TimeRange(start=cursor, end=gap.start))
        cursor = gap.end

    # Trailing keep region
    if cursor < duration:
        kept.append(TimeRange(start=cursor, end=duration))
    return kept


def total_duration(ranges: Iterable[TimeRange]) -> float:
    return sum(r.duration for r in ranges)
