"""Editing session: the deletion history for one video and everything derived from it."""

import logging
import threading
from typing import Sequence

from wordcut import timeline
from wordcut.models import TimeRange, TranscriptWord

logger = logging.getLogger(__name__)


def _overlaps(word: TranscriptWord, r: TimeRange) -> bool:
    return word.end > r.start and word.start < r.end


class EditSession:
    """Holds the merged deletion history of a single video.

    History is always kept merged: every ``add_deletion`` re-merges the whole
    history, so ``undo_last`` removes the most recently *merged* range. If a
    new deletion joined an existing range, undo drops the joined range, not
    just the last click.

    Deletions are ordered and clipped to ``[0, total_duration]`` before they
    enter the history. A word whose recognized end precedes its start still
    yields a forward range, and a deletion wholly outside the video is dropped.

    Mutations are serialized by a lock and replace the history tuple in one
    assignment, so readers always get a complete snapshot. Kept ranges and
    deleted word counts are recomputed on every call.
    """

    def __init__(self, total_duration: float):
        self.total_duration = total_duration
        self._history: tuple[TimeRange, ...] = ()
        self._lock = threading.Lock()

    @property
    def deleted_ranges(self) -> tuple[TimeRange, ...]:
        return self._history

    def _clamp(self, r: TimeRange) -> TimeRange | None:
        """Order ``r`` and clip it to the video; None when nothing of it is left."""
        lo, hi = sorted((r.start, r.end))
        start = min(max(lo, 0.0), self.total_duration)
        end = min(max(hi, 0.0), self.total_duration)
        if start == end and lo < hi:
            return None
        return TimeRange(start=start, end=end)

    def add_deletion(self, r: TimeRange) -> None:
        clamped = self._clamp(r)
        if clamped is None:
            logger.debug("Deletion %.3f-%.3f lies outside the video; ignored", r.start, r.end)
            return
        with self._lock:
            self._history = tuple(timeline.merge_ranges([*self._history, clamped]))
        logger.debug(
            "Deletion %.3f-%.3f added; %d cut marks", clamped.start, clamped.end, len(self._history)
        )

    def undo_last(self) -> None:
        with self._lock:
            if self._history:
                self._history = self._history[:-1]

    def clear(self) -> None:
        with self._lock:
            self._history = ()

    def delete_word(self, words: Sequence[TranscriptWord], index: int) -> None:
        if not 0 <= index < len(words):
            return
        word = words[index]
        self.add_deletion(TimeRange(start=word.start, end=word.end))

    def delete_word_span(
        self, words: Sequence[TranscriptWord], start_index: int, end_index: int
    ) -> None:
        """Delete every word from ``start_index`` to ``end_index`` inclusive."""
        if not words:
            return
        last = len(words) - 1
        safe_start = min(max(start_index, 0), last)
        safe_end = min(max(end_index, 0), last)
        if safe_end < safe_start:
            return
        self.add_deletion(TimeRange(start=words[safe_start].start, end=words[safe_end].end))

    def kept_ranges(self) -> list[TimeRange]:
        return timeline.kept_ranges(self.total_duration, self._history)

    def remaining_duration(self) -> float:
        return timeline.total_duration(self.kept_ranges())

    def is_word_deleted(self, word: TranscriptWord) -> bool:
        return any(_overlaps(word, r) for r in self._history)

    def deleted_word_count(self, words: Sequence[TranscriptWord]) -> int:
        history = self._history
        return sum(1 for w in words if any(_overlaps(w, r) for r in history))

    def status_line(self) -> str:
        return f"Cut marks: {len(self._history)} | Remaining: {self.remaining_duration():.1f}s"
