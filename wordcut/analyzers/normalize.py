"""Normalize speech-recognition JSON into timed words.

Recognition engines (and different whisper.cpp versions) emit several
incompatible JSON layouts. Each layout has its own parser below; they are
tried in a fixed order and the first one that yields words wins.
"""

import logging
import re
from typing import Any, Callable

from wordcut.models import TranscriptWord

logger = logging.getLogger(__name__)

CONTROL_TAG_RE = re.compile(r"\[_.*?\]")
TIME_TAG_RE = re.compile(r"\[_TT_(\d+)\]")
WHITESPACE_RE = re.compile(r"\s+")

INTERPOLATED_CONFIDENCE = 0.7
TOKEN_CONFIDENCE = 0.9
TAGGED_CONFIDENCE = 0.85
ENTRY_CONFIDENCE = 0.8

DEFAULT_SEGMENT_SPAN = 0.5
DEFAULT_TAG_GAP = 0.1
DEFAULT_ENTRY_SPAN = 0.4

Payload = dict[str, Any]
Strategy = Callable[[Payload], list[TranscriptWord]]


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return default
    return default


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _strip_tags(text: str) -> str:
    return CONTROL_TAG_RE.sub("", text).strip()


def _split_words(text: str) -> list[str]:
    return [w for w in WHITESPACE_RE.split(text) if w]


def _spread(words: list[str], start: float, duration: float, confidence: float) -> list[TranscriptWord]:
    """Distribute ``duration`` evenly over ``words`` starting at ``start``."""
    per_word = duration / len(words)
    return [
        TranscriptWord(
            text=word,
            start=start + i * per_word,
            end=start + (i + 1) * per_word,
            confidence=confidence,
        )
        for i, word in enumerate(words)
    ]


def parse_clock_time(value: str) -> float:
    """Parse ``H:MM:SS.fff`` (or ``H:MM:SS,fff``) into seconds.

    Anything that is not three colon-separated parts is read as a bare
    number, falling back to 0.
    """
    parts = value.strip().split(":")
    if len(parts) != 3:
        return _as_float(value, 0.0)
    hours = _as_float(parts[0], 0.0)
    minutes = _as_float(parts[1], 0.0)
    seconds = _as_float(parts[2].replace(",", "."), 0.0)
    return hours * 3600 + minutes * 60 + seconds


def normalize_offset_seconds(raw: float) -> float:
    """Offsets in whisper.cpp JSON are milliseconds."""
    if raw <= 0.0:
        return 0.0
    return raw / 1000.0


def _read_offset(container: Payload, key: str) -> float:
    value = container.get(key)
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return normalize_offset_seconds(float(value))
    if isinstance(value, str):
        try:
            return normalize_offset_seconds(float(value))
        except ValueError:
            return parse_clock_time(value)
    return 0.0


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def parse_word_array(payload: Payload) -> list[TranscriptWord]:
    """``{"words": [{"word", "start", "end", "confidence"|"probability"}]}``"""
    items = payload.get("words")
    if not isinstance(items, list):
        return []

    words: list[TranscriptWord] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        text = _text(item.get("word")).strip()
        if not text:
            continue
        confidence = item.get("confidence", item.get("probability"))
        words.append(
            TranscriptWord(
                text=text,
                start=_as_float(item.get("start"), 0.0),
                end=_as_float(item.get("end"), 0.0),
                confidence=_as_float(confidence, 1.0),
            )
        )
    return words


def _token_words(tokens: list[Any]) -> list[TranscriptWord]:
    words: list[TranscriptWord] = []
    for token in tokens:
        if not isinstance(token, dict):
            continue
        text = _strip_tags(_text(token.get("text")))
        if not text:
            continue
        t0 = _as_float(token.get("t0"), -1.0)
        t1 = _as_float(token.get("t1"), -1.0)
        if t0 < 0 or t1 < 0:
            continue
        # Token times are centiseconds
        words.append(
            TranscriptWord(
                text=text,
                start=t0 / 100.0,
                end=t1 / 100.0,
                confidence=_as_float(token.get("p"), TOKEN_CONFIDENCE),
            )
        )
    return words


def _interpolated_words(segment: Payload) -> list[TranscriptWord]:
    words = _split_words(_strip_tags(_text(segment.get("text"))))
    if not words:
        return []

    if "start" in segment:
        start = _as_float(segment["start"], 0.0)
    else:
        start = _as_float(segment.get("t0"), 0.0) / 100.0
    if "end" in segment:
        end = _as_float(segment["end"], 0.0)
    else:
        end = _as_float(segment.get("t1"), 0.0) / 100.0

    duration = end - start if end > start else DEFAULT_SEGMENT_SPAN
    return _spread(words, start, duration, INTERPOLATED_CONFIDENCE)


def parse_segments(payload: Payload) -> list[TranscriptWord]:
    """``{"segments": [...]}``, each segment with ``tokens`` or just ``text``.

    The choice is made per segment: segments carrying tokens use token
    timings, the rest are interpolated over the segment span.
    """
    segments = payload.get("segments")
    if not isinstance(segments, list):
        return []

    words: list[TranscriptWord] = []
    for segment in segments:
        if not isinstance(segment, dict):
            continue
        tokens = segment.get("tokens")
        if isinstance(tokens, list) and tokens:
            words.extend(_token_words(tokens))
        else:
            words.extend(_interpolated_words(segment))
    return words


def parse_nested_result(payload: Payload) -> list[TranscriptWord]:
    """``{"result": {...}}`` wrapping one of the word/segment layouts."""
    nested = payload.get("result")
    if not isinstance(nested, dict):
        return []
    return _first_match(nested, (parse_word_array, parse_segments))


def parse_tagged_text(payload: Payload) -> list[TranscriptWord]:
    """``{"text": "a b[_TT_100]c d[_TT_300]"}`` with centisecond time markers."""
    text = _text(payload.get("text"))
    if "[_TT_" not in text:
        return []

    words: list[TranscriptWord] = []
    last_index = 0
    last_time = 0.0
    for match in TIME_TAG_RE.finditer(text):
        current_time = _as_float(match.group(1), 0.0) / 100.0
        chunk = _split_words(_strip_tags(text[last_index:match.start()]))
        if chunk:
            duration = current_time - last_time if current_time > last_time else DEFAULT_TAG_GAP
            words.extend(_spread(chunk, last_time, duration, TAGGED_CONFIDENCE))
        last_time = current_time
        last_index = match.end()
    return words


def _entry_time(entry: Payload, flat_key: str, pair_key: str, default: float) -> float:
    """Read one end of an entry's span: offsets, then flat field, then clock timestamps."""
    offsets = entry.get("offsets")
    if isinstance(offsets, dict):
        return _read_offset(offsets, pair_key)
    if flat_key in entry:
        return _as_float(entry[flat_key], default)
    timestamps = entry.get("timestamps")
    if isinstance(timestamps, dict):
        return parse_clock_time(_text(timestamps.get(pair_key)))
    return default


def parse_transcription_entries(payload: Payload) -> list[TranscriptWord]:
    """whisper.cpp ``-oj`` output: ``{"transcription": [{"offsets"|"timestamps", "text"}]}``"""
    entries = payload.get("transcription")
    if not isinstance(entries, list):
        return []

    words: list[TranscriptWord] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        chunk = _split_words(_strip_tags(_text(entry.get("text"))))
        if not chunk:
            continue

        start = _entry_time(entry, "start", "from", 0.0)
        end = _entry_time(entry, "end", "to", start + DEFAULT_ENTRY_SPAN)
        duration = end - start if end > start else DEFAULT_ENTRY_SPAN
        words.extend(_spread(chunk, start, duration, ENTRY_CONFIDENCE))
    return words


STRATEGIES: tuple[Strategy, ...] = (
    parse_word_array,
    parse_segments,
    parse_nested_result,
    parse_tagged_text,
    parse_transcription_entries,
)


def _first_match(payload: Payload, strategies: tuple[Strategy, ...]) -> list[TranscriptWord]:
    for strategy in strategies:
        words = strategy(payload)
        if words:
            logger.debug("Transcript parsed by %s: %d words", strategy.__name__, len(words))
            return words
    return []


def normalize_transcript(payload: Any, language: str | None = None) -> list[TranscriptWord]:
    """Return the words found in a recognition payload, or ``[]`` if none."""
    if not isinstance(payload, dict):
        logger.debug("Transcript payload is %s, not an object", type(payload).__name__)
        return []
    words = _first_match(payload, STRATEGIES)
    if not words:
        logger.info("No words found in %s transcript payload", language or "unknown-language")
    return words
