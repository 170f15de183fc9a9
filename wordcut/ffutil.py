"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import shutil
from pathlib import Path
from typing import Sequence

from wordcut.errors import ReadinessError, ToolExecutionError
from wordcut.models import ExecutionOutcome
from wordcut.runner import CommandRunner

logger = logging.getLogger(__name__)

ERROR_KEYWORDS = (
    "error",
    "invalid",
    "failed",
    "cannot",
    "unable",
    "no such file",
    "not found",
    "permission denied",
    "matches no streams",
    "unrecognized option",
    "unknown encoder",
    "error splitting the argument list",
)

MAX_DIAGNOSTIC_LINES = 6
MAX_DIAGNOSTIC_CHARS = 600


class FFmpegNotFoundError(ReadinessError):
    pass


def check_ffmpeg(ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe cannot be found."""
    for cmd in (ffmpeg, ffprobe):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def probe_duration(runner: CommandRunner, input_path: Path, ffprobe: str = "ffprobe") -> float:
    """Return the container duration of a media file in seconds."""
    cmd = [
        ffprobe,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        str(input_path),
    ]
    result = runner.run(cmd)
    if result.exit_code != 0:
        raise ToolExecutionError(
            f"ffprobe failed on {input_path}",
            diagnostic=summarize_diagnostics(result.stderr),
        )
    data = json.loads(result.stdout or "{}")
    duration = data.get("format", {}).get("duration")
    if duration is None:
        raise ValueError(f"No duration reported for {input_path}")
    return float(duration)


def summarize_diagnostics(log: str) -> str:
    """Condense a tool log to the few lines that explain a failure.

    Keeps lines containing an error keyword, or the tail of the log when none
    match, at most the last six, joined with `` | `` and capped at 600 chars.
    """
    lines = [line.strip() for line in log.splitlines()]
    lines = [line for line in lines if line]

    focused = [
        line for line in lines
        if any(keyword in line.lower() for keyword in ERROR_KEYWORDS)
    ]
    selected = (focused or lines)[-MAX_DIAGNOSTIC_LINES:]
    joined = " | ".join(selected)
    if len(joined) > MAX_DIAGNOSTIC_CHARS:
        return joined[:MAX_DIAGNOSTIC_CHARS] + "..."
    return joined


def execute(runner: CommandRunner, args: Sequence[str]) -> ExecutionOutcome:
    """Run one tool invocation and reduce it to an ExecutionOutcome."""
    result = runner.run(args)
    raw = result.stderr
    if not raw.strip():
        raw = result.stdout
    if not raw.strip():
        raw = "Unknown ffmpeg error"
    return ExecutionOutcome(
        success=result.exit_code == 0,
        details=summarize_diagnostics(raw),
        raw_details=raw,
    )


def extract_audio(
    runner: CommandRunner,
    input_path: Path,
    output_path: Path,
    ffmpeg: str = "ffmpeg",
    sample_rate: int = 16000,
) -> Path:
    """Extract audio as mono 16-bit PCM WAV at the given sample rate (for Whisper)."""
    cmd = [
        ffmpeg, "-y",
        "-i", str(input_path),
        "-vn",
        "-c:a", "pcm_s16le",
        "-ar", str(sample_rate),
        "-ac", "1",
        str(output_path),
    ]
    outcome = execute(runner, cmd)
    if not outcome.success:
        raise ToolExecutionError(
            f"ffmpeg audio extraction failed: {outcome.details}",
            diagnostic=outcome.details,
        )
    return output_path
