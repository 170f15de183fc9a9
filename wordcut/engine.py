"""Orchestrator — loads videos, transcribes them, and exports edits."""

import logging
import os
import shutil
import time
from pathlib import Path
from typing import Callable, Iterable

from wordcut import ffutil, timeline
from wordcut.analyzers.transcribe import transcribe
from wordcut.editors.export import ExportPlanner
from wordcut.errors import ReadinessError, ValidationError
from wordcut.manifest import ToolConfig, TranscriptionConfig
from wordcut.models import (
    ExportResult,
    ExportSettings,
    TimeRange,
    TranscriptWord,
    VideoFile,
)
from wordcut.runner import CommandRunner, SubprocessRunner

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]


def transcription_readiness(config: TranscriptionConfig, tools: ToolConfig | None = None) -> str | None:
    """Return why transcription cannot run, or None when everything is in place."""
    tools = tools or ToolConfig()
    if shutil.which(tools.ffmpeg) is None:
        return f"{tools.ffmpeg} not found on PATH"
    if config.backend == "openai-whisper":
        return None

    if not Path(config.model).exists():
        return f"Missing whisper model at {Path(config.model).resolve()}"
    if shutil.which(config.whisper_cli) is None:
        cli = Path(config.whisper_cli)
        if cli.is_file() and not os.access(cli, os.X_OK):
            return f"Cannot execute whisper binary at {cli.resolve()}"
        return f"Missing whisper binary {config.whisper_cli}"
    return None


def export_readiness(output_dir: Path, tools: ToolConfig | None = None) -> str | None:
    """Return why an export cannot run, or None when everything is in place."""
    tools = tools or ToolConfig()
    try:
        ffutil.check_ffmpeg(tools.ffmpeg, tools.ffprobe)
    except ffutil.FFmpegNotFoundError as e:
        return str(e)
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        return f"Cannot create export folder at {output_dir.resolve()}."
    return None


def load_video(
    path: Path, tools: ToolConfig | None = None, runner: CommandRunner | None = None
) -> VideoFile:
    """Probe ``path`` for its duration; raises ReadinessError if ffmpeg/ffprobe are missing."""
    tools = tools or ToolConfig()
    ffutil.check_ffmpeg(tools.ffmpeg, tools.ffprobe)
    duration = ffutil.probe_duration(runner or SubprocessRunner(), path, ffprobe=tools.ffprobe)
    return VideoFile(path=path, display_name=path.name, duration=duration)


def export_filename() -> str:
    return f"export_{int(time.time() * 1000)}.mp4"


def transcribe_video(
    video: VideoFile,
    config: TranscriptionConfig,
    tools: ToolConfig | None = None,
    runner: CommandRunner | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[TranscriptWord]:
    """Extract audio from ``video`` and recognize its words."""
    tools = tools or ToolConfig()
    reason = transcription_readiness(config, tools)
    if reason is not None:
        raise ReadinessError(reason)

    if on_progress:
        on_progress("Transcribing audio", 0.1)
    words = transcribe(runner or SubprocessRunner(), video.path, config, ffmpeg=tools.ffmpeg)
    if on_progress:
        on_progress("Transcription complete", 1.0)
    return words


def export_video(
    video: VideoFile,
    deleted: Iterable[TimeRange],
    settings: ExportSettings,
    output_dir: Path,
    tools: ToolConfig | None = None,
    runner: CommandRunner | None = None,
    on_progress: ProgressCallback | None = None,
) -> ExportResult:
    """Cut ``deleted`` out of ``video`` and write the result into ``output_dir``.

    Args:
        video: Source video with a probed duration.
        deleted: Deleted time ranges, in any order.
        settings: Quality and resolution of the export.
        output_dir: Folder receiving ``export_<ms>.mp4``.
        on_progress: Optional callback(stage_name, fraction_complete).
    """

    def _progress(stage: str, frac: float) -> None:
        if on_progress:
            on_progress(stage, frac)

    tools = tools or ToolConfig()
    reason = export_readiness(output_dir, tools)
    if reason is not None:
        raise ReadinessError(reason)

    kept = timeline.kept_ranges(video.duration, deleted)
    if not kept:
        raise ValidationError("No video content left after deletions.")

    output_path = output_dir / export_filename()
    planner = ExportPlanner(runner or SubprocessRunner(), ffmpeg=tools.ffmpeg)

    _progress(f"Encoding: keeping {len(kept)} segments", 0.1)
    attempts = planner.export(
        video.path,
        kept,
        settings,
        output_path,
        on_attempt=lambda v: _progress(f"Encoding ({v.label})", 0.2),
    )
    _progress("Done", 1.0)

    return ExportResult(
        output_path=output_path,
        duration_original=video.duration,
        duration_final=timeline.total_duration(kept),
        attempts=[v.label for v in attempts],
    )
