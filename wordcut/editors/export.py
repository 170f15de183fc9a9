"""Export editor: cuts deleted ranges out of a video with a single ffmpeg call.

ffmpeg builds differ in which encoders and options they accept, and some
sources carry no audio track. Instead of probing up front, the planner tries
the preferred command and, depending on how it failed, falls back along a
fixed graph of command variants:

    normal --missing audio--> video-only --unsupported--> video-only compat
       \\--unsupported--> compat --missing audio--------^

Any other failure, or a failure of the last variant, is terminal.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, NoReturn, Sequence

from wordcut import ffutil
from wordcut.errors import ToolExecutionError, ValidationError
from wordcut.models import CommandVariant, ExecutionOutcome, ExportSettings, TimeRange
from wordcut.runner import CommandRunner

logger = logging.getLogger(__name__)


class FailureKind(Enum):
    MISSING_AUDIO = "missing-audio-stream"
    UNSUPPORTED = "unsupported-option-or-encoder"
    OTHER = "other"


MISSING_AUDIO_PHRASES = (
    "stream specifier ':a'",
    "matches no streams",
    "stream map '0:a'",
    "cannot find a matching stream for unlabeled input pad",
)

UNSUPPORTED_PHRASES = (
    "error splitting the argument list",
    "option not found",
    "unrecognized option",
    "unknown encoder",
)

NORMAL = CommandVariant(include_audio=True, compatibility_mode=False)
VIDEO_ONLY = CommandVariant(include_audio=False, compatibility_mode=False)
COMPAT = CommandVariant(include_audio=True, compatibility_mode=True)
VIDEO_ONLY_COMPAT = CommandVariant(include_audio=False, compatibility_mode=True)

FALLBACKS: dict[CommandVariant, dict[FailureKind, CommandVariant]] = {
    NORMAL: {
        FailureKind.MISSING_AUDIO: VIDEO_ONLY,
        FailureKind.UNSUPPORTED: COMPAT,
    },
    VIDEO_ONLY: {FailureKind.UNSUPPORTED: VIDEO_ONLY_COMPAT},
    COMPAT: {FailureKind.MISSING_AUDIO: VIDEO_ONLY_COMPAT},
    VIDEO_ONLY_COMPAT: {},
}


def classify_failure(details: str) -> FailureKind:
    text = details.lower()
    if any(phrase in text for phrase in MISSING_AUDIO_PHRASES):
        return FailureKind.MISSING_AUDIO
    if any(phrase in text for phrase in UNSUPPORTED_PHRASES):
        return FailureKind.UNSUPPORTED
    return FailureKind.OTHER


def build_filter_graph(
    segments: Sequence[TimeRange], include_audio: bool, scale_filter: str | None
) -> tuple[str, str]:
    """Return the filter_complex expression and the label of its video output."""
    filter_parts: list[str] = []
    stream_labels: list[str] = []

    for i, seg in enumerate(segments):
        filter_parts.append(
            f"[0:v]trim=start={seg.start}:end={seg.end},setpts=PTS-STARTPTS[v{i}]"
        )
        if include_audio:
            filter_parts.append(
                f"[0:a]atrim=start={seg.start}:end={seg.end},asetpts=PTS-STARTPTS[a{i}]"
            )
            stream_labels.append(f"[v{i}][a{i}]")
        else:
            stream_labels.append(f"[v{i}]")

    concat_input = "".join(stream_labels)
    n = len(segments)
    if include_audio:
        filter_parts.append(f"{concat_input}concat=n={n}:v=1:a=1[outv][outa]")
    else:
        filter_parts.append(f"{concat_input}concat=n={n}:v=1:a=0[outv]")

    video_label = "[outv]"
    if scale_filter is not None:
        filter_parts.append(f"[outv]{scale_filter}[vscaled]")
        video_label = "[vscaled]"

    return ";".join(filter_parts), video_label


def build_cut_args(
    input_path: Path,
    output_path: Path,
    segments: Sequence[TimeRange],
    settings: ExportSettings,
    variant: CommandVariant,
    ffmpeg: str = "ffmpeg",
) -> list[str]:
    """Build the full ffmpeg argument vector for one command variant."""
    filter_complex, video_label = build_filter_graph(
        segments, variant.include_audio, settings.scale_filter
    )

    cmd = [
        ffmpeg, "-y",
        "-i", str(input_path),
        "-filter_complex", filter_complex,
        "-map", video_label,
    ]

    if variant.compatibility_mode:
        cmd += ["-c:v", "mpeg4", "-q:v", "3"]
    else:
        cmd += [
            "-c:v", "libx264",
            "-preset", settings.preset,
            "-crf", settings.crf,
            "-movflags", "+faststart",
        ]

    if variant.include_audio:
        cmd += ["-map", "[outa]", "-c:a", "aac", "-b:a", settings.audio_bitrate]

    cmd.append(str(output_path))
    return cmd


class ExportPlanner:
    """Runs the cut/concat export, walking the fallback graph on failure."""

    def __init__(self, runner: CommandRunner, ffmpeg: str = "ffmpeg"):
        self.runner = runner
        self.ffmpeg = ffmpeg

    def export(
        self,
        input_path: Path,
        segments: Sequence[TimeRange],
        settings: ExportSettings,
        output_path: Path,
        on_attempt: Callable[[CommandVariant], None] | None = None,
    ) -> list[CommandVariant]:
        """Write ``output_path`` containing only ``segments`` of the input.

        Returns the variants attempted, the last of which succeeded. Raises
        ToolExecutionError carrying the diagnostic of the last attempt.
        """
        if not segments:
            raise ValidationError("No keep segments provided.")

        attempted: list[CommandVariant] = []
        variant = NORMAL
        while True:
            attempted.append(variant)
            if on_attempt:
                on_attempt(variant)
            outcome = self._attempt(input_path, segments, settings, output_path, variant)
            if outcome.success:
                logger.info("Export succeeded with %s variant", variant.label)
                return attempted

            kind = classify_failure(outcome.raw_details)
            next_variant = FALLBACKS[variant].get(kind)
            if next_variant is None:
                self._fail(variant, outcome)
            logger.warning(
                "ffmpeg %s attempt failed (%s); retrying with %s",
                variant.label, kind.value, next_variant.label,
            )
            variant = next_variant

    def _attempt(
        self,
        input_path: Path,
        segments: Sequence[TimeRange],
        settings: ExportSettings,
        output_path: Path,
        variant: CommandVariant,
    ) -> ExecutionOutcome:
        cmd = build_cut_args(input_path, output_path, segments, settings, variant, ffmpeg=self.ffmpeg)
        return ffutil.execute(self.runner, cmd)

    def _fail(self, variant: CommandVariant, outcome: ExecutionOutcome) -> NoReturn:
        if variant == NORMAL:
            message = f"ffmpeg cut/export failed: {outcome.details}"
        else:
            message = f"ffmpeg cut/export failed ({variant.label}): {outcome.details}"
        logger.error(message)
        raise ToolExecutionError(message, diagnostic=outcome.details, variant=variant.label)
