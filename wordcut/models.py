"""Shared data types used across WordCut."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass(frozen=True)
class TimeRange:
    """A start/end time pair in seconds."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class TranscriptWord:
    """A single recognized word with its timing.

    Whether a word is deleted is never stored here; ask the EditSession.
    """

    text: str
    start: float
    end: float
    confidence: float = 1.0


class ExportQuality(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ExportResolution(str, Enum):
    ORIGINAL = "original"
    P1080 = "1080p"
    P720 = "720p"
    P480 = "480p"
    P360 = "360p"


# quality -> (crf, preset, audio bitrate)
_ENCODER_PARAMS = {
    ExportQuality.HIGH: ("18", "slow", "192k"),
    ExportQuality.MEDIUM: ("23", "medium", "128k"),
    ExportQuality.LOW: ("28", "veryfast", "96k"),
}

_SCALE_SIZES = {
    ExportResolution.P1080: (1920, 1080),
    ExportResolution.P720: (1280, 720),
    ExportResolution.P480: (854, 480),
    ExportResolution.P360: (640, 360),
}


@dataclass(frozen=True)
class ExportSettings:
    """Quality/resolution choice for an export, mapped to encoder parameters."""

    quality: ExportQuality = ExportQuality.MEDIUM
    resolution: ExportResolution = ExportResolution.ORIGINAL

    @property
    def crf(self) -> str:
        return _ENCODER_PARAMS[self.quality][0]

    @property
    def preset(self) -> str:
        return _ENCODER_PARAMS[self.quality][1]

    @property
    def audio_bitrate(self) -> str:
        return _ENCODER_PARAMS[self.quality][2]

    @property
    def scale_filter(self) -> str | None:
        size = _SCALE_SIZES.get(self.resolution)
        if size is None:
            return None
        width, height = size
        return f"scale={width}:{height}:force_original_aspect_ratio=decrease"


@dataclass(frozen=True)
class CommandVariant:
    """One point in the audio x compatibility fallback space."""

    include_audio: bool
    compatibility_mode: bool

    @property
    def label(self) -> str:
        if self.include_audio and not self.compatibility_mode:
            return "normal"
        if self.include_audio:
            return "compatibility fallback"
        if not self.compatibility_mode:
            return "video-only fallback"
        return "video-only compatibility fallback"


@dataclass
class ExecutionOutcome:
    """Result of a single ffmpeg attempt."""

    success: bool
    details: str
    raw_details: str


@dataclass
class CommandResult:
    """Exit code and captured output of an external tool invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""


@dataclass
class VideoFile:
    """A source video that has been probed for its duration."""

    path: Path
    display_name: str
    duration: float


@dataclass
class ExportResult:
    output_path: Path
    duration_original: float = 0.0
    duration_final: float = 0.0
    attempts: list[str] = field(default_factory=list)
