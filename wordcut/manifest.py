"""JSON manifest schema — the contract between CLI/API and engine."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from wordcut.models import ExportQuality, ExportResolution, ExportSettings, TimeRange


@dataclass
class TranscriptionConfig:
    """Configuration for speech recognition."""

    backend: str = "whisper.cpp"
    whisper_cli: str = field(default_factory=lambda: os.environ.get("WORDCUT_WHISPER_CLI", "whisper-cli"))
    model: str = field(default_factory=lambda: os.environ.get("WORDCUT_MODEL", "models/ggml-tiny-q5_1.bin"))
    language: str = "en"


@dataclass
class ToolConfig:
    """Locations of the ffmpeg binaries."""

    ffmpeg: str = field(default_factory=lambda: os.environ.get("WORDCUT_FFMPEG", "ffmpeg"))
    ffprobe: str = field(default_factory=lambda: os.environ.get("WORDCUT_FFPROBE", "ffprobe"))


@dataclass
class Manifest:
    """Top-level editing manifest."""

    input: Path
    output_dir: Path = Path("exports")
    version: str = "1"
    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)
    tools: ToolConfig = field(default_factory=ToolConfig)
    export: ExportSettings = field(default_factory=ExportSettings)
    deletions: list[TimeRange] = field(default_factory=list)


BACKENDS = ("whisper.cpp", "openai-whisper")


def parse_export_settings(data: dict) -> ExportSettings:
    try:
        quality = ExportQuality(data.get("quality", ExportQuality.MEDIUM.value))
        resolution = ExportResolution(data.get("resolution", ExportResolution.ORIGINAL.value))
    except ValueError as e:
        raise ValueError(f"Invalid export settings: {e}") from e
    return ExportSettings(quality=quality, resolution=resolution)


def _parse_range(item) -> TimeRange:
    if isinstance(item, dict):
        start, end = float(item["start"]), float(item["end"])
    else:
        start, end = (float(v) for v in item)
    if end < start:
        raise ValueError(f"Deletion ends before it starts: {start}-{end}")
    return TimeRange(start=start, end=end)


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "input" not in data:
        raise ValueError("Manifest must contain an 'input' field")

    transcription = TranscriptionConfig(**data["transcription"]) if "transcription" in data else TranscriptionConfig()
    if transcription.backend not in BACKENDS:
        raise ValueError(f"Unknown transcription backend: {transcription.backend}")
    tools = ToolConfig(**data["tools"]) if "tools" in data else ToolConfig()

    return Manifest(
        version=data.get("version", "1"),
        input=Path(data["input"]),
        output_dir=Path(data.get("output_dir", "exports")),
        transcription=transcription,
        tools=tools,
        export=parse_export_settings(data.get("export", {})),
        deletions=[_parse_range(item) for item in data.get("deletions", [])],
    )
