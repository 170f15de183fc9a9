"""Speech-to-text analyzer using the whisper.cpp CLI or OpenAI Whisper."""

import json
import logging
import tempfile
import time
from pathlib import Path

from wordcut import ffutil
from wordcut.analyzers.normalize import normalize_transcript
from wordcut.errors import EmptyTranscriptError, ToolExecutionError
from wordcut.manifest import TranscriptionConfig
from wordcut.models import TranscriptWord
from wordcut.runner import CommandRunner

logger = logging.getLogger(__name__)


def build_whisper_cli_args(
    whisper_cli: str, model: str, wav_path: Path, language: str, output_prefix: Path
) -> list[str]:
    return [
        whisper_cli,
        "-m", model,
        "-f", str(wav_path),
        "-l", language,
        "-oj",
        "-of", str(output_prefix),
    ]


def _run_whisper_cli(runner: CommandRunner, wav_path: Path, config: TranscriptionConfig) -> dict:
    output_prefix = wav_path.parent / f"transcript_{int(time.time() * 1000)}"
    cmd = build_whisper_cli_args(
        config.whisper_cli, config.model, wav_path, config.language, output_prefix
    )
    result = runner.run(cmd)
    if result.exit_code != 0:
        detail = result.stderr if result.stderr.strip() else result.stdout
        raise ToolExecutionError(f"whisper transcription failed: {detail}", diagnostic=detail)

    json_path = output_prefix.with_name(output_prefix.name + ".json")
    if not json_path.exists():
        raise ToolExecutionError(f"Whisper output JSON not found at {json_path}")
    return json.loads(json_path.read_text(encoding="utf-8"))


def _run_openai_whisper(wav_path: Path, config: TranscriptionConfig) -> dict:
    import whisper

    model = whisper.load_model(config.model)
    result = model.transcribe(str(wav_path), language=config.language, word_timestamps=True)
    words = [w for seg in result.get("segments", []) for w in seg.get("words", [])]
    if words:
        return {"words": words}
    return result


def transcribe_wav(
    runner: CommandRunner, wav_path: Path, config: TranscriptionConfig
) -> list[TranscriptWord]:
    """Recognize a mono 16 kHz WAV and return its words.

    Raises EmptyTranscriptError when recognition succeeds but yields no words.
    """
    if config.backend == "openai-whisper":
        payload = _run_openai_whisper(wav_path, config)
    else:
        payload = _run_whisper_cli(runner, wav_path, config)

    words = normalize_transcript(payload, language=config.language)
    if not words:
        raise EmptyTranscriptError("No transcript: recognition produced no words")
    logger.info("Transcribed %d words from %s", len(words), wav_path.name)
    return words


def transcribe(
    runner: CommandRunner,
    input_path: Path,
    config: TranscriptionConfig,
    ffmpeg: str = "ffmpeg",
) -> list[TranscriptWord]:
    """Extract audio from a video, run recognition, and return timed words."""
    with tempfile.TemporaryDirectory() as tmpdir:
        wav_path = Path(tmpdir) / f"audio_{int(time.time() * 1000)}.wav"
        ffutil.extract_audio(runner, input_path, wav_path, ffmpeg=ffmpeg)
        return transcribe_wav(runner, wav_path, config)
