"""Thin CLI entry point — builds a Manifest and calls the engine."""

import argparse
import json
import logging
import sys
from dataclasses import replace
from enum import IntEnum
from pathlib import Path

from wordcut.analyzers.normalize import normalize_transcript
from wordcut.engine import export_video, load_video, transcribe_video
from wordcut.errors import EmptyTranscriptError, ReadinessError, ToolExecutionError, ValidationError
from wordcut.manifest import BACKENDS, Manifest, TranscriptionConfig, load_manifest
from wordcut.models import ExportQuality, ExportResolution, TimeRange, TranscriptWord
from wordcut.session import EditSession


class ExitCode(IntEnum):
    SUCCESS = 0
    ERROR_TOOL = 1
    ERROR_ARGS = 2
    ERROR_READINESS = 3
    ERROR_EMPTY_TRANSCRIPT = 4


def parse_cut(value: str) -> TimeRange:
    """Parse ``START-END`` seconds, e.g. ``1.5-3``."""
    try:
        start, end = (float(v) for v in value.split("-", 1))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected START-END, got {value!r}")
    if end < start:
        raise argparse.ArgumentTypeError(f"cut ends before it starts: {value!r}")
    return TimeRange(start=start, end=end)


def parse_word_spans(value: str) -> list[tuple[int, int]]:
    """Parse ``3,5-7`` into inclusive index spans ``[(3, 3), (5, 7)]``."""
    spans: list[tuple[int, int]] = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                first, last = part.split("-", 1)
                spans.append((int(first), int(last)))
            else:
                spans.append((int(part), int(part)))
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid word index list: {value!r}")
    return spans


def words_to_json(words: list[TranscriptWord], language: str) -> dict:
    return {
        "language": language,
        "words": [
            {"word": w.text, "start": w.start, "end": w.end, "confidence": w.confidence}
            for w in words
        ],
    }


def load_transcript(path: Path) -> list[TranscriptWord]:
    words = normalize_transcript(json.loads(path.read_text(encoding="utf-8")))
    if not words:
        raise EmptyTranscriptError(f"No transcript words in {path}")
    return words


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wordcut",
        description="WordCut — edit video by deleting words from its transcript.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    tr = sub.add_parser("transcribe", help="Transcribe a video into timed words")
    tr.add_argument("video", type=Path, help="Input video file")
    tr.add_argument("--output", "-o", type=Path, help="Transcript JSON path")
    tr.add_argument("--language", "-l", type=str, default="en", help="Spoken language code")
    tr.add_argument("--backend", choices=BACKENDS, default="whisper.cpp", help="Recognition backend")
    tr.add_argument("--model", type=str, help="Model file (whisper.cpp) or name (openai-whisper)")
    tr.add_argument("--whisper-cli", type=str, help="Path to the whisper.cpp CLI binary")

    ex = sub.add_parser("export", help="Export a video with deletions removed")
    ex.add_argument("video", nargs="?", type=Path, help="Input video file")
    ex.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    ex.add_argument("--cut", type=parse_cut, action="append", default=[], help="Delete START-END seconds (repeatable)")
    ex.add_argument("--transcript", type=Path, help="Transcript JSON produced by 'transcribe'")
    ex.add_argument("--delete-words", type=parse_word_spans, default=[], help="Word indices to delete, e.g. 3,5-7")
    ex.add_argument("--quality", choices=[q.value for q in ExportQuality], help="Export quality (default: medium)")
    ex.add_argument("--resolution", choices=[r.value for r in ExportResolution], help="Output resolution (default: original)")
    ex.add_argument("--output-dir", "-o", type=Path, help="Folder for the exported file")

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    return parser


def _on_progress(stage: str, frac: float) -> None:
    print(f"  [{frac:3.0%}] {stage}")


def _cmd_transcribe(args: argparse.Namespace) -> None:
    config = TranscriptionConfig(backend=args.backend, language=args.language)
    if args.model:
        config.model = args.model
    if args.whisper_cli:
        config.whisper_cli = args.whisper_cli

    video = load_video(args.video)
    words = transcribe_video(video, config, on_progress=_on_progress)

    output = args.output or args.video.with_suffix(".words.json")
    output.write_text(json.dumps(words_to_json(words, config.language), indent=2), encoding="utf-8")
    print()
    print(f"Done! {len(words)} words -> {output}")


def _cmd_export(args: argparse.Namespace) -> None:
    if args.manifest:
        m = load_manifest(args.manifest)
    elif args.video:
        m = Manifest(input=args.video)
    else:
        raise ValidationError("provide either a VIDEO argument or --manifest.")

    if args.output_dir:
        m.output_dir = args.output_dir
    if args.quality:
        m.export = replace(m.export, quality=ExportQuality(args.quality))
    if args.resolution:
        m.export = replace(m.export, resolution=ExportResolution(args.resolution))

    video = load_video(m.input, m.tools)
    session = EditSession(video.duration)
    for r in [*m.deletions, *args.cut]:
        session.add_deletion(r)

    if args.delete_words:
        if not args.transcript:
            raise ValidationError("--delete-words requires --transcript")
        words = load_transcript(args.transcript)
        for first, last in args.delete_words:
            session.delete_word_span(words, first, last)
        print(f"  Deleted words: {session.deleted_word_count(words)} of {len(words)}")

    print(f"  {session.status_line()}")
    result = export_video(
        video,
        session.deleted_ranges,
        m.export,
        m.output_dir,
        tools=m.tools,
        on_progress=_on_progress,
    )

    print()
    print(f"Done! Output: {result.output_path}")
    print(f"  Duration: {result.duration_original:.1f}s -> {result.duration_final:.1f}s")
    if len(result.attempts) > 1:
        print(f"  Fallbacks used: {' -> '.join(result.attempts)}")


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(ExitCode.SUCCESS)

    if args.command == "serve":
        from wordcut.web import create_app
        app = create_app()
        print(f"WordCut web API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    try:
        if args.command == "transcribe":
            _cmd_transcribe(args)
        else:
            _cmd_export(args)
    except ToolExecutionError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(ExitCode.ERROR_TOOL)
    except ReadinessError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(ExitCode.ERROR_READINESS)
    except EmptyTranscriptError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(ExitCode.ERROR_EMPTY_TRANSCRIPT)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(ExitCode.ERROR_ARGS)
