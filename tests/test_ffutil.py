"""Unit tests for ffutil — diagnostics and subprocess wrappers."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from wordcut.errors import ReadinessError, ToolExecutionError
from wordcut.ffutil import (
    FFmpegNotFoundError,
    check_ffmpeg,
    execute,
    extract_audio,
    probe_duration,
    summarize_diagnostics,
)
from wordcut.models import CommandResult


# ---------------------------------------------------------------------------
# summarize_diagnostics (pure)
# ---------------------------------------------------------------------------

class TestSummarizeDiagnostics:
    def test_keeps_error_lines_only(self):
        log = (
            "ffmpeg version 6.0\n"
            "  built with clang\n"
            "[in#0] Error opening input: No such file or directory\n"
            "Exiting normally\n"
        )
        assert summarize_diagnostics(log) == "[in#0] Error opening input: No such file or directory"

    def test_falls_back_to_tail(self):
        log = "\n".join(f"line {i}" for i in range(10))
        assert summarize_diagnostics(log) == " | ".join(f"line {i}" for i in range(4, 10))

    def test_last_six_matching_lines(self):
        log = "\n".join(f"error {i}" for i in range(9))
        assert summarize_diagnostics(log).split(" | ") == [f"error {i}" for i in range(3, 9)]

    def test_blank_lines_dropped_and_trimmed(self):
        assert summarize_diagnostics("\n   \n  permission denied  \n\n") == "permission denied"

    def test_truncates_long_output(self):
        log = "error " + "x" * 800
        summary = summarize_diagnostics(log)
        assert len(summary) == 603
        assert summary.endswith("...")

    def test_classification_phrases_count_as_errors(self):
        log = "noise\nStream map '0:a' matches no streams.\nmore noise\n"
        assert summarize_diagnostics(log) == "Stream map '0:a' matches no streams."

    def test_empty(self):
        assert summarize_diagnostics("") == ""


# ---------------------------------------------------------------------------
# execute (fake runner)
# ---------------------------------------------------------------------------

class TestExecute:
    def test_success(self, make_runner):
        outcome = execute(make_runner([CommandResult(exit_code=0, stderr="done")]), ["ffmpeg"])
        assert outcome.success
        assert outcome.raw_details == "done"

    def test_uses_stdout_when_stderr_blank(self, make_runner):
        runner = make_runner([CommandResult(exit_code=1, stdout="Invalid argument", stderr="  ")])
        outcome = execute(runner, ["ffmpeg"])
        assert not outcome.success
        assert outcome.details == "Invalid argument"

    def test_unknown_error_when_silent(self, make_runner):
        outcome = execute(make_runner([CommandResult(exit_code=1)]), ["ffmpeg"])
        assert outcome.raw_details == "Unknown ffmpeg error"


# ---------------------------------------------------------------------------
# extract_audio
# ---------------------------------------------------------------------------

class TestExtractAudio:
    def test_command_shape(self, make_runner):
        runner = make_runner()
        out = extract_audio(runner, Path("in.mp4"), Path("audio.wav"))
        assert out == Path("audio.wav")
        cmd = runner.calls[0]
        assert cmd[cmd.index("-c:a") + 1] == "pcm_s16le"
        assert cmd[cmd.index("-ar") + 1] == "16000"
        assert cmd[cmd.index("-ac") + 1] == "1"
        assert "-vn" in cmd

    def test_failure_raises(self, make_runner):
        runner = make_runner([CommandResult(exit_code=1, stderr="in.mp4: No such file or directory")])
        with pytest.raises(ToolExecutionError, match="audio extraction failed"):
            extract_audio(runner, Path("in.mp4"), Path("audio.wav"))


# ---------------------------------------------------------------------------
# probe_duration / check_ffmpeg (fake runner, mocked which)
# ---------------------------------------------------------------------------

class TestProbeDuration:
    def test_basic(self, make_runner):
        runner = make_runner([CommandResult(exit_code=0, stdout=json.dumps({"format": {"duration": "60.5"}}))])
        assert probe_duration(runner, Path("video.mp4"), ffprobe="tools/ffprobe") == 60.5
        assert runner.calls[0][0] == "tools/ffprobe"
        assert runner.calls[0][-1] == "video.mp4"

    def test_missing_duration(self, make_runner):
        runner = make_runner([CommandResult(exit_code=0, stdout=json.dumps({"format": {}}))])
        with pytest.raises(ValueError, match="No duration"):
            probe_duration(runner, Path("video.mp4"))

    def test_ffprobe_failure(self, make_runner):
        runner = make_runner([CommandResult(exit_code=1, stderr="video.mp4: Invalid data found")])
        with pytest.raises(ToolExecutionError) as exc:
            probe_duration(runner, Path("video.mp4"))
        assert "Invalid data" in exc.value.diagnostic


class TestCheckFFmpeg:
    @patch("wordcut.ffutil.shutil.which", return_value=None)
    def test_missing(self, mock_which):
        with pytest.raises(FFmpegNotFoundError, match="not found"):
            check_ffmpeg()

    @patch("wordcut.ffutil.shutil.which", return_value="/usr/bin/ffmpeg")
    def test_present(self, mock_which):
        check_ffmpeg()

    def test_is_readiness_error(self):
        assert issubclass(FFmpegNotFoundError, ReadinessError)
