"""Unit tests for export command building and the fallback ladder."""

from pathlib import Path

import pytest

from wordcut.editors.export import (
    COMPAT,
    NORMAL,
    VIDEO_ONLY,
    VIDEO_ONLY_COMPAT,
    ExportPlanner,
    FailureKind,
    build_cut_args,
    build_filter_graph,
    classify_failure,
)
from wordcut.errors import ToolExecutionError, ValidationError
from wordcut.models import (
    CommandResult,
    ExportQuality,
    ExportResolution,
    ExportSettings,
    TimeRange,
)

SEGMENTS = [TimeRange(start=0.0, end=2.0), TimeRange(start=6.0, end=10.0)]

MISSING_AUDIO_LOG = """\
Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'in.mp4':
Stream specifier ':a' in filtergraph description [0:a]atrim=start=0.0 matches no streams.
Error initializing complex filters.
"""

UNKNOWN_ENCODER_LOG = """\
ffmpeg version n6.0
Unknown encoder 'libx264'
"""

GENERIC_LOG = """\
in.mp4: No such file or directory
"""

OK = CommandResult(exit_code=0, stderr="frame=  100 fps=50\n")


def fail(log: str) -> CommandResult:
    return CommandResult(exit_code=1, stderr=log)


# ---------------------------------------------------------------------------
# Filter graph / argument vector
# ---------------------------------------------------------------------------

class TestBuildFilterGraph:
    def test_with_audio(self):
        graph, label = build_filter_graph(SEGMENTS, include_audio=True, scale_filter=None)
        assert graph.split(";") == [
            "[0:v]trim=start=0.0:end=2.0,setpts=PTS-STARTPTS[v0]",
            "[0:a]atrim=start=0.0:end=2.0,asetpts=PTS-STARTPTS[a0]",
            "[0:v]trim=start=6.0:end=10.0,setpts=PTS-STARTPTS[v1]",
            "[0:a]atrim=start=6.0:end=10.0,asetpts=PTS-STARTPTS[a1]",
            "[v0][a0][v1][a1]concat=n=2:v=1:a=1[outv][outa]",
        ]
        assert label == "[outv]"

    def test_video_only(self):
        graph, _ = build_filter_graph(SEGMENTS, include_audio=False, scale_filter=None)
        assert "atrim" not in graph
        assert graph.endswith("[v0][v1]concat=n=2:v=1:a=0[outv]")

    def test_scale_chained_after_concat(self):
        settings = ExportSettings(resolution=ExportResolution.P720)
        graph, label = build_filter_graph(SEGMENTS, True, settings.scale_filter)
        assert graph.endswith("[outv]scale=1280:720:force_original_aspect_ratio=decrease[vscaled]")
        assert label == "[vscaled]"


class TestBuildCutArgs:
    def test_normal_variant(self):
        settings = ExportSettings(quality=ExportQuality.HIGH)
        cmd = build_cut_args(Path("in.mp4"), Path("out.mp4"), SEGMENTS, settings, NORMAL)
        assert cmd[:4] == ["ffmpeg", "-y", "-i", "in.mp4"]
        assert cmd[cmd.index("-map") + 1] == "[outv]"
        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[cmd.index("-preset") + 1] == "slow"
        assert cmd[cmd.index("-crf") + 1] == "18"
        assert cmd[cmd.index("-b:a") + 1] == "192k"
        assert "[outa]" in cmd
        assert cmd[-1] == "out.mp4"

    def test_compat_video_only(self):
        cmd = build_cut_args(Path("in.mp4"), Path("out.mp4"), SEGMENTS, ExportSettings(), VIDEO_ONLY_COMPAT)
        assert cmd[cmd.index("-c:v") + 1] == "mpeg4"
        assert cmd[cmd.index("-q:v") + 1] == "3"
        assert "-crf" not in cmd
        assert "-preset" not in cmd
        assert "[outa]" not in cmd
        assert "-c:a" not in cmd

    def test_custom_ffmpeg_binary(self):
        cmd = build_cut_args(Path("in.mp4"), Path("out.mp4"), SEGMENTS, ExportSettings(), NORMAL, ffmpeg="/opt/ff/ffmpeg")
        assert cmd[0] == "/opt/ff/ffmpeg"


class TestExportSettings:
    @pytest.mark.parametrize(
        "quality,crf,preset,bitrate",
        [
            (ExportQuality.HIGH, "18", "slow", "192k"),
            (ExportQuality.MEDIUM, "23", "medium", "128k"),
            (ExportQuality.LOW, "28", "veryfast", "96k"),
        ],
    )
    def test_quality_table(self, quality, crf, preset, bitrate):
        s = ExportSettings(quality=quality)
        assert (s.crf, s.preset, s.audio_bitrate) == (crf, preset, bitrate)

    def test_original_has_no_scale(self):
        assert ExportSettings().scale_filter is None

    def test_480p(self):
        assert ExportSettings(resolution=ExportResolution.P480).scale_filter == (
            "scale=854:480:force_original_aspect_ratio=decrease"
        )


class TestClassifyFailure:
    def test_missing_audio(self):
        assert classify_failure(MISSING_AUDIO_LOG) is FailureKind.MISSING_AUDIO
        assert classify_failure("Stream map '0:a' matches no streams.") is FailureKind.MISSING_AUDIO

    def test_unsupported(self):
        assert classify_failure(UNKNOWN_ENCODER_LOG) is FailureKind.UNSUPPORTED
        assert classify_failure("Unrecognized option 'movflags'.") is FailureKind.UNSUPPORTED
        assert classify_failure("Error splitting the argument list: Option not found") is FailureKind.UNSUPPORTED

    def test_other(self):
        assert classify_failure(GENERIC_LOG) is FailureKind.OTHER


# ---------------------------------------------------------------------------
# Fallback ladder
# ---------------------------------------------------------------------------

def _variant_of(cmd: list[str]):
    include_audio = "[outa]" in cmd
    compatibility = "mpeg4" in cmd
    for v in (NORMAL, VIDEO_ONLY, COMPAT, VIDEO_ONLY_COMPAT):
        if (v.include_audio, v.compatibility_mode) == (include_audio, compatibility):
            return v


class TestExportPlanner:
    def _export(self, runner):
        planner = ExportPlanner(runner)
        return planner.export(Path("in.mp4"), SEGMENTS, ExportSettings(), Path("out.mp4"))

    def test_first_attempt_succeeds(self, make_runner):
        runner = make_runner([OK])
        assert self._export(runner) == [NORMAL]
        assert len(runner.calls) == 1

    def test_missing_audio_then_success(self, make_runner):
        runner = make_runner([fail(MISSING_AUDIO_LOG), OK])
        assert self._export(runner) == [NORMAL, VIDEO_ONLY]
        assert [_variant_of(c) for c in runner.calls] == [NORMAL, VIDEO_ONLY]

    def test_missing_audio_then_unsupported(self, make_runner):
        runner = make_runner([fail(MISSING_AUDIO_LOG), fail(UNKNOWN_ENCODER_LOG), OK])
        assert self._export(runner) == [NORMAL, VIDEO_ONLY, VIDEO_ONLY_COMPAT]

    def test_unsupported_then_success(self, make_runner):
        runner = make_runner([fail(UNKNOWN_ENCODER_LOG), OK])
        assert self._export(runner) == [NORMAL, COMPAT]

    def test_unsupported_then_missing_audio(self, make_runner):
        runner = make_runner([fail(UNKNOWN_ENCODER_LOG), fail(MISSING_AUDIO_LOG), OK])
        assert self._export(runner) == [NORMAL, COMPAT, VIDEO_ONLY_COMPAT]

    def test_generic_failure_is_terminal(self, make_runner):
        runner = make_runner([fail(GENERIC_LOG)])
        with pytest.raises(ToolExecutionError, match="No such file") as exc:
            self._export(runner)
        assert len(runner.calls) == 1
        assert exc.value.variant == "normal"
        assert str(exc.value).startswith("ffmpeg cut/export failed: ")

    def test_video_only_generic_failure_reports_fallback_diagnostic(self, make_runner):
        runner = make_runner([fail(MISSING_AUDIO_LOG), fail("Invalid data found when processing input")])
        with pytest.raises(ToolExecutionError) as exc:
            self._export(runner)
        assert exc.value.variant == "video-only fallback"
        assert "Invalid data found" in exc.value.diagnostic
        assert "matches no streams" not in exc.value.diagnostic

    def test_compat_generic_failure(self, make_runner):
        runner = make_runner([fail(UNKNOWN_ENCODER_LOG), fail("Permission denied")])
        with pytest.raises(ToolExecutionError, match=r"\(compatibility fallback\)"):
            self._export(runner)
        assert len(runner.calls) == 2

    def test_last_variant_failure_is_terminal(self, make_runner):
        runner = make_runner([
            fail(UNKNOWN_ENCODER_LOG),
            fail(MISSING_AUDIO_LOG),
            fail(UNKNOWN_ENCODER_LOG),
            OK,
        ])
        with pytest.raises(ToolExecutionError) as exc:
            self._export(runner)
        assert len(runner.calls) == 3
        assert exc.value.variant == "video-only compatibility fallback"

    def test_empty_segments_not_attempted(self, make_runner):
        runner = make_runner()
        planner = ExportPlanner(runner)
        with pytest.raises(ValidationError):
            planner.export(Path("in.mp4"), [], ExportSettings(), Path("out.mp4"))
        assert runner.calls == []

    def test_on_attempt_callback(self, make_runner):
        seen = []
        planner = ExportPlanner(make_runner([fail(MISSING_AUDIO_LOG), OK]))
        planner.export(Path("in.mp4"), SEGMENTS, ExportSettings(), Path("out.mp4"), on_attempt=seen.append)
        assert seen == [NORMAL, VIDEO_ONLY]
