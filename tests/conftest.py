"""Shared test fixtures."""

from pathlib import Path

import pytest

from wordcut.models import CommandResult, TranscriptWord

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class FakeRunner:
    """CommandRunner that records invocations and replays canned results."""

    def __init__(self, results=None, on_run=None):
        self.results = list(results or [])
        self.calls: list[list[str]] = []
        self.on_run = on_run

    def run(self, args):
        self.calls.append(list(args))
        if self.on_run:
            self.on_run(list(args))
        if self.results:
            return self.results.pop(0)
        return CommandResult(exit_code=0)


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


@pytest.fixture
def words() -> list[TranscriptWord]:
    return [
        TranscriptWord(text="so", start=0.0, end=0.5),
        TranscriptWord(text="um", start=0.5, end=1.0),
        TranscriptWord(text="today", start=1.0, end=1.6),
        TranscriptWord(text="we", start=1.6, end=2.0),
        TranscriptWord(text="begin", start=2.0, end=2.8),
    ]


@pytest.fixture
def make_runner():
    return FakeRunner
