"""Process runner for native tools (ffmpeg, whisper-cli).

Everything that spawns a process goes through a ``CommandRunner`` so callers
can substitute canned results in tests.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Protocol, Sequence

from wordcut.models import CommandResult

logger = logging.getLogger(__name__)


class CommandRunner(Protocol):
    def run(self, args: Sequence[str]) -> CommandResult: ...


class SubprocessRunner:
    """Runs a command to completion and captures its output."""

    def __init__(self, cwd: Path | None = None):
        self.cwd = cwd

    def run(self, args: Sequence[str]) -> CommandResult:
        cmd = [str(a) for a in args]
        logger.debug("Running %s", " ".join(cmd))
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            errors="replace",
            cwd=self.cwd,
            env=tool_environment(cmd[0]),
        )
        return CommandResult(exit_code=result.returncode, stdout=result.stdout, stderr=result.stderr)


def tool_environment(binary: str) -> dict[str, str]:
    """Environment that lets a tool load shared libraries sitting next to it."""
    env = dict(os.environ)
    binary_dir = Path(binary).parent
    if str(binary_dir) in ("", "."):
        return env
    existing = env.get("LD_LIBRARY_PATH")
    env["LD_LIBRARY_PATH"] = f"{binary_dir.resolve()}:{existing}" if existing else str(binary_dir.resolve())
    return env
