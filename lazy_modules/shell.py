"""Console and subprocess utilities.

Provides the output formatting helpers used by the CLI plus a thin wrapper
around subprocess for commands whose output should stream to the terminal
(post-release hooks). Git has its own runner in :mod:`lazy_modules.git`.
"""

from __future__ import annotations

import os
import subprocess
import sys
from collections.abc import Mapping
from pathlib import Path


def run(
    *args: str,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[bytes]:
    """Run an arbitrary shell command.

    Output is not captured - it streams directly to the terminal so users
    can follow hook progress.

    Args:
        *args: Command and arguments (e.g., "uv", "publish").
        cwd: Working directory, defaults to the current one.
        env: Extra environment variables layered over os.environ.
        check: If True (default), raise on non-zero exit.

    Returns:
        CompletedProcess with returncode for checking success.
    """
    full_env = {**os.environ, **env} if env else None
    return subprocess.run(args, cwd=cwd, env=full_env, check=check)


def step(msg: str) -> None:
    """Print a section header ahead of a release phase."""
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def fatal(msg: str) -> None:
    """Report ``msg`` on stderr and exit the command with status 1."""
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)
