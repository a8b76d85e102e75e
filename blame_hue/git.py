"""Git subprocess helpers."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from blame_hue.blame_parser import LineAttribution, parse_blame_output

logger = logging.getLogger(__name__)


class GitError(RuntimeError):
    """Raised when git command execution fails."""


async def get_current_head(file_path: Path) -> str:
    """Return the short HEAD revision of the repository containing a file.

    Returns an empty string when git cannot resolve it.
    """
    try:
        output = await _run_git(file_path.parent, ["rev-parse", "--short", "HEAD"])
    except GitError as exc:
        logger.warning("Could not run git rev-parse for %s: %s", file_path, exc)
        return ""
    return output.strip()


async def get_blame_output(file_path: Path) -> str:
    """Return raw ``git blame -e -t`` output for a file."""
    return await _run_git(file_path.parent, ["blame", "-e", "-t", "--", file_path.name])


async def get_file_attribution(file_path: Path) -> list[LineAttribution]:
    """Return parsed per-line attribution for a file (best effort)."""
    try:
        blame_text = await get_blame_output(file_path)
    except GitError as exc:
        logger.error("Could not run git blame for %s: %s", file_path, exc)
        return []
    return parse_blame_output(blame_text)


async def _run_git(cwd: Path, args: list[str]) -> str:
    try:
        process = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
    except OSError as exc:
        raise GitError(f"git {' '.join(args)} failed: {exc}") from exc

    if process.returncode != 0:
        message = stderr.decode("utf-8", errors="replace").strip()
        raise GitError(message or f"git {' '.join(args)} failed")

    return stdout.decode("utf-8", errors="replace")
