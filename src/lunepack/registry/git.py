"""Git operations for listing version tags and checking out package trees.

git is driven as a subprocess through ``asyncio`` so that many repositories
can be queried concurrently and so that cancellation (Ctrl-C) kills the
child process instead of leaving it running. Every call has a finite
timeout.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

_MISSING_REF_PATTERNS = (
    re.compile(r"Remote branch .* not found", re.IGNORECASE),
    re.compile(r"not found in upstream", re.IGNORECASE),
    re.compile(r"couldn't find remote ref", re.IGNORECASE),
)

_MISSING_REPO_PATTERNS = (
    re.compile(r"repository\b.*\bnot found", re.IGNORECASE),
    re.compile(r"does not appear to be a git repository", re.IGNORECASE),
    re.compile(r"HTTP 404", re.IGNORECASE),
)


class GitCommandError(Exception):
    """A git subprocess failed or timed out."""

    def __init__(self, args: list[str], returncode: int | None, stderr: str) -> None:
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        status = "timed out" if returncode is None else f"exit {returncode}"
        super().__init__(f"git {' '.join(args)} ({status}): {self.stderr}")

    @property
    def timed_out(self) -> bool:
        return self.returncode is None

    @property
    def missing_ref(self) -> bool:
        return any(p.search(self.stderr) for p in _MISSING_REF_PATTERNS)

    @property
    def missing_repository(self) -> bool:
        return any(p.search(self.stderr) for p in _MISSING_REPO_PATTERNS)


class GitTransport:
    """Runs git commands against remote package repositories.

    Args:
        executable: The git binary.
        timeout: Seconds before a single git command is killed.
    """

    def __init__(self, executable: str = "git", *, timeout: float = 60.0) -> None:
        self._executable = executable
        self._timeout = timeout

    async def _run(self, args: list[str], *, cwd: Path | None = None) -> str:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        logger.debug("Running git %s", " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                self._executable,
                *args,
                cwd=str(cwd) if cwd else None,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise GitCommandError(args, 127, f"git executable not found: {self._executable}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), self._timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise GitCommandError(args, None, f"no response within {self._timeout:.0f}s")
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        if proc.returncode != 0:
            raise GitCommandError(args, proc.returncode, stderr.decode("utf-8", "replace"))
        return stdout.decode("utf-8", "replace")

    async def list_tags(self, url: str) -> list[str]:
        """Return the tag names (without ``refs/tags/``) of a remote repository."""
        out = await self._run(["ls-remote", "--tags", "--refs", url])
        tags: list[str] = []
        for line in out.splitlines():
            parts = line.split()
            if len(parts) == 2 and parts[1].startswith("refs/tags/"):
                tags.append(parts[1][len("refs/tags/"):])
        return tags

    async def checkout(self, url: str, tag: str, dest: Path) -> None:
        """Shallow-clone *url* at *tag* into *dest* and strip the ``.git`` directory."""
        await self._run([
            "-c", "advice.detachedHead=false",
            "clone", "--quiet", "--depth", "1", "--single-branch",
            "--branch", tag, url, str(dest),
        ])
        shutil.rmtree(dest / ".git", ignore_errors=True)
