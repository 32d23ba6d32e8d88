"""Target platforms and runtime binary lookup.

A target spec is one of:

- ``native``: the host platform.
- ``<os>-<arch>``: ``linux-x86_64``, ``macos-aarch64``, ``windows-x86_64``.
- A target triple: ``x86_64-unknown-linux-gnu``, ``aarch64-apple-darwin``,
  ``x86_64-pc-windows-msvc``.

Architecture aliases ``amd64``/``x64`` and ``arm64`` are accepted.
"""

from __future__ import annotations

import logging
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from lunepack.exceptions import UnsupportedTarget

logger = logging.getLogger(__name__)

SUPPORTED_OS = ("linux", "macos", "windows")
SUPPORTED_ARCH = ("x86_64", "aarch64")

_ARCH_ALIASES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}

_OS_ALIASES = {
    "linux": "linux",
    "macos": "macos",
    "darwin": "macos",
    "osx": "macos",
    "windows": "windows",
    "win": "windows",
    "win32": "windows",
}

_TRIPLE_VENDOR = {"linux": "unknown-linux-gnu", "macos": "apple-darwin", "windows": "pc-windows-msvc"}


@dataclass(frozen=True)
class Target:
    os: str
    arch: str

    @property
    def name(self) -> str:
        return f"{self.os}-{self.arch}"

    @property
    def triple(self) -> str:
        return f"{self.arch}-{_TRIPLE_VENDOR[self.os]}"

    @property
    def exe_suffix(self) -> str:
        return ".exe" if self.os == "windows" else ""

    @property
    def runtime_filename(self) -> str:
        return f"lune-{self.name}{self.exe_suffix}"

    def __str__(self) -> str:
        return self.name


def native_target() -> Target:
    """The host platform.

    Raises:
        UnsupportedTarget: If the host OS or architecture is not supported.
    """
    system = _OS_ALIASES.get(platform.system().lower())
    arch = _ARCH_ALIASES.get(platform.machine().lower())
    if system is None or arch is None:
        raise UnsupportedTarget("native", f"host {platform.system()}/{platform.machine()}")
    return Target(system, arch)


def resolve_target(spec: str | None) -> Target:
    """Parse a target spec.

    Raises:
        UnsupportedTarget: If the spec does not name a supported platform.
    """
    text = (spec or "native").strip().lower()
    if text == "native":
        return native_target()

    parts = text.split("-")
    if len(parts) == 2 and parts[0] in _OS_ALIASES:
        arch = _ARCH_ALIASES.get(parts[1])
        if arch is None:
            raise UnsupportedTarget(spec or text, f"unknown architecture {parts[1]!r}")
        return Target(_OS_ALIASES[parts[0]], arch)

    if len(parts) >= 3:
        arch = _ARCH_ALIASES.get(parts[0])
        if arch is None:
            raise UnsupportedTarget(spec or text, f"unknown architecture {parts[0]!r}")
        for part in parts[1:]:
            if part in _OS_ALIASES:
                return Target(_OS_ALIASES[part], arch)
        raise UnsupportedTarget(spec or text, "no operating system in target triple")

    raise UnsupportedTarget(spec or text, "expected native, <os>-<arch>, or a target triple")


class RuntimeLocator:
    """Finds the runtime binary to embed for a target.

    Args:
        search_dirs: Directories searched in order for ``lune-<os>-<arch>``.
    """

    def __init__(self, search_dirs: Sequence[Path]) -> None:
        self.search_dirs = [Path(d) for d in search_dirs]

    def candidates(self, target: Target) -> list[Path]:
        names = [target.runtime_filename]
        try:
            if target == native_target():
                names.append("lune" + target.exe_suffix)
        except UnsupportedTarget:
            pass
        return [d / n for d in self.search_dirs for n in names]

    def locate(self, target: Target, explicit: Path | None = None) -> Path:
        """Return the runtime binary for *target*.

        Raises:
            UnsupportedTarget: If no runtime is available.
        """
        if explicit is not None:
            path = Path(explicit)
            if not path.is_file():
                raise UnsupportedTarget(target.name, f"runtime {path} does not exist")
            return path
        for candidate in self.candidates(target):
            if candidate.is_file():
                logger.debug("Using runtime %s for %s", candidate, target)
                return candidate
        searched = ", ".join(str(d) for d in self.search_dirs) or "(no directories)"
        raise UnsupportedTarget(
            target.name, f"no {target.runtime_filename} runtime found in {searched}"
        )
