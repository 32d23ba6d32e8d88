"""Semantic versions parsed from source-control tags.

Package versions are never declared in the registry: they are derived from
the tags present in the package repository. A tag such as ``v1.4.0`` or
``2.0.0-rc.1`` becomes a :class:`Version`; tags that are not semantic
versions (``latest``, ``release-2024``) are ignored by the registry client.

Ordering follows SemVer 2.0.0 precedence (section 11):

- ``major``, ``minor`` and ``patch`` compare numerically.
- A pre-release has lower precedence than the associated normal version.
- Pre-release identifiers compare left to right; numeric identifiers compare
  numerically and rank below alphanumeric ones; a shorter list of otherwise
  equal identifiers ranks lower.
- Build metadata is ignored.

References
----------
.. [SemVer] Preston-Werner, T. (2013). "Semantic Versioning 2.0.0."
   https://semver.org/
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass, field

_SEMVER_RE = re.compile(
    r"^[vV]?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?$"
)


def _identifier_key(ident: str) -> tuple[int, int, str]:
    if ident.isdigit():
        return (0, int(ident), "")
    return (1, 0, ident)


@functools.total_ordering
@dataclass(frozen=True)
class Version:
    """A semantic version.

    Equality and hashing ignore build metadata and the originating tag, so
    ``Version.parse("v1.0.0") == Version.parse("1.0.0+abc")``.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        pre: Pre-release identifiers (empty for a normal release).
        build: Build metadata, preserved for display only.
        tag: The source-control tag this version was parsed from, if any.
    """

    major: int
    minor: int
    patch: int
    pre: tuple[str, ...] = ()
    build: str = field(default="", compare=False)
    tag: str = field(default="", compare=False)

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a version string or tag name.

        A leading ``v`` is accepted so that conventional release tags parse.

        Raises:
            ValueError: If *text* is not a semantic version.
        """
        stripped = text.strip()
        m = _SEMVER_RE.match(stripped)
        if not m:
            raise ValueError(f"Invalid semantic version: {text!r}")
        pre = tuple(m.group("pre").split(".")) if m.group("pre") else ()
        for ident in pre:
            if ident.isdigit() and len(ident) > 1 and ident.startswith("0"):
                raise ValueError(f"Invalid semantic version: {text!r}")
        return cls(
            major=int(m.group("major")),
            minor=int(m.group("minor")),
            patch=int(m.group("patch")),
            pre=pre,
            build=m.group("build") or "",
            tag=stripped,
        )

    @classmethod
    def try_parse(cls, text: str) -> Version | None:
        """Like :meth:`parse` but returns None instead of raising."""
        try:
            return cls.parse(text)
        except ValueError:
            return None

    @property
    def release(self) -> tuple[int, int, int]:
        """The ``(major, minor, patch)`` triple."""
        return (self.major, self.minor, self.patch)

    @property
    def is_prerelease(self) -> bool:
        return bool(self.pre)

    @property
    def sort_key(self) -> tuple:
        if not self.pre:
            return (self.major, self.minor, self.patch, 1, ())
        idents = tuple(_identifier_key(p) for p in self.pre)
        return (self.major, self.minor, self.patch, 0, idents)

    def without_tag(self) -> Version:
        return Version(self.major, self.minor, self.patch, self.pre, self.build)

    def bump_major(self) -> Version:
        return Version(self.major + 1, 0, 0)

    def bump_minor(self) -> Version:
        return Version(self.major, self.minor + 1, 0)

    def bump_patch(self) -> Version:
        return Version(self.major, self.minor, self.patch + 1)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += "-" + ".".join(self.pre)
        if self.build:
            text += "+" + self.build
        return text

    def __repr__(self) -> str:
        return f"Version({str(self)!r})"


def sort_descending(versions: list[Version]) -> list[Version]:
    """Return *versions* newest first, dropping duplicates of equal precedence.

    When two tags parse to the same version (``v1.0.0`` and ``1.0.0``), the
    lexicographically smallest tag is kept so the choice is deterministic.
    """
    by_version: dict[Version, Version] = {}
    for v in versions:
        current = by_version.get(v)
        if current is None or v.tag < current.tag:
            by_version[v] = v
    return sorted(by_version.values(), reverse=True)
