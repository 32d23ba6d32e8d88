"""Version constraints and their symbolic intersection.

A constraint is a comma-separated conjunction of atoms, in the npm / Cargo
tradition:

- Wildcard: ``*``, ``x`` or the empty string.
- Exact: ``1.2.3``, ``=1.2.3``, ``==1.2.3``.
- Not-equal: ``!=1.2.3``.
- Range: ``>=1.2.0``, ``>1.2.0``, ``<=2.0.0``, ``<2.0.0``.
- Caret (compatible): ``^1.2.3`` (``>=1.2.3,<2.0.0``), ``^0.2.3``
  (``>=0.2.3,<0.3.0``), ``^0.0.3`` (``>=0.0.3,<0.0.4``).
- Tilde: ``~1.2.3`` (``>=1.2.3,<1.3.0``), ``~1`` (``>=1.0.0,<2.0.0``).
- Partial versions: ``1.2``, ``1.2.x``, ``1.2.*``, ``1`` expand to the range
  they denote; ``^1.2`` and ``>1.2`` expand the same way npm does.

Every constraint normalizes to one :class:`VersionRange` (a single interval
plus a set of excluded versions). Intersections of constraints are therefore
computed symbolically, which is what lets the resolver report two
incompatible requirements without consulting the registry.

Pre-release versions only satisfy a constraint when one of its atoms names a
pre-release of the same ``major.minor.patch``: ``^1.0.0`` never selects
``1.1.0-beta``, but ``>=1.1.0-beta`` does.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass, field

from lunepack.core.versioning.semver import Version

_ATOM_RE = re.compile(
    r"^\s*(?P<op>==|!=|>=|<=|=|>|<|\^|~)?\s*"
    r"[vV]?(?P<major>\d+|[xX*])"
    r"(?:\.(?P<minor>\d+|[xX*]))?"
    r"(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?:-(?P<pre>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?"
    r"(?:\+[0-9A-Za-z\-.]+)?\s*$"
)

_WILDCARDS = {"", "*", "x", "X"}


# ---------------------------------------------------------------------------
# VersionRange: the normalized form of a constraint
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Bound:
    """One end of a version interval."""

    version: Version
    inclusive: bool


@dataclass(frozen=True)
class VersionRange:
    """A single version interval with point exclusions.

    ``lower``/``upper`` of None mean unbounded on that side.
    """

    lower: Bound | None = None
    upper: Bound | None = None
    excluded: frozenset[Version] = field(default_factory=frozenset)

    def contains(self, version: Version) -> bool:
        if self.lower is not None:
            if version < self.lower.version:
                return False
            if version == self.lower.version and not self.lower.inclusive:
                return False
        if self.upper is not None:
            if version > self.upper.version:
                return False
            if version == self.upper.version and not self.upper.inclusive:
                return False
        return version not in self.excluded

    def intersect(self, other: VersionRange) -> VersionRange:
        return VersionRange(
            lower=_tighter_lower(self.lower, other.lower),
            upper=_tighter_upper(self.upper, other.upper),
            excluded=self.excluded | other.excluded,
        )

    def is_empty(self) -> bool:
        if self.lower is None or self.upper is None:
            return False
        lo, hi = self.lower, self.upper
        if lo.version > hi.version:
            return True
        if lo.version == hi.version:
            if not (lo.inclusive and hi.inclusive):
                return True
            return lo.version in self.excluded
        return False

    def __str__(self) -> str:
        parts: list[str] = []
        if self.lower is not None:
            parts.append((">=" if self.lower.inclusive else ">") + str(self.lower.version))
        if self.upper is not None:
            parts.append(("<=" if self.upper.inclusive else "<") + str(self.upper.version))
        parts.extend(f"!={v}" for v in sorted(self.excluded))
        return ",".join(parts) or "*"


def _tighter_lower(a: Bound | None, b: Bound | None) -> Bound | None:
    if a is None:
        return b
    if b is None:
        return a
    if a.version != b.version:
        return a if a.version > b.version else b
    return a if not a.inclusive else b


def _tighter_upper(a: Bound | None, b: Bound | None) -> Bound | None:
    if a is None:
        return b
    if b is None:
        return a
    if a.version != b.version:
        return a if a.version < b.version else b
    return a if not a.inclusive else b


# ---------------------------------------------------------------------------
# Atom parsing
# ---------------------------------------------------------------------------


def _part(value: str | None) -> int | None:
    if value is None or value in _WILDCARDS:
        return None
    return int(value)


def _atom_range(atom: str) -> tuple[VersionRange, tuple[int, int, int] | None]:
    """Normalize one atom to a range, plus the release triple of a named pre-release."""
    if atom.strip() in _WILDCARDS:
        return VersionRange(), None

    m = _ATOM_RE.match(atom)
    if not m:
        raise ValueError(f"Invalid constraint atom: {atom!r}")

    op = m.group("op") or "="
    major = _part(m.group("major"))
    minor = _part(m.group("minor"))
    patch = _part(m.group("patch"))
    pre = tuple(m.group("pre").split(".")) if m.group("pre") else ()

    # Parts after a wildcard are meaningless ("1.x.3").
    if major is None:
        minor = patch = None
    elif minor is None:
        patch = None
    if pre and patch is None:
        raise ValueError(f"Pre-release requires a full version: {atom!r}")

    full = patch is not None
    base = Version(major or 0, minor or 0, patch or 0, pre)
    pre_release = base.release if pre else None

    if major is None:
        if op in ("=", "==", ">=", "<=", "^", "~"):
            return VersionRange(), None
        raise ValueError(f"Operator {op!r} needs a version: {atom!r}")

    def at_least(v: Version) -> Bound:
        return Bound(v, True)

    def below(v: Version) -> Bound:
        return Bound(v, False)

    if op in ("=", "=="):
        if full:
            return VersionRange(Bound(base, True), Bound(base, True)), pre_release
        upper = base.bump_major() if minor is None else base.bump_minor()
        return VersionRange(at_least(base), below(upper)), None

    if op == "!=":
        if not full:
            raise ValueError(f"'!=' needs a full version: {atom!r}")
        return VersionRange(excluded=frozenset({base})), pre_release

    if op == ">=":
        return VersionRange(lower=at_least(base)), pre_release
    if op == ">":
        if full:
            return VersionRange(lower=Bound(base, False)), pre_release
        nxt = base.bump_major() if minor is None else base.bump_minor()
        return VersionRange(lower=at_least(nxt)), None
    if op == "<":
        return VersionRange(upper=below(base)), pre_release
    if op == "<=":
        if full:
            return VersionRange(upper=Bound(base, True)), pre_release
        nxt = base.bump_major() if minor is None else base.bump_minor()
        return VersionRange(upper=below(nxt)), None

    if op == "^":
        if major > 0 or minor is None:
            upper = base.bump_major()
        elif (minor or 0) > 0 or patch is None:
            upper = base.bump_minor()
        else:
            upper = base.bump_patch()
        return VersionRange(at_least(base), below(upper)), pre_release

    # op == "~"
    upper = base.bump_major() if minor is None else base.bump_minor()
    return VersionRange(at_least(base), below(upper)), pre_release


@functools.lru_cache(maxsize=1024)
def _compile(raw: str) -> tuple[VersionRange, frozenset[tuple[int, int, int]]]:
    stripped = raw.strip()
    rng = VersionRange()
    pre_ok: set[tuple[int, int, int]] = set()
    atoms = [a.strip() for a in stripped.split(",")] if stripped else [""]
    for atom in atoms:
        atom_range, pre_release = _atom_range(atom)
        rng = rng.intersect(atom_range)
        if pre_release is not None:
            pre_ok.add(pre_release)
    return rng, frozenset(pre_ok)


# ---------------------------------------------------------------------------
# VersionConstraint: Declarative version requirement
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VersionConstraint:
    """A version requirement attached to a dependency declaration.

    Attributes:
        raw: The constraint string as authored (e.g. ``"^1.2"``).
    """

    raw: str

    def __post_init__(self) -> None:
        _compile(self.raw)

    @classmethod
    def any(cls) -> VersionConstraint:
        return cls("*")

    @classmethod
    def compatible_with(cls, version: Version) -> VersionConstraint:
        """The caret constraint a fresh ``install <name>`` records."""
        return cls(f"^{version.without_tag()}")

    @property
    def range(self) -> VersionRange:
        return _compile(self.raw)[0]

    @property
    def is_wildcard(self) -> bool:
        rng = self.range
        return rng.lower is None and rng.upper is None and not rng.excluded

    def satisfies(self, version: str | Version) -> bool:
        """Check whether a version satisfies every atom of this constraint.

        Raises:
            ValueError: If *version* is a string that is not a semantic version.
        """
        if isinstance(version, str):
            version = Version.parse(version)
        rng, pre_ok = _compile(self.raw)
        if version.is_prerelease and version.release not in pre_ok:
            return False
        return rng.contains(version)

    def intersect(self, other: VersionConstraint) -> VersionRange:
        return self.range.intersect(other.range)

    def is_compatible_with(self, other: VersionConstraint) -> bool:
        """True when some version could satisfy both constraints."""
        return not self.intersect(other).is_empty()

    def __str__(self) -> str:
        return self.raw.strip() or "*"

    def __repr__(self) -> str:
        return f"VersionConstraint({self.raw!r})"
