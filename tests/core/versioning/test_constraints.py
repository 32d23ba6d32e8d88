"""Tests for version constraints: atom forms, pre-release gating, intersection."""

from __future__ import annotations

import pytest

from lunepack.core.versioning import Version, VersionConstraint


def _ok(constraint: str, version: str) -> bool:
    return VersionConstraint(constraint).satisfies(version)


# ===========================================================================
# Atom forms
# ===========================================================================


class TestAtoms:
    """Each supported constraint atom accepts exactly the versions it denotes."""

    @pytest.mark.parametrize("constraint", ["*", "", "x", "X"])
    def test_wildcards_accept_any_release(self, constraint: str) -> None:
        """Wildcards match every release."""
        assert _ok(constraint, "0.0.1")
        assert _ok(constraint, "9.9.9")
        assert VersionConstraint(constraint).is_wildcard

    def test_exact(self) -> None:
        """Exact constraints match only the named version."""
        for c in ("1.2.3", "=1.2.3", "==1.2.3"):
            assert _ok(c, "1.2.3")
            assert not _ok(c, "1.2.4")

    def test_not_equal(self) -> None:
        """!= excludes a single version."""
        assert not _ok("!=1.2.3", "1.2.3")
        assert _ok("!=1.2.3", "1.2.4")

    def test_caret_major(self) -> None:
        """^1.2.3 allows minor and patch updates."""
        assert _ok("^1.2.3", "1.2.3")
        assert _ok("^1.2.3", "1.9.0")
        assert not _ok("^1.2.3", "2.0.0")
        assert not _ok("^1.2.3", "1.2.2")

    def test_caret_zero_minor(self) -> None:
        """^0.2.3 is confined to 0.2.x."""
        assert _ok("^0.2.3", "0.2.9")
        assert not _ok("^0.2.3", "0.3.0")

    def test_caret_zero_zero(self) -> None:
        """^0.0.3 matches only 0.0.3."""
        assert _ok("^0.0.3", "0.0.3")
        assert not _ok("^0.0.3", "0.0.4")

    def test_tilde(self) -> None:
        """~1.2 allows patch updates only; ~1 allows minor updates."""
        assert _ok("~1.2", "1.2.9")
        assert not _ok("~1.2", "1.3.0")
        assert _ok("~1", "1.9.0")
        assert not _ok("~1", "2.0.0")

    def test_partial_versions(self) -> None:
        """1.2, 1.2.x and 1.2.* denote the 1.2 series."""
        for c in ("1.2", "1.2.x", "1.2.*"):
            assert _ok(c, "1.2.0")
            assert _ok(c, "1.2.7")
            assert not _ok(c, "1.3.0")

    def test_comparison_ranges(self) -> None:
        """Comma-joined atoms form a conjunction."""
        c = ">=1.2.0, <2.0.0"
        assert _ok(c, "1.2.0")
        assert _ok(c, "1.99.0")
        assert not _ok(c, "2.0.0")
        assert not _ok(c, "1.1.9")

    def test_greater_than_partial(self) -> None:
        """>1.2 means >=1.3.0."""
        assert not _ok(">1.2", "1.2.9")
        assert _ok(">1.2", "1.3.0")

    @pytest.mark.parametrize("raw", ["^", ">=banana", "1.2.3 || 2.0.0", "!=1.2"])
    def test_invalid_constraints_raise(self, raw: str) -> None:
        """Malformed constraints fail at construction."""
        with pytest.raises(ValueError):
            VersionConstraint(raw)

    def test_leading_v_in_constraint(self) -> None:
        """Constraints may quote versions the way tags spell them."""
        assert _ok("^v1.0.0", "1.4.0")


# ===========================================================================
# Pre-release gating
# ===========================================================================


class TestPrerelease:
    """Pre-releases only match constraints that name them."""

    def test_caret_does_not_pick_prerelease(self) -> None:
        """^1.0.0 never selects 1.1.0-beta."""
        assert not _ok("^1.0.0", "1.1.0-beta")

    def test_named_prerelease_opts_in(self) -> None:
        """>=1.1.0-beta admits pre-releases of 1.1.0."""
        assert _ok(">=1.1.0-beta", "1.1.0-beta.2")
        assert _ok(">=1.1.0-beta", "1.1.0")
        assert not _ok(">=1.1.0-beta", "1.2.0-alpha")

    def test_wildcard_rejects_prerelease(self) -> None:
        """Even * skips pre-releases."""
        assert not _ok("*", "2.0.0-rc.1")


# ===========================================================================
# Intersection
# ===========================================================================


class TestIntersection:
    """Symbolic compatibility between two constraints."""

    def test_disjoint_carets(self) -> None:
        """^1.0 and ^2.0 have no common version."""
        assert not VersionConstraint("^1.0").is_compatible_with(VersionConstraint("^2.0"))

    def test_overlapping_ranges(self) -> None:
        """^1.2 and ~1.2 overlap on the 1.2 series."""
        a, b = VersionConstraint("^1.2"), VersionConstraint("~1.2")
        assert a.is_compatible_with(b)
        assert str(a.intersect(b)) == ">=1.2.0,<1.3.0"

    def test_touching_exclusive_bounds(self) -> None:
        """<2.0.0 and >=2.0.0 do not overlap."""
        assert not VersionConstraint("<2.0.0").is_compatible_with(VersionConstraint(">=2.0.0"))

    def test_exact_excluded(self) -> None:
        """=1.0.0 and !=1.0.0 cannot both hold."""
        assert not VersionConstraint("1.0.0").is_compatible_with(VersionConstraint("!=1.0.0"))

    def test_wildcard_with_anything(self) -> None:
        """* intersects every satisfiable constraint."""
        assert VersionConstraint("*").is_compatible_with(VersionConstraint("^0.0.3"))

    def test_compatible_with_records_caret(self) -> None:
        """compatible_with builds the caret constraint written by install."""
        c = VersionConstraint.compatible_with(Version.parse("v1.3.0"))
        assert str(c) == "^1.3.0"
