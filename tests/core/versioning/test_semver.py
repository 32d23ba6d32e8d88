"""Tests for tag-derived semantic versions: parsing, ordering, dedupe."""

from __future__ import annotations

import pytest

from lunepack.core.versioning import Version, sort_descending


# ===========================================================================
# Parsing
# ===========================================================================


class TestParse:
    """Version.parse accepts release tags and rejects everything else."""

    def test_plain_version(self) -> None:
        """A bare x.y.z parses into its components."""
        v = Version.parse("1.4.2")
        assert v.release == (1, 4, 2)
        assert v.pre == ()
        assert v.tag == "1.4.2"

    def test_leading_v_is_accepted(self) -> None:
        """Conventional ``v`` tags parse and remember the original tag."""
        v = Version.parse("v2.0.0")
        assert v.release == (2, 0, 0)
        assert v.tag == "v2.0.0"

    def test_prerelease_and_build(self) -> None:
        """Pre-release identifiers split on dots; build metadata is kept for display."""
        v = Version.parse("1.0.0-rc.1+sha.abc")
        assert v.pre == ("rc", "1")
        assert v.build == "sha.abc"
        assert v.is_prerelease
        assert str(v) == "1.0.0-rc.1+sha.abc"

    @pytest.mark.parametrize(
        "text",
        ["latest", "1.0", "01.0.0", "1.0.0-01", "release-2024", "", "v1.0.0.0"],
    )
    def test_non_semver_tags_are_rejected(self, text: str) -> None:
        """Tags that are not semantic versions raise ValueError."""
        with pytest.raises(ValueError):
            Version.parse(text)

    def test_try_parse_returns_none(self) -> None:
        """try_parse swallows only the parse failure."""
        assert Version.try_parse("nightly") is None
        assert Version.try_parse("v0.1.0") == Version(0, 1, 0)


# ===========================================================================
# Ordering and equality
# ===========================================================================


class TestOrdering:
    """SemVer precedence rules."""

    def test_numeric_components_compare_numerically(self) -> None:
        """1.10.0 is newer than 1.9.0."""
        assert Version.parse("1.10.0") > Version.parse("1.9.0")

    def test_prerelease_sorts_before_release(self) -> None:
        """1.0.0-alpha < 1.0.0."""
        assert Version.parse("1.0.0-alpha") < Version.parse("1.0.0")

    def test_prerelease_identifier_chain(self) -> None:
        """The example chain from the SemVer document orders correctly."""
        chain = [
            "1.0.0-alpha",
            "1.0.0-alpha.1",
            "1.0.0-alpha.beta",
            "1.0.0-beta",
            "1.0.0-beta.2",
            "1.0.0-beta.11",
            "1.0.0-rc.1",
            "1.0.0",
        ]
        parsed = [Version.parse(t) for t in chain]
        assert parsed == sorted(parsed)

    def test_equality_ignores_tag_and_build(self) -> None:
        """v1.0.0, 1.0.0 and 1.0.0+abc are the same version."""
        assert Version.parse("v1.0.0") == Version.parse("1.0.0+abc")
        assert hash(Version.parse("v1.0.0")) == hash(Version.parse("1.0.0"))

    def test_without_tag(self) -> None:
        """without_tag drops the originating tag."""
        assert Version.parse("v3.1.4").without_tag().tag == ""


# ===========================================================================
# sort_descending
# ===========================================================================


class TestSortDescending:
    """Newest-first ordering with deterministic duplicate handling."""

    def test_newest_first(self) -> None:
        """Versions come back newest first."""
        versions = [Version.parse(t) for t in ("1.2.0", "1.3.0", "1.2.9")]
        assert [str(v) for v in sort_descending(versions)] == ["1.3.0", "1.2.9", "1.2.0"]

    def test_duplicate_tags_keep_smallest_tag(self) -> None:
        """When two tags denote one version, the lexicographically smallest tag wins."""
        versions = [Version.parse("v1.0.0"), Version.parse("1.0.0")]
        result = sort_descending(versions)
        assert len(result) == 1
        assert result[0].tag == "1.0.0"

    def test_empty(self) -> None:
        """An empty list stays empty."""
        assert sort_descending([]) == []
