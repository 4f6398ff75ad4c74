"""Tests for change levels and version bumps."""
import pytest

from chartbumper.errors import InvalidVersionError
from chartbumper.versioning.semver import ChangeLevel, Version, bump_version, compare, parse_version


@pytest.mark.parametrize("a,b,level", [
    ("1.2.3", "1.2.3", ChangeLevel.NONE),
    ("1.2.3", "1.2.4", ChangeLevel.PATCH),
    ("1.2.3", "1.3.0", ChangeLevel.MINOR),
    ("1.2.3", "2.0.0", ChangeLevel.MAJOR),
    ("2.0.0", "1.9.9", ChangeLevel.MAJOR),
    ("v1.2.3", "1.2.4", ChangeLevel.PATCH),
    (" 1.2.3 ", "1.2.3", ChangeLevel.NONE),
    ("v1.2.3", "1.2.3", ChangeLevel.NONE),
    ("latest", "1.2.3", ChangeLevel.NONE),
    ("1.2", "1.3", ChangeLevel.NONE),
    ("", "1.0.0", ChangeLevel.NONE),
    (None, None, ChangeLevel.NONE),
])
def test_compare(a, b, level):
    """Test the change level between two versions."""
    assert compare(a, b) == level


def test_change_level_order_and_names():
    """Test that levels are ordered and print lowercase."""
    assert ChangeLevel.NONE < ChangeLevel.PATCH < ChangeLevel.MINOR < ChangeLevel.MAJOR
    assert max(ChangeLevel.PATCH, ChangeLevel.MINOR) == ChangeLevel.MINOR
    assert str(ChangeLevel.MINOR) == "minor"


@pytest.mark.parametrize("current,level,expected", [
    ("0.3.2", ChangeLevel.PATCH, "0.3.3"),
    ("0.3.2", ChangeLevel.MINOR, "0.4.0"),
    ("0.3.2", ChangeLevel.MAJOR, "1.0.0"),
    ("v1.9.9", ChangeLevel.PATCH, "1.9.10"),
    ("1.2.3", ChangeLevel.NONE, "1.2.3"),
])
def test_bump_version(current, level, expected):
    """Test bump arithmetic."""
    assert bump_version(current, level) == expected


@pytest.mark.parametrize("current", ["1.2", "1.2.3-rc.1", "abc", ""])
def test_bump_version_invalid(current):
    """Test that only x.y.z versions can be bumped."""
    with pytest.raises(InvalidVersionError):
        bump_version(current, ChangeLevel.PATCH)


def test_parse_version():
    """Test parsing three-part versions."""
    assert parse_version("v10.0.1") == Version(10, 0, 1)
    assert str(parse_version("1.2.3")) == "1.2.3"
    assert parse_version("1.2.3.4") is None
    assert parse_version(None) is None
