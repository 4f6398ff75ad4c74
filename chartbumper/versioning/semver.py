"""Three-part version parsing, change levels and bump arithmetic."""
import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from ..errors import InvalidVersionError

VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)$")


class ChangeLevel(IntEnum):
    """Severity of a version difference, ordered NONE < PATCH < MINOR < MAJOR."""
    NONE = 0
    PATCH = 1
    MINOR = 2
    MAJOR = 3

    def __str__(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class Version:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_version(text: str) -> Optional[Version]:
    """Parse ``x.y.z`` or ``vx.y.z``.

    Returns None when ``text`` has any other shape; callers treat that as
    "not semver" rather than as an error.
    """
    if text is None:
        return None
    match = VERSION_RE.match(str(text).strip())
    if match is None:
        return None
    return Version(*(int(part) for part in match.groups()))


def compare(a: str, b: str) -> ChangeLevel:
    """Return the change level going from version ``a`` to version ``b``.

    Equal texts and unparsable versions never force a bump.
    """
    a = (a or "").strip()
    b = (b or "").strip()
    if a == b:
        return ChangeLevel.NONE
    va = parse_version(a)
    vb = parse_version(b)
    if va is None or vb is None:
        return ChangeLevel.NONE
    if va.major != vb.major:
        return ChangeLevel.MAJOR
    if va.minor != vb.minor:
        return ChangeLevel.MINOR
    if va.patch != vb.patch:
        return ChangeLevel.PATCH
    return ChangeLevel.NONE


def bump_version(current: str, level: ChangeLevel) -> str:
    """Bump ``current`` by ``level``.

    Args:
        current: Version to bump, ``x.y.z`` with an optional leading ``v``.
        level: Change level to apply.

    Returns:
        str: The bumped version without a ``v`` prefix, or ``current``
            itself for ``ChangeLevel.NONE``.

    Raises:
        InvalidVersionError: If ``current`` is not a three-part version.
    """
    version = parse_version(current)
    if version is None:
        raise InvalidVersionError(f"invalid semver: {current!r}")
    if level == ChangeLevel.MAJOR:
        return f"{version.major + 1}.0.0"
    if level == ChangeLevel.MINOR:
        return f"{version.major}.{version.minor + 1}.0"
    if level == ChangeLevel.PATCH:
        return f"{version.major}.{version.minor}.{version.patch + 1}"
    return current
