"""Version range expressions (``>=1.2 <2``, ``^1.4``, ``~0.3 || 1.x``) over semver tags."""
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

import semver

from ..errors import ConstraintViolationError

_IDENT = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"
_LENIENT_RE = re.compile(
    rf"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:-({_IDENT}))?(?:\+({_IDENT}))?$")
_RANGE_VERSION = rf"v?[0-9xX*]+(?:\.[0-9xX*]+){{0,2}}(?:-{_IDENT})?(?:\+{_IDENT})?"
_COMPARISON_RE = re.compile(rf"\s*(!=|>=|=>|<=|=<|~>|>|<|=|~|\^)?\s*({_RANGE_VERSION})\s*,?")
_HYPHEN_RE = re.compile(rf"({_RANGE_VERSION})\s+-\s+({_RANGE_VERSION})")
_WILDCARDS = ("x", "X", "*")
_OPERATORS = {"=>": ">=", "=<": "<=", "~>": "~", "": "="}


def coerce_version(text: str) -> Optional[semver.Version]:
    """Parse a tag leniently: optional ``v``, one to three numbers, prerelease, build.

    Returns None when the tag is not a version.
    """
    match = _LENIENT_RE.match(text.strip())
    if match is None:
        return None
    major, minor, patch, prerelease, build = match.groups()
    return semver.Version(int(major), int(minor or 0), int(patch or 0), prerelease, build)


@dataclass(frozen=True)
class _Comparison:
    operator: str
    version: semver.Version
    specified: int  # numeric parts given before any wildcard

    def upper(self) -> Optional[semver.Version]:
        """Exclusive upper end of the range a partial version stands for."""
        v = self.version
        if self.specified == 0:
            return None
        if self.specified == 1:
            return semver.Version(v.major + 1, 0, 0)
        return semver.Version(v.major, v.minor + 1, 0)

    def _caret_upper(self) -> Optional[semver.Version]:
        v = self.version
        if self.specified == 0:
            return None
        if v.major > 0 or self.specified == 1:
            return semver.Version(v.major + 1, 0, 0)
        if v.minor > 0 or self.specified == 2:
            return semver.Version(0, v.minor + 1, 0)
        return semver.Version(0, 0, v.patch + 1)

    def _within(self, version: semver.Version, upper: Optional[semver.Version]) -> bool:
        return version >= self.version and (upper is None or version < upper)

    def check(self, version: semver.Version) -> bool:
        exact = self.specified == 3
        op = self.operator
        if op == "=":
            return version.compare(self.version) == 0 if exact else self._within(version, self.upper())
        if op == "!=":
            return version.compare(self.version) != 0 if exact else not self._within(version, self.upper())
        if op == ">":
            if exact:
                return version > self.version
            upper = self.upper()
            return upper is not None and version >= upper
        if op == ">=":
            return version >= self.version
        if op == "<":
            return version < self.version
        if op == "<=":
            if exact:
                return version <= self.version
            upper = self.upper()
            return upper is None or version < upper
        if op == "~":
            return self._within(version, self.upper())
        return self._within(version, self._caret_upper())


def _parse_range_version(text: str, expression: str) -> Tuple[semver.Version, int]:
    core, _, build = text.lstrip("v").partition("+")
    core, _, prerelease = core.partition("-")
    numbers: List[int] = []
    wildcard = False
    for part in core.split("."):
        if part in _WILDCARDS:
            wildcard = True
            continue
        if wildcard or not part.isdigit():
            raise ConstraintViolationError(f"invalid constraint {expression!r}: bad version {text!r}")
        numbers.append(int(part))
    specified = len(numbers)
    numbers += [0] * (3 - specified)
    return semver.Version(*numbers, prerelease or None, build or None), specified


@dataclass(frozen=True)
class Constraint:
    """Alternatives (``||``) of comparison groups that must all hold."""
    text: str
    groups: Tuple[Tuple[_Comparison, ...], ...]

    @classmethod
    def parse(cls, text: str) -> "Constraint":
        """Parse a range expression.

        Raises:
            ConstraintViolationError: If ``text`` is not a valid expression.
        """
        if text is None or not text.strip():
            raise ConstraintViolationError("empty constraint")
        groups = []
        for alternative in text.split("||"):
            group = _HYPHEN_RE.sub(r">=\1 <=\2", alternative.strip())
            if not group:
                raise ConstraintViolationError(f"invalid constraint {text!r}: empty alternative")
            comparisons = []
            pos = 0
            while pos < len(group):
                match = _COMPARISON_RE.match(group, pos)
                if match is None or match.end() == pos:
                    raise ConstraintViolationError(f"invalid constraint {text!r} near {group[pos:]!r}")
                operator = _OPERATORS.get(match.group(1) or "", match.group(1))
                version, specified = _parse_range_version(match.group(2), text)
                comparisons.append(_Comparison(operator, version, specified))
                pos = match.end()
            groups.append(tuple(comparisons))
        return cls(text, tuple(groups))

    def check(self, version: semver.Version) -> bool:
        """Whether ``version`` satisfies any alternative.

        A prerelease only satisfies an alternative that names a prerelease itself.
        """
        for group in self.groups:
            if version.prerelease and not any(c.version.prerelease for c in group):
                continue
            if all(c.check(version) for c in group):
                return True
        return False

    def __str__(self) -> str:
        return self.text
