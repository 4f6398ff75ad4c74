"""Tag selection strategies for ``# bump:`` image directives."""
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

import semver

from ..diagnostics import Diagnostics, quiet
from ..errors import (AmbiguousTagError, ConstraintViolationError, MalformedDirectiveError,
                      NoMatchingTagError, UnrecognizedStrategyError)
from ..versioning.constraints import Constraint, coerce_version

TagLister = Callable[[str], List[str]]


@dataclass
class _Candidate:
    tag: str
    version: semver.Version


def _best(candidates: List[_Candidate]) -> str:
    """Highest version; equal versions prefer a tag without ``v``, then the smallest text."""
    best = max(c.version for c in candidates)
    tied = sorted(c.tag for c in candidates if c.version.compare(best) == 0)
    for tag in tied:
        if not tag.startswith("v"):
            return tag
    return tied[0]


def _compile(tag_regex: Optional[str], strategy: str) -> "re.Pattern":
    if not tag_regex:
        raise MalformedDirectiveError(f"strategy={strategy} requires tagRegex")
    try:
        return re.compile(tag_regex)
    except re.error as e:
        raise MalformedDirectiveError(f"invalid tagRegex {tag_regex!r}: {e}")


def pick_semver_tag(tags: Iterable[str], constraint: Optional[str] = None,
                    allow_prerelease: bool = False) -> str:
    """Pick the highest semver tag, optionally within ``constraint``.

    Raises:
        ConstraintViolationError: If the constraint is invalid or nothing satisfies it.
        NoMatchingTagError: If no tag is a version.
    """
    parsed = Constraint.parse(constraint) if constraint and constraint.strip() else None
    candidates = []
    for tag in tags:
        version = coerce_version(tag)
        if version is None:
            continue
        if not allow_prerelease and version.prerelease:
            continue
        if parsed is not None and not parsed.check(version):
            continue
        candidates.append(_Candidate(tag, version))
    if not candidates:
        if parsed is not None:
            raise ConstraintViolationError(f"no semver tags match constraint {constraint!r}")
        raise NoMatchingTagError("no semver tags found")
    return _best(candidates)


def pick_regex_tag(tags: Iterable[str], tag_regex: Optional[str], allow_prerelease: bool = False) -> str:
    """Pick among tags matching ``tag_regex``.

    With a capture group, group 1 is read as a version and the highest wins.
    Without one, the lexicographically greatest matching tag wins.
    """
    pattern = _compile(tag_regex, "regex")
    by_capture = pattern.groups >= 1
    candidates = []
    matched = []
    for tag in tags:
        match = pattern.search(tag)
        if match is None:
            continue
        if not by_capture:
            matched.append(tag)
            continue
        version = coerce_version(match.group(1) or "")
        if version is None:
            continue
        if not allow_prerelease and version.prerelease:
            continue
        candidates.append(_Candidate(tag, version))
    if by_capture and candidates:
        return _best(candidates)
    if not by_capture and matched:
        return max(matched)
    raise NoMatchingTagError(f"no tags match tagRegex {tag_regex!r}")


def pick_literal_tag(tags: Iterable[str], tag_regex: Optional[str]) -> str:
    """Return the single tag matching ``tag_regex``.

    Raises:
        NoMatchingTagError: If no tag matches.
        AmbiguousTagError: If several tags match; all matches are listed sorted.
    """
    pattern = _compile(tag_regex, "literal")
    matches = sorted(tag for tag in tags if pattern.search(tag))
    if not matches:
        raise NoMatchingTagError(f"no tags match tagRegex {tag_regex!r}")
    if len(matches) > 1:
        raise AmbiguousTagError(
            f"tagRegex {tag_regex!r} matched multiple tags; make it more specific "
            f"(e.g. anchor with ^$). Matches: {', '.join(matches)}", matches)
    return matches[0]


def select_tag(tags: Iterable[str], strategy: str = "semver", constraint: Optional[str] = None,
               tag_regex: Optional[str] = None, allow_prerelease: bool = False) -> str:
    """Select a tag from ``tags`` with the named strategy.

    Args:
        tags: Candidate tags.
        strategy: ``semver``, ``regex`` or ``literal``.
        constraint: Optional range expression for ``semver``.
        tag_regex: Pattern for ``regex`` and ``literal``.
        allow_prerelease: Whether prerelease versions may be chosen.

    Returns:
        str: The chosen tag.

    Raises:
        UnrecognizedStrategyError: If ``strategy`` is unknown.
    """
    tags = list(tags)
    strategy = (strategy or "semver").strip()
    if strategy == "semver":
        return pick_semver_tag(tags, constraint, allow_prerelease)
    if strategy == "regex":
        return pick_regex_tag(tags, tag_regex, allow_prerelease)
    if strategy == "literal":
        return pick_literal_tag(tags, tag_regex)
    raise UnrecognizedStrategyError(f"unknown strategy: {strategy!r}")


class TagResolver:
    """Lists a repository's tags and applies a selection strategy."""

    def __init__(self, lister: TagLister, diagnostics: Optional[Diagnostics] = None):
        self.lister = lister
        self.diagnostics = diagnostics or quiet()

    def resolve(self, image: str, strategy: str = "semver", constraint: Optional[str] = None,
                tag_regex: Optional[str] = None, allow_prerelease: bool = False) -> str:
        """Resolve the tag to use for ``image``.

        Raises:
            NoMatchingTagError: If the repository has no tags or none qualify.
        """
        if not image or "/" not in image or "." not in image:
            raise MalformedDirectiveError(
                f"image repository must be a full path like ghcr.io/org/image: {image!r}")
        tags = self.lister(image)
        self.diagnostics.debug("listed tags", image=image, count=len(tags))
        if not tags:
            raise NoMatchingTagError(f"no tags found for {image}")
        tag = select_tag(tags, strategy, constraint, tag_regex, allow_prerelease)
        self.diagnostics.debug("selected tag", image=image, strategy=strategy, tag=tag)
        return tag
