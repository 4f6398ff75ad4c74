"""Line scanner that finds ``# bump:`` directives and the scalars they target.

The scanner never builds a tree. It follows indentation line by line and
derives the same ``$.a.b[0].c`` addresses that :class:`PathResolver` accepts
for the parsed document, so every directive can be applied by address.
"""
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import yaml

from ..diagnostics import Diagnostics, quiet
from ..document.address import FIELD_NAME_RE, Address
from ..document.parser import split_lines
from ..errors import (InvalidAddressError, MalformedDirectiveError, MalformedInputError,
                      MissingRequiredFieldError)
from .models import DEFAULT_STRATEGY, STRATEGIES, Directive

DIRECTIVE_RE = re.compile(r"^\s*#\s*bump:\s*(.*)$")
_ITEM_RE = re.compile(r"^( *)-(?:[ \t]+(.*))?$")
_QUOTED_KEY_RE = re.compile(r"""^("(?:[^"\\]|\\.)*"|'(?:[^']|'')*')[ \t]*:(?:[ \t]+(.*))?$""")
_PLAIN_KEY_RE = re.compile(r"""^([^\s#'"?\[\]{}&*!|>%@`,][^#]*?)[ \t]*:(?:[ \t]+(.*))?$""")
_QUOTED_VALUE_RE = re.compile(r'''^(?:"(?:[^"\\]|\\.)*"|'(?:[^']|'')*')''')
_BLOCK_HEADER_RE = re.compile(r"^[|>][0-9+-]*[ \t]*(?:#.*)?$")
_INLINE_COMMENT_RE = re.compile(r"[ \t]#")
_DOC_START_RE = re.compile(r"^---[ \t]*(?:#.*)?$")

OPEN = "open"
SCALAR = "scalar"
BLOCK = "block"
EMPTY = "empty"


@dataclass
class _Content:
    """One classified content line."""
    indent: int
    item: bool
    key: Optional[str]
    column: int
    kind: str
    text: str = ""


@dataclass
class _Frame:
    indent: int
    key: Optional[str] = None
    index: Optional[int] = None

    @property
    def step(self) -> Union[str, int]:
        return self.key if self.index is None else self.index


def split_tokens(text: str) -> List[str]:
    """Split directive arguments on whitespace outside quotes and drop the quotes.

    Raises:
        MalformedDirectiveError: If a quote is left open.
    """
    tokens: List[str] = []
    current: List[str] = []
    quote = None
    started = False
    for char in text:
        if quote is not None:
            if char == quote:
                quote = None
            else:
                current.append(char)
        elif char in "'\"":
            quote = char
            started = True
        elif char in " \t":
            if started:
                tokens.append("".join(current))
                current = []
                started = False
        else:
            current.append(char)
            started = True
    if quote is not None:
        raise MalformedDirectiveError("unterminated quote in directive")
    if started:
        tokens.append("".join(current))
    return tokens


def parse_directive_args(text: str) -> Dict[str, object]:
    """Parse the ``key=value`` tokens after ``# bump:`` into directive fields.

    Args:
        text: Everything after ``bump:`` on the comment line.

    Returns:
        Dict[str, object]: Keyword arguments for :class:`Directive`.

    Raises:
        MalformedDirectiveError: If a token is not ``key=value`` or a flag is invalid.
        MissingRequiredFieldError: If ``image`` is absent or not fully qualified.
    """
    values: Dict[str, str] = {}
    for token in split_tokens(text):
        key, sep, value = token.partition("=")
        key = key.strip()
        value = value.strip()
        if not sep:
            raise MalformedDirectiveError(f"invalid directive token {token!r} (expected key=value)")
        if not key or not value:
            raise MalformedDirectiveError(f"invalid directive token {token!r} (empty key or value)")
        values[key] = value

    image = values.get("image")
    if not image:
        raise MissingRequiredFieldError("missing required directive field: image=")
    # Require a full path; no normalization.
    if "/" not in image or "." not in image:
        raise MissingRequiredFieldError(
            f"image must be a fully-qualified repository (e.g. ghcr.io/org/app); got {image!r}")

    allow = values.get("allowPrerelease", "false")
    if allow not in ("true", "false"):
        raise MalformedDirectiveError(f"allowPrerelease must be true/false, got {allow!r}")

    return {
        "image": image,
        "strategy": values.get("strategy", DEFAULT_STRATEGY),
        "constraint": values.get("constraint"),
        "tag_regex": values.get("tagRegex"),
        "allow_prerelease": allow == "true",
        "platform": values.get("platform"),
    }


def _decode_key(raw: str) -> str:
    if raw[0] in "'\"":
        return str(yaml.safe_load(raw))
    return raw


def _value_kind(rest: Optional[str]) -> Tuple[str, str]:
    """Classify the text after ``key:`` (or after ``- ``) and return (kind, text)."""
    if rest is None:
        return OPEN, ""
    rest = rest.strip()
    if not rest or rest.startswith("#"):
        return OPEN, ""
    if _BLOCK_HEADER_RE.match(rest):
        return BLOCK, rest
    quoted = _QUOTED_VALUE_RE.match(rest)
    if quoted:
        return SCALAR, quoted.group(0)
    comment = _INLINE_COMMENT_RE.search(rest)
    text = (rest[:comment.start()] if comment else rest).rstrip()
    if text in ("[]", "{}"):
        return EMPTY, text
    return SCALAR, text


def _match_key(body: str) -> Optional[Tuple[str, Optional[str]]]:
    match = _QUOTED_KEY_RE.match(body) or _PLAIN_KEY_RE.match(body)
    if match is None:
        return None
    return _decode_key(match.group(1).rstrip()), match.group(2)


def classify(text: str) -> _Content:
    """Classify a non-blank, non-comment line.

    Raises:
        MalformedInputError: If the line is neither an item nor a ``key:`` line.
    """
    item = _ITEM_RE.match(text)
    if item:
        indent = len(item.group(1))
        body = item.group(2)
        if body is None or not body.strip() or body.lstrip().startswith("#"):
            return _Content(indent, True, None, indent, OPEN)
        if _ITEM_RE.match(body):
            raise MalformedInputError("nested sequences on a single line are not supported")
        column = len(text) - len(body)
        keyed = _match_key(body)
        if keyed is not None:
            key, rest = keyed
            kind, value = _value_kind(rest)
            return _Content(indent, True, key, column, kind, value)
        kind, value = _value_kind(body)
        return _Content(indent, True, None, column, kind, value)

    indent = len(text) - len(text.lstrip(" "))
    if text[indent:indent + 1] == "\t":
        raise MalformedInputError("tabs are not allowed in indentation")
    keyed = _match_key(text[indent:])
    if keyed is None:
        raise MalformedInputError(f"unsupported YAML line (expected key: value): {text.strip()!r}")
    key, rest = keyed
    kind, value = _value_kind(rest)
    return _Content(indent, False, key, indent, kind, value)


class _PathTracker:
    """Indentation stack of open keys and sequence indexes."""

    def __init__(self):
        self.frames: List[_Frame] = []

    def apply(self, line: _Content) -> None:
        if line.item:
            while self.frames and self.frames[-1].indent > line.indent:
                self.frames.pop()
            top = self.frames[-1] if self.frames else None
            if top is not None and top.indent == line.indent and top.index is not None:
                top.index += 1
            else:
                # fresh sequence; a key frame at this indent means an indentless one
                self.frames.append(_Frame(line.indent, index=0))
            if line.key is not None and line.kind == OPEN:
                self.frames.append(_Frame(line.column, key=line.key))
            return
        while self.frames and self.frames[-1].indent >= line.indent:
            self.frames.pop()
        if line.kind == OPEN:
            self.frames.append(_Frame(line.indent, key=line.key))

    def position(self, line: _Content) -> Tuple[Union[str, int], ...]:
        steps = tuple(frame.step for frame in self.frames)
        if line.key is not None:
            steps += (line.key,)
        return steps


def _addressable(position: Tuple[Union[str, int], ...]) -> bool:
    return all(isinstance(part, int) or FIELD_NAME_RE.fullmatch(part) for part in position)


class DirectiveScanner:
    """Finds bump directives in YAML text."""

    def __init__(self, diagnostics: Optional[Diagnostics] = None):
        self.diagnostics = diagnostics or quiet()

    def _walk(self, text: str, path: str):
        """Yield ``(line_number, raw_line, content, tracker)``; content is None for trivia.

        Block scalar bodies are consumed here and never reach the caller.
        """
        tracker = _PathTracker()
        block_indent: Optional[int] = None
        seen_content = False
        if text.startswith("\ufeff"):
            text = text[1:]
        for line in split_lines(text):
            number, raw = line.number, line.text
            if block_indent is not None:
                if not raw.strip() or len(raw) - len(raw.lstrip(" ")) > block_indent:
                    continue
                block_indent = None
            stripped = raw.strip()
            if not stripped or stripped.startswith("#") or (not seen_content and _DOC_START_RE.match(raw)):
                yield number, raw, None, tracker
                continue
            seen_content = True
            try:
                content = classify(raw)
            except MalformedInputError as e:
                raise e.with_location(path, number)
            tracker.apply(content)
            if content.kind == BLOCK:
                block_indent = content.column if content.item and content.key is not None else content.indent
            yield number, raw, content, tracker

    def scalar_addresses(self, text: str, path: str = "<string>") -> List[Tuple[int, Address]]:
        """Return ``(line, address)`` for every single-line scalar in ``text``.

        Lines whose keys cannot be written as address steps are left out.
        """
        found = []
        for number, _, content, tracker in self._walk(text, path):
            if content is None or content.kind != SCALAR:
                continue
            position = tracker.position(content)
            if _addressable(position):
                found.append((number, Address.from_position(position)))
        return found

    def scan_text(self, text: str, path: str = "<string>") -> List[Directive]:
        """Scan YAML text for directives.

        Each ``# bump:`` comment applies to the next line that is not blank
        or a comment; that line must assign a single-line scalar.

        Args:
            text: File content.
            path: File path recorded on directives and errors.

        Returns:
            List[Directive]: Directives ordered by line.

        Raises:
            MalformedDirectiveError: If a directive is malformed or has no scalar target.
            MissingRequiredFieldError: If a directive lacks a valid ``image``.
            InvalidAddressError: If the target cannot be expressed as an address.
            MalformedInputError: If a content line cannot be classified.
        """
        log = self.diagnostics.bind(path=path)
        log.debug("scanning file for bump directives")
        directives: List[Directive] = []
        pending: Optional[Tuple[int, Dict[str, object]]] = None

        for number, raw, content, tracker in self._walk(text, path):
            if content is None:
                match = DIRECTIVE_RE.match(raw)
                if match is None:
                    continue
                if pending is not None:
                    raise MalformedDirectiveError(
                        "bump directive had no following YAML key before the next directive",
                        path, pending[0])
                try:
                    pending = (number, parse_directive_args(match.group(1)))
                except (MalformedDirectiveError, MissingRequiredFieldError) as e:
                    raise e.with_location(path, number)
                continue

            if pending is None:
                continue
            if content.kind != SCALAR:
                raise MalformedDirectiveError(
                    'bump directive must precede a scalar key (e.g. tag: "1.2.3"), but found a non-scalar line',
                    path, number)
            position = tracker.position(content)
            if not _addressable(position):
                raise InvalidAddressError(
                    f"directive target {position!r} cannot be written as an address", path, number)
            line, fields = pending
            directive = Directive(
                file_path=path,
                line=line,
                target_line=number,
                key=content.key if content.key is not None else str(position[-1]),
                address=Address.from_position(position),
                current_text=content.text,
                **fields,
            )
            log.debug("found directive", line=line, address=str(directive.address), image=directive.image)
            if directive.strategy.lower() not in STRATEGIES:
                log.warning(f"{directive.location}: unknown strategy {directive.strategy!r}")
            directives.append(directive)
            pending = None

        if pending is not None:
            raise MalformedDirectiveError("bump directive had no following YAML key", path, pending[0])
        return sorted(directives, key=lambda d: (d.file_path, d.line))

    def scan_file(self, file_path: Union[str, Path]) -> List[Directive]:
        """Read a file as UTF-8 text and scan it."""
        path = Path(file_path)
        try:
            text = path.read_bytes().decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"file is not valid UTF-8: {e}", str(path))
        return self.scan_text(text, str(path))

    def scan_files(self, file_paths: Iterable[Union[str, Path]]) -> List[Directive]:
        """Scan several files; directives are ordered by (file path, line)."""
        directives: List[Directive] = []
        for file_path in file_paths:
            directives.extend(self.scan_file(file_path))
        return sorted(directives, key=lambda d: (d.file_path, d.line))
