"""Round-trip parser for the YAML subset used by charts and values files."""
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from ..errors import BumperError, MalformedInputError
from .address import Position
from .model import ROOT, Document, NodeComments, NodeStyle

QUOTED_RE = {
    '"': re.compile(r'"(?:[^"\\]|\\.)*"'),
    "'": re.compile(r"'(?:[^']|'')*'"),
}
COMMENT_RE = re.compile(r"[ \t]#")
KEY_COLON_RE = re.compile(r":(?=[ \t]|$)")
_AFTER_QUOTED_KEY_RE = re.compile(r"[ \t]*:(?=[ \t]|$)")
_BLOCK_HEADER_RE = re.compile(r"[|>](?:[1-9][+-]?|[+-][1-9]?)?")
_DOC_START_RE = re.compile(r"---[ \t]*(?:#.*)?$")
_KEY_INDICATORS = "?[]{}&*!|>%@`,#"


@dataclass
class _Line:
    number: int
    text: str
    eol: str
    indent: int

    @property
    def raw(self) -> str:
        return self.text + self.eol


def split_lines(text: str) -> List[_Line]:
    """Split on line feeds only; a trailing carriage return moves into the line ending."""
    lines = []
    pieces = text.split("\n")
    for number, piece in enumerate(pieces, start=1):
        last = number == len(pieces)
        if last and piece == "":
            break
        eol = "" if last else "\n"
        if piece.endswith("\r"):
            piece = piece[:-1]
            eol = "\r" + eol
        indent = len(piece) - len(piece.lstrip(" "))
        lines.append(_Line(number, piece, eol, indent))
    return lines


def _is_trivia(text: str) -> bool:
    stripped = text.strip()
    return not stripped or stripped.startswith("#")


def _is_item(text: str, indent: int) -> bool:
    return text[indent:indent + 1] == "-" and text[indent + 1:indent + 2] in ("", " ", "\t")


def _starts_mapping(body: str) -> bool:
    """Whether an item body such as ``name: redis`` opens a compact mapping."""
    first = body[0]
    if first in QUOTED_RE:
        match = QUOTED_RE[first].match(body)
        return bool(match) and _AFTER_QUOTED_KEY_RE.match(body, match.end()) is not None
    if first in "[{|>&*!#":
        return False
    colon = KEY_COLON_RE.search(body)
    comment = COMMENT_RE.search(body)
    return colon is not None and (comment is None or colon.start() < comment.start())


class _Parser:
    """Recursive descent over lines; comment and blank lines are collected as trivia."""

    def __init__(self, lines: List[_Line], path: Optional[str]):
        self.lines = lines
        self.path = path
        self.pos = 0
        self.trivia: List[str] = []
        self.seen_content = False
        self.comments: Dict[Position, NodeComments] = {}
        self.styles: Dict[Position, NodeStyle] = {}

    def error(self, line: Optional[_Line], message: str) -> MalformedInputError:
        return MalformedInputError(message, self.path, line.number if line else None)

    def parse(self) -> Any:
        first = self.peek()
        root = None
        if first is not None:
            root = self.parse_block(first.indent, ROOT)
            extra = self.peek()
            if extra is not None:
                raise self.error(extra, "unexpected indentation")
        if self.trivia:
            self._comments(ROOT).foot.extend(self.trivia)
            self.trivia = []
        return root

    def peek(self) -> Optional[_Line]:
        """Return the next content line, moving trivia lines into ``self.trivia``."""
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if _is_trivia(line.text) or (not self.seen_content and _DOC_START_RE.match(line.text)):
                self.trivia.append(line.raw)
                self.pos += 1
                continue
            self._check_content(line)
            return line
        return None

    def take(self, line: _Line, position: Position) -> None:
        """Consume ``line`` as the node at ``position``; pending trivia becomes its head."""
        self.pos += 1
        self.seen_content = True
        if self.trivia:
            self._comments(position).head.extend(self.trivia)
            self.trivia = []

    def _comments(self, position: Position) -> NodeComments:
        return self.comments.setdefault(position, NodeComments())

    def _check_content(self, line: _Line) -> None:
        lead = line.text[:len(line.text) - len(line.text.lstrip(" \t"))]
        if "\t" in lead:
            raise self.error(line, "tabs are not allowed in indentation")
        if line.indent == 0 and line.text[:3] in ("---", "...") and line.text[3:4] in ("", " ", "\t"):
            raise self.error(line, "multi-document streams are not supported")
        if line.indent == 0 and line.text.startswith("%"):
            raise self.error(line, "YAML directives are not supported")

    # -- blocks ---------------------------------------------------------------

    def parse_block(self, indent: int, position: Position) -> Union[Dict[str, Any], List[Any]]:
        line = self.peek()
        if _is_item(line.text, indent):
            return self.parse_sequence(indent, position)
        return self.parse_mapping(indent, position)

    def parse_mapping(self, indent: int, position: Position,
                      lead: Optional[Tuple[_Line, int]] = None) -> Dict[str, Any]:
        mapping: Dict[str, Any] = {}
        if lead is not None:
            # compact mapping: first key shares the line with its "- " marker
            line, column = lead
            self._parse_entry(mapping, line, column, position, taken=True)
        while True:
            line = self.peek()
            if line is None or line.indent < indent:
                break
            if line.indent > indent:
                raise self.error(line, "unexpected indentation")
            if _is_item(line.text, indent):
                raise self.error(line, "sequence item found where a mapping key was expected")
            self._parse_entry(mapping, line, indent, position, taken=False)
        return mapping

    def parse_sequence(self, indent: int, position: Position) -> List[Any]:
        items: List[Any] = []
        while True:
            line = self.peek()
            if line is None or line.indent < indent:
                break
            if line.indent > indent:
                raise self.error(line, "unexpected indentation")
            if not _is_item(line.text, indent):
                break
            child = position + (len(items),)
            self.take(line, child)
            items.append(self._parse_item(line, indent, child))
        return items

    def _parse_entry(self, mapping: Dict[str, Any], line: _Line, column: int,
                     position: Position, taken: bool) -> None:
        raw_key, key, after = self._split_key(line, column)
        if key in mapping:
            raise self.error(line, f"duplicate key {key!r}")
        child = position + (key,)
        if not taken:
            self.take(line, child)
        style = NodeStyle(indent=column, line=line.number, eol=line.eol, key=raw_key)
        self.styles[child] = style
        mapping[key] = self._parse_value(line, after, column, child, style, indentless=True)

    def _parse_item(self, line: _Line, indent: int, position: Position) -> Any:
        after = indent + 1
        rest = line.text[after:]
        body = rest.lstrip(" \t")
        style = NodeStyle(indent=indent, line=line.number, eol=line.eol, dash="-", sep="")
        self.styles[position] = style
        if not body or body.startswith("#"):
            return self._parse_value(line, after, indent, position, style, indentless=False)
        gap = rest[:len(rest) - len(body)]
        style.dash = "-" + gap
        if _is_item(body, 0):
            raise self.error(line, "nested sequences on a single line are not supported")
        column = after + len(gap)
        if _starts_mapping(body):
            style.compact = True
            return self.parse_mapping(column, position, lead=(line, column))
        return self._parse_value(line, column, indent, position, style, indentless=False)

    def _split_key(self, line: _Line, column: int) -> Tuple[str, str, int]:
        """Split ``key:`` at ``column``; returns raw key, decoded key, offset after the colon."""
        text = line.text
        first = text[column:column + 1]
        if first in QUOTED_RE:
            match = QUOTED_RE[first].match(text, column)
            if match is None:
                raise self.error(line, "unterminated quoted key")
            colon_match = _AFTER_QUOTED_KEY_RE.match(text, match.end())
            if colon_match is None:
                raise self.error(line, "expected ':' after quoted key")
            key = self._decode_scalar(line, match.group(0))
            colon = colon_match.end() - 1
            return text[column:colon], str(key), colon + 1
        if not first or first in _KEY_INDICATORS:
            raise self.error(line, f"unsupported key syntax: {text.strip()!r}")
        colon_match = KEY_COLON_RE.search(text, column)
        if colon_match is None:
            raise self.error(line, "expected 'key: value' or '- item'")
        raw_key = text[column:colon_match.start()]
        if COMMENT_RE.search(raw_key):
            raise self.error(line, "expected 'key: value' or '- item'")
        key = raw_key.rstrip(" \t")
        return raw_key, key, colon_match.end()

    # -- values ---------------------------------------------------------------

    def _parse_value(self, line: _Line, start: int, parent_indent: int, position: Position,
                     style: NodeStyle, indentless: bool) -> Any:
        rest = line.text[start:]
        body = rest.lstrip(" \t")
        if not body or body.startswith("#"):
            style.sep = ""
            if rest:
                self._comments(position).inline = rest
            following = self.peek()
            if following is not None and following.indent > parent_indent:
                return self.parse_block(following.indent, position)
            if (indentless and following is not None and following.indent == parent_indent
                    and _is_item(following.text, parent_indent)):
                return self.parse_sequence(parent_indent, position)
            style.token = ""
            style.value = None
            return None

        style.sep = rest[:len(rest) - len(body)]
        first = body[0]
        if first in QUOTED_RE:
            match = QUOTED_RE[first].match(body)
            if match is None:
                raise self.error(line, "unterminated quoted scalar (multi-line quoted scalars are not supported)")
            token = match.group(0)
            value = self._decode_scalar(line, token)
            style.quote = first
        elif first in "|>":
            match = _BLOCK_HEADER_RE.match(body)
            token = match.group(0)
            keep = "+" in token
            block = self._take_block(parent_indent, keep)
            style.block = [block_line.raw for block_line in block]
            value = self._decode_block(line, token, block, parent_indent)
        elif first in "[{":
            token = body[:2]
            if token not in ("[]", "{}"):
                raise self.error(line, "flow collections are not supported")
            value = [] if token == "[]" else {}
        elif first in "&*!":
            raise self.error(line, "anchors, aliases and tags are not supported")
        else:
            comment = COMMENT_RE.search(body)
            token = (body[:comment.start()] if comment else body).rstrip(" \t")
            value = self._decode_scalar(line, token)
            if isinstance(value, (dict, list)):
                raise self.error(line, f"unsupported value syntax: {token!r}")
            following = self.peek()
            if following is not None and following.indent > parent_indent:
                raise self.error(following, "multi-line plain scalars are not supported")

        tail = body[len(token):]
        stripped_tail = tail.lstrip(" \t")
        if stripped_tail and not (stripped_tail.startswith("#") and tail != stripped_tail):
            raise self.error(line, f"unexpected text after value: {stripped_tail!r}")
        if tail:
            self._comments(position).inline = tail
        style.token = token
        style.value = value if not isinstance(value, (dict, list)) else None
        return value

    def _take_block(self, parent_indent: int, keep: bool) -> List[_Line]:
        """Consume the body lines of a ``|`` or ``>`` scalar."""
        block: List[_Line] = []
        blanks: List[_Line] = []
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if not line.text.strip():
                blanks.append(line)
            elif line.indent > parent_indent:
                block.extend(blanks)
                blanks = []
                block.append(line)
            else:
                break
            self.pos += 1
        if keep:
            block.extend(blanks)
        else:
            # trailing blank lines separate the scalar from what follows
            self.pos -= len(blanks)
        return block

    def _decode_scalar(self, line: _Line, token: str) -> Any:
        try:
            return yaml.safe_load(token)
        except yaml.YAMLError as e:
            raise self.error(line, f"invalid scalar {token!r}: {getattr(e, 'problem', None) or e}")

    def _decode_block(self, line: _Line, header: str, block: List[_Line], parent_indent: int) -> Any:
        body = "".join(b.text[min(parent_indent, b.indent):] + "\n" for b in block)
        try:
            data = yaml.safe_load(f"k: {header}\n{body}")
        except yaml.YAMLError as e:
            raise self.error(line, f"invalid block scalar: {getattr(e, 'problem', None) or e}")
        return data["k"] if isinstance(data, dict) else None


class DocumentParser:
    """Parser for YAML chart and values files that keeps their exact layout."""

    @staticmethod
    def parse(data: Union[bytes, str], path: Optional[str] = None) -> Document:
        """Parse YAML text into a document with comment and layout sidecars.

        Args:
            data: Raw file content, UTF-8 encoded when given as bytes.
            path: Optional file path used in error messages.

        Returns:
            Document: Parsed document; rendering it unchanged reproduces ``data``.

        Raises:
            MalformedInputError: If the text falls outside the supported subset.
        """
        if isinstance(data, bytes):
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedInputError(f"file is not valid UTF-8: {e}", path)
        else:
            text = data
        bom = text.startswith("\ufeff")
        if bom:
            text = text[1:]
        lines = split_lines(text)
        parser = _Parser(lines, path)
        root = parser.parse()
        newline = lines[0].eol if lines and lines[0].eol else "\n"
        return Document(
            root=root,
            comments=parser.comments,
            styles=parser.styles,
            newline=newline,
            bom=bom,
            path=path,
        )

    @staticmethod
    def load(file_path: str) -> Document:
        """Load and parse a YAML file.

        Args:
            file_path: Path to the YAML file.

        Returns:
            Document: Parsed document.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            MalformedInputError: If the YAML is outside the supported subset.
        """
        with open(file_path, 'rb') as f:
            data = f.read()
        try:
            return DocumentParser.parse(data, path=str(file_path))
        except BumperError as e:
            raise e.with_location(path=str(file_path))
