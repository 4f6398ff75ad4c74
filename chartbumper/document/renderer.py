"""Render documents back to YAML text, reusing the recorded layout."""
import json
from typing import Any, Dict, List, Optional

import yaml

from .address import Position
from .model import ROOT, Document, NodeComments, NodeStyle


def is_container(value: Any) -> bool:
    return isinstance(value, (dict, list))


def is_plain_safe(text: str) -> bool:
    """Whether ``text`` can be written unquoted and still read back as the same string."""
    if not text or text != text.strip() or any(c in text for c in "\n\r\t"):
        return False
    if text[0] in "-?:,[]{}#&*!|>'\"%@`":
        return False
    if ": " in text or " #" in text or text.endswith(":"):
        return False
    try:
        return yaml.safe_load(text) == text
    except yaml.YAMLError:
        return False


def format_scalar(value: Any, quote: str = "") -> str:
    """Format a scalar token, keeping the requested quote style when it fits."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    text = str(value)
    if quote == "'" and "\n" not in text:
        return "'" + text.replace("'", "''") + "'"
    if quote == '"' or not is_plain_safe(text):
        return json.dumps(text, ensure_ascii=False)
    return text


def format_key(key: str) -> str:
    return key if is_plain_safe(key) else json.dumps(key, ensure_ascii=False)


def _unchanged(value: Any, style: NodeStyle) -> bool:
    return style.token is not None and type(value) is type(style.value) and value == style.value


class _Writer:
    def __init__(self, doc: Document):
        self.doc = doc
        self.parts: List[str] = []

    def run(self) -> str:
        root = self.doc.root
        if isinstance(root, dict) and root:
            self.emit_mapping(root, ROOT, 0)
        elif isinstance(root, list) and root:
            self.emit_sequence(root, ROOT, 0)
        elif isinstance(root, dict):
            self.write("{}" + self.doc.newline)
        elif isinstance(root, list):
            self.write("[]" + self.doc.newline)
        elif root is not None:
            self.write(format_scalar(root) + self.doc.newline)
        for line in self.doc.comments_at(ROOT).foot:
            self.write(line)
        text = "".join(self.parts)
        return "\ufeff" + text if self.doc.bom else text

    def write(self, line: str) -> None:
        """Append one full line; a previous line left without an ending gets one."""
        if self.parts and not self.parts[-1].endswith("\n"):
            self.parts.append(self.doc.newline)
        self.parts.append(line)

    def _comments(self, position: Position) -> Optional[NodeComments]:
        return self.doc.comments.get(position)

    def _sibling_indent(self, positions: List[Position], default: int, attr: str) -> int:
        for position in positions:
            style = self.doc.styles.get(position)
            if style is not None and getattr(style, attr) is not None:
                return style.indent
        return default

    def emit_mapping(self, mapping: Dict[str, Any], position: Position, default_indent: int,
                     lead: Optional[str] = None) -> None:
        children = [position + (key,) for key in mapping]
        indent = self._sibling_indent(children, default_indent, "key")
        for number, (key, child) in enumerate(zip(mapping, children)):
            style = self.doc.styles.get(child)
            if style is None or style.key is None:
                style = NodeStyle(indent=indent, eol=self.doc.newline, key=format_key(key), token=None)
            comments = self._comments(child)
            if number == 0 and lead is not None:
                prefix = lead
            else:
                if comments is not None:
                    for line in comments.head:
                        self.write(line)
                prefix = " " * style.indent
            self.emit_value(prefix + style.key + ":", mapping[key], child, style, comments, " ")

    def emit_sequence(self, items: List[Any], position: Position, default_indent: int) -> None:
        children = [position + (i,) for i in range(len(items))]
        indent = self._sibling_indent(children, default_indent, "dash")
        for value, child in zip(items, children):
            style = self.doc.styles.get(child)
            if style is None or style.dash is None:
                style = NodeStyle(indent=indent, eol=self.doc.newline, dash="- ", sep="", token=None)
            comments = self._comments(child)
            if comments is not None:
                for line in comments.head:
                    self.write(line)
            dash = style.dash
            spaced = dash if dash.endswith((" ", "\t")) else dash + " "
            if isinstance(value, dict) and value and (style.compact or style.token is not None):
                self.emit_mapping(value, child, style.indent + len(spaced), lead=" " * style.indent + spaced)
                continue
            if is_container(value) and value:
                # nested block below a bare "-"
                self.emit_value(" " * style.indent + dash.rstrip(" \t"), value, child, style, comments, " ")
            else:
                self.emit_value(" " * style.indent + dash, value, child, style, comments,
                                "" if spaced == dash else " ")

    def emit_value(self, prefix: str, value: Any, position: Position, style: NodeStyle,
                   comments: Optional[NodeComments], default_sep: str) -> None:
        inline = comments.inline if comments is not None else ""
        eol = style.eol
        if is_container(value) and value:
            self.write(prefix + inline + eol)
            if isinstance(value, dict):
                self.emit_mapping(value, position, style.indent + 2)
            else:
                self.emit_sequence(value, position, style.indent + 2)
            return
        if is_container(value):
            empty = "{}" if isinstance(value, dict) else "[]"
            if style.token == empty:
                self.write(prefix + style.sep + empty + inline + eol)
            else:
                self.write(prefix + (style.sep or default_sep) + empty + inline + eol)
            return
        if _unchanged(value, style):
            self.write(prefix + style.sep + style.token + inline + eol)
            for line in style.block:
                self.write(line)
            return
        token = format_scalar(value, style.quote)
        self.write(prefix + (style.sep or default_sep) + token + inline + eol)


class DocumentRenderer:
    """Renders parsed documents back to bytes."""

    @staticmethod
    def render_text(doc: Document) -> str:
        return _Writer(doc).run()

    @staticmethod
    def render(doc: Document) -> bytes:
        """Render a document to UTF-8 bytes.

        Unchanged nodes are written exactly as they were parsed; replaced
        scalars keep their key, indentation and comments. Sidecar entries for
        positions no longer in the tree are skipped.

        Args:
            doc: Document to render.

        Returns:
            bytes: The rendered file content.
        """
        return DocumentRenderer.render_text(doc).encode("utf-8")
