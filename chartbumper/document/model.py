"""Data model for round-trippable YAML documents."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .address import Position

ROOT: Position = ()


@dataclass
class NodeComments:
    """Comment text attached to one structural position.

    ``head`` holds the verbatim lines (comments and blank lines, with their
    line endings) that precede the node's line. ``inline`` is the verbatim
    remainder of the node's line after its value, e.g. ``"  # pinned"``.
    ``foot`` is only used at the root for lines after the last node.
    """
    head: List[str] = field(default_factory=list)
    inline: str = ""
    foot: List[str] = field(default_factory=list)


@dataclass
class NodeStyle:
    """How one node was written, so an unchanged node renders byte for byte."""
    indent: int
    line: int = 0
    eol: str = "\n"
    key: Optional[str] = None       # raw key text, map entries only
    dash: Optional[str] = None      # raw "- " marker, sequence items only
    sep: str = " "                  # text between ":" and the value token
    token: Optional[str] = None     # raw scalar as written; None opens a nested block
    value: Any = None               # decoded token, compared to spot replacements
    block: List[str] = field(default_factory=list)
    compact: bool = False           # item whose mapping starts on the dash line
    quote: str = ""                 # quote character of the token, if any


@dataclass
class Document:
    """A parsed file: a plain value tree plus position-keyed sidecars.

    ``root`` is made of ``dict`` (insertion ordered), ``list`` and scalars
    only. Comments and layout live in ``comments`` and ``styles`` keyed by
    position tuples, so the tree itself never holds formatting. Entries whose
    position disappeared from the tree are ignored when rendering.
    """
    root: Any = None
    comments: Dict[Position, NodeComments] = field(default_factory=dict)
    styles: Dict[Position, NodeStyle] = field(default_factory=dict)
    newline: str = "\n"
    bom: bool = False
    path: Optional[str] = None

    def comments_at(self, position: Position) -> NodeComments:
        return self.comments.get(position) or NodeComments()

    def head_comments(self, position: Position) -> List[str]:
        """Comment lines directly above a node, without blank lines."""
        return [line.rstrip("\r\n") for line in self.comments_at(position).head if line.strip()]
