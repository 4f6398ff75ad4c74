"""Address strings (``$.image.tag``, ``$.dependencies[0].version``) and their steps."""
import re
from dataclasses import dataclass
from typing import Tuple, Union

from ..errors import InvalidAddressError

FIELD_NAME_RE = re.compile(r"[A-Za-z0-9_-]+")
_STEP_RE = re.compile(r"\.([A-Za-z0-9_-]+)|\[([0-9]+)\]")

# Structural position used to key the document sidecars: ("image", "tag"),
# ("dependencies", 0, "version"). Strings are map keys, ints are indexes.
Position = Tuple[Union[str, int], ...]


@dataclass(frozen=True)
class Field:
    """Map key step, written ``.name``."""
    name: str

    def __str__(self) -> str:
        return f".{self.name}"


@dataclass(frozen=True)
class Index:
    """Sequence item step, written ``[n]``."""
    index: int

    def __str__(self) -> str:
        return f"[{self.index}]"


Step = Union[Field, Index]


@dataclass(frozen=True)
class Address:
    """An ordered run of steps from the document root.

    Addresses are plain values: the directive scanner and the path resolver
    build them independently and compare them with ``==``.
    """
    steps: Tuple[Step, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "Address":
        """Parse ``$`` followed by ``.name`` and ``[n]`` steps.

        Raises:
            InvalidAddressError: If ``text`` is off-grammar.
        """
        if not isinstance(text, str) or not text.startswith("$"):
            raise InvalidAddressError(f"address must start with '$': {text!r}")
        steps = []
        pos = 1
        while pos < len(text):
            match = _STEP_RE.match(text, pos)
            if match is None:
                raise InvalidAddressError(f"invalid address {text!r} at offset {pos}")
            if match.group(1) is not None:
                steps.append(Field(match.group(1)))
            else:
                steps.append(Index(int(match.group(2))))
            pos = match.end()
        return cls(tuple(steps))

    @classmethod
    def target(cls, text: str) -> "Address":
        """Parse an address that must name something below the root."""
        address = cls.parse(text)
        if address.is_root:
            raise InvalidAddressError("address '$' refers to the document root; expected e.g. '$.key'")
        return address

    @classmethod
    def from_position(cls, position: Position) -> "Address":
        steps = []
        for part in position:
            if isinstance(part, int):
                steps.append(Index(part))
            else:
                if not FIELD_NAME_RE.fullmatch(part):
                    raise InvalidAddressError(f"key {part!r} cannot be written as an address step")
                steps.append(Field(part))
        return cls(tuple(steps))

    @property
    def is_root(self) -> bool:
        return not self.steps

    @property
    def position(self) -> Position:
        return tuple(s.name if isinstance(s, Field) else s.index for s in self.steps)

    def child(self, step: Step) -> "Address":
        if isinstance(step, Field) and not FIELD_NAME_RE.fullmatch(step.name):
            raise InvalidAddressError(f"key {step.name!r} cannot be written as an address step")
        return Address(self.steps + (step,))

    def parent(self) -> "Address":
        if self.is_root:
            raise InvalidAddressError("the document root has no parent")
        return Address(self.steps[:-1])

    @property
    def leaf(self) -> Step:
        if self.is_root:
            raise InvalidAddressError("the document root has no leaf step")
        return self.steps[-1]

    def __str__(self) -> str:
        return "$" + "".join(str(step) for step in self.steps)
