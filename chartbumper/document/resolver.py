"""Read and replace scalar values in a document by address."""
from typing import Any, Optional, Tuple, Union

from ..errors import PathNotFoundError, TypeMismatchError
from .address import Address, Field, Step
from .model import Document

AddressLike = Union[str, Address]


def _as_address(address: AddressLike) -> Address:
    if isinstance(address, Address):
        if address.is_root:
            # re-parse for the uniform "root is not a target" error
            return Address.target("$")
        return address
    return Address.target(address)


def _shape(node: Any) -> str:
    if isinstance(node, dict):
        return "map"
    if isinstance(node, list):
        return "sequence"
    if node is None:
        return "null"
    return "scalar"


def _step_into(node: Any, step: Step, address: Address, depth: int) -> Tuple[Any, bool]:
    """Follow one step; returns (child, found) or raises on a shape mismatch."""
    if isinstance(step, Field):
        if not isinstance(node, dict):
            raise TypeMismatchError(
                f"{address}: expected map before '{step}' at step {depth}, found {_shape(node)}")
        if step.name not in node:
            return None, False
        return node[step.name], True
    if not isinstance(node, list):
        raise TypeMismatchError(
            f"{address}: expected sequence before '{step}' at step {depth}, found {_shape(node)}")
    if step.index >= len(node):
        return None, False
    return node[step.index], True


def scalar_text(value: Any) -> Optional[str]:
    """Decoded textual form of a scalar as compared by :func:`set_value`.

    Returns None for null and for containers, which never compare equal.
    """
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _written_as(doc: Document, address: Address, current: Any) -> Optional[str]:
    """Raw text of an unquoted scalar that still holds its parsed value, else None."""
    style = doc.styles.get(address.position)
    if style is None or style.quote or not style.token or style.token[0] in "|>[{":
        return None
    if type(style.value) is not type(current) or style.value != current:
        return None
    return style.token


class PathResolver:
    """Navigates documents with ``$.a.b[0].c`` addresses."""

    @staticmethod
    def get(doc: Document, address: AddressLike) -> Tuple[Any, bool]:
        """Read the value at ``address``.

        Args:
            doc: Parsed document.
            address: Address string or :class:`Address`.

        Returns:
            Tuple[Any, bool]: The value and whether it was found. A missing key
            or an out-of-range index at any depth yields ``(None, False)``.

        Raises:
            InvalidAddressError: If the address is malformed or is ``$``.
            TypeMismatchError: If a step meets a node of the wrong shape.
        """
        target = _as_address(address)
        node = doc.root
        for depth, step in enumerate(target.steps):
            node, found = _step_into(node, step, target, depth)
            if not found:
                return None, False
        return node, True

    @staticmethod
    def get_text(doc: Document, address: AddressLike) -> Tuple[Optional[str], bool]:
        """Like :meth:`get`, returning the scalar's textual form."""
        value, found = PathResolver.get(doc, address)
        if not found:
            return None, False
        return scalar_text(value), True

    @staticmethod
    def set(doc: Document, address: AddressLike, new_value: str) -> bool:
        """Replace the scalar at ``address`` with ``new_value``.

        The final key is created when its parent map lacks it; sequences are
        never grown. Comments recorded for the position are kept as they are.

        Args:
            doc: Parsed document, mutated in place.
            address: Address string or :class:`Address`.
            new_value: Replacement text.

        Returns:
            bool: False when the current value already reads as ``new_value``,
            either decoded or as the plain text written in the file.

        Raises:
            InvalidAddressError: If the address is malformed or is ``$``.
            PathNotFoundError: If an intermediate node or the index is missing.
            TypeMismatchError: If a step meets a node of the wrong shape.
        """
        target = _as_address(address)
        current, found = PathResolver.get(doc, target)
        if found and (scalar_text(current) == new_value or _written_as(doc, target, current) == new_value):
            return False

        parent = doc.root
        for depth, step in enumerate(target.steps[:-1]):
            parent, found = _step_into(parent, step, target, depth)
            if not found:
                raise PathNotFoundError(f"{target}: '{step}' not found at step {depth}")

        leaf = target.leaf
        depth = len(target.steps) - 1
        if isinstance(leaf, Field):
            if not isinstance(parent, dict):
                raise TypeMismatchError(
                    f"{target}: expected map for leaf '{leaf}', found {_shape(parent)}")
            parent[leaf.name] = new_value
            return True
        if not isinstance(parent, list):
            raise TypeMismatchError(
                f"{target}: expected sequence for leaf '{leaf}', found {_shape(parent)}")
        if leaf.index >= len(parent):
            raise PathNotFoundError(
                f"{target}: index {leaf.index} out of range at step {depth} (length {len(parent)})")
        parent[leaf.index] = new_value
        return True


def get_value(doc: Document, address: AddressLike) -> Tuple[Any, bool]:
    return PathResolver.get(doc, address)


def set_value(doc: Document, address: AddressLike, new_value: str) -> bool:
    return PathResolver.set(doc, address, new_value)
