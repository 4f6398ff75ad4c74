"""In-place updates of YAML files that keep comments and layout."""
from pathlib import Path
from typing import Dict, Union

from ..errors import BumperError
from .address import Address
from .model import Document
from .parser import DocumentParser
from .renderer import DocumentRenderer
from .resolver import PathResolver


class DocumentUpdater:
    """Updates scalar fields in YAML files in-place."""

    @staticmethod
    def update_field(file_path: Union[str, Path], address: Union[str, Address], value: str) -> bool:
        """Update one field in a YAML file using an address.

        Args:
            file_path: Path to the YAML file.
            address: Address of the field (e.g., "$.image.tag").
            value: New value to set.

        Returns:
            bool: True if the file was rewritten.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            BumperError: If the file or the address is invalid.
        """
        return DocumentUpdater.update_fields(file_path, {str(address): value})

    @staticmethod
    def update_fields(file_path: Union[str, Path], values: Dict[str, str]) -> bool:
        """Apply several address updates through a single parse and render.

        The file is only written when the rendered bytes differ from the
        bytes read.
        """
        path = Path(file_path)
        original = path.read_bytes()
        doc = DocumentParser.parse(original, path=str(path))

        changed = False
        for address, value in values.items():
            try:
                changed = PathResolver.set(doc, address, value) or changed
            except BumperError as e:
                raise e.with_location(str(path))

        if not changed:
            return False
        return DocumentUpdater.write_if_changed(path, original, doc)

    @staticmethod
    def write_if_changed(file_path: Union[str, Path], original: bytes, doc: Document) -> bool:
        """Render ``doc`` and write it unless it matches ``original`` byte for byte."""
        rendered = DocumentRenderer.render(doc)
        if rendered == original:
            return False
        Path(file_path).write_bytes(rendered)
        return True
