"""Data models for bump directives."""
from dataclasses import dataclass
from typing import Optional

from ..document.address import Address

DEFAULT_STRATEGY = "semver"
STRATEGIES = ("semver", "regex", "literal", "digest")


@dataclass(frozen=True)
class Directive:
    """One ``# bump:`` comment matched to the scalar line that follows it."""
    file_path: str
    line: int
    target_line: int
    key: str
    address: Address
    image: str
    strategy: str = DEFAULT_STRATEGY
    constraint: Optional[str] = None
    tag_regex: Optional[str] = None
    allow_prerelease: bool = False
    platform: Optional[str] = None
    current_text: str = ""

    @property
    def yaml_path(self) -> str:
        """Address of the target scalar in ``$.a.b[0].c`` form."""
        return str(self.address)

    @property
    def location(self) -> str:
        return f"{self.file_path}:{self.line}"
