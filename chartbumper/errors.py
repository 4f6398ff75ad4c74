"""Exceptions raised while parsing, addressing and bumping chart files."""
from typing import List, Optional


class BumperError(Exception):
    """Base class for every error the bumper raises.

    Errors derived from a file carry its path and, when known, the 1-based
    line number; both are rendered as a ``path:line:`` prefix.
    """

    def __init__(self, message: str, path: Optional[str] = None, line: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.line = line

    def with_location(self, path: Optional[str] = None, line: Optional[int] = None) -> "BumperError":
        """Fill in a missing path or line and return the same error."""
        if self.path is None:
            self.path = path
        if self.line is None:
            self.line = line
        return self

    def __str__(self) -> str:
        if self.path and self.line:
            return f"{self.path}:{self.line}: {self.message}"
        if self.path:
            return f"{self.path}: {self.message}"
        if self.line:
            return f"line {self.line}: {self.message}"
        return self.message


class MalformedInputError(BumperError):
    """Raised when text falls outside the supported YAML subset."""
    pass


class InvalidAddressError(BumperError):
    """Raised when an address string does not follow the ``$.a[0].b`` grammar."""
    pass


class PathNotFoundError(BumperError):
    """Raised when a mutation targets a location that does not exist."""
    pass


class TypeMismatchError(BumperError):
    """Raised when an address step meets a node of the wrong shape."""
    pass


class InvalidVersionError(BumperError):
    """Raised when a version that must be bumped is not ``x.y.z``."""
    pass


class MissingRequiredFieldError(BumperError):
    """Raised when a bump directive lacks a usable ``image=`` token."""
    pass


class MalformedDirectiveError(BumperError):
    """Raised when a bump directive cannot be parsed or has no valid target."""
    pass


class UnrecognizedStrategyError(BumperError):
    """Raised when a directive names a strategy the bumper does not know."""
    pass


class NoMatchingTagError(BumperError):
    """Raised when no registry tag satisfies a directive."""
    pass


class AmbiguousTagError(BumperError):
    """Raised when a literal directive matches more than one tag."""

    def __init__(self, message: str, matches: List[str], path: Optional[str] = None, line: Optional[int] = None):
        super().__init__(message, path, line)
        self.matches = matches


class ConstraintViolationError(BumperError):
    """Raised when a version constraint is invalid or nothing satisfies it."""
    pass


class RegistryError(BumperError):
    """Raised when a registry or chart repository request fails."""
    pass


class HistoricalContentError(BumperError):
    """Raised when a file cannot be read at a git revision."""
    pass


class ConfigurationError(BumperError):
    """Raised when the run options are inconsistent."""
    pass
