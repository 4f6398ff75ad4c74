"""Chart.yaml metadata and the chart version bump."""
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..document.model import Document
from ..document.resolver import PathResolver
from ..errors import MalformedInputError
from .semver import ChangeLevel, bump_version, compare

CHART_FILE = "Chart.yaml"
VERSION_ADDRESS = "$.version"


def _as_text(value):
    # Chart.yaml often carries unquoted versions such as ``appVersion: 1.16``
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


class ChartDependency(BaseModel):
    """Dependency entry of a chart."""
    name: str = ""
    version: str = ""
    repository: str = ""

    @field_validator("name", "version", "repository", mode="before")
    @classmethod
    def coerce_text(cls, value):
        return _as_text(value)


class ChartMeta(BaseModel):
    """The parts of Chart.yaml that decide the bump level."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    version: str = ""
    app_version: str = Field(default="", alias="appVersion")
    dependencies: List[ChartDependency] = Field(default_factory=list)

    @field_validator("name", "version", "app_version", mode="before")
    @classmethod
    def coerce_text(cls, value):
        return _as_text(value)

    @field_validator("dependencies", mode="before")
    @classmethod
    def default_dependencies(cls, value):
        return [] if value is None else value


def load_meta(data: Union[bytes, str], path: Optional[str] = None) -> ChartMeta:
    """Load chart metadata from Chart.yaml content.

    Args:
        data: File content.
        path: Optional file path used in error messages.

    Returns:
        ChartMeta: Validated metadata.

    Raises:
        MalformedInputError: If the YAML is malformed or does not describe a chart.
    """
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise MalformedInputError(f"invalid Chart.yaml: {e}", path)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise MalformedInputError("Chart.yaml must be a mapping", path)
    try:
        return ChartMeta.model_validate(raw)
    except ValidationError as e:
        raise MalformedInputError(f"invalid Chart.yaml: {e}", path)


def read_chart_yaml(chart_dir: Union[str, Path]) -> bytes:
    """Read ``Chart.yaml`` from a chart directory."""
    return (Path(chart_dir) / CHART_FILE).read_bytes()


def compute_change_level(base: ChartMeta, cur: ChartMeta) -> ChangeLevel:
    """Decide the bump level from appVersion and shared dependency versions.

    Dependencies that were added or removed do not count on their own.
    """
    level = compare(base.app_version, cur.app_version)
    base_deps = {dep.name: dep.version for dep in base.dependencies}
    for dep in cur.dependencies:
        if dep.name in base_deps:
            level = max(level, compare(base_deps[dep.name], dep.version))
    return ChangeLevel(level)


def apply_chart_version_bump(doc: Document, level: ChangeLevel) -> bool:
    """Bump ``$.version`` in a parsed Chart.yaml.

    Args:
        doc: Parsed Chart.yaml, mutated in place.
        level: Change level to apply.

    Returns:
        bool: True if the version changed.

    Raises:
        MalformedInputError: If the chart has no version.
        InvalidVersionError: If the version is not ``x.y.z``.
    """
    current, found = PathResolver.get_text(doc, VERSION_ADDRESS)
    if not found or current is None:
        raise MalformedInputError("Chart.yaml missing version", doc.path)
    new_version = bump_version(current, level)
    if new_version == current:
        return False
    return PathResolver.set(doc, VERSION_ADDRESS, new_version)
