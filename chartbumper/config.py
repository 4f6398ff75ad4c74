"""Run options for one bump invocation."""
import os
from pathlib import Path
from typing import List, Mapping, Optional

from pydantic import BaseModel, ValidationError, model_validator

from .errors import ConfigurationError

DEFAULT_SCAN_GLOB = "Chart.yaml,values*.yaml"
USAGE = ("helm-chart-bumper (--base path/to/base/Chart.yaml | --base-ref <git-ref> "
         "[--base-ref-path path/in/repo/Chart.yaml]) --cur path/to/cur/Chart.yaml "
         "[--repo path/to/repo] [--write] [--update-images] [--update-deps]")


def split_csv(text: str) -> List[str]:
    return [part.strip() for part in text.split(",") if part.strip()]


class BumpOptions(BaseModel):
    """Validated command-line settings."""
    cur: Path
    base: Optional[Path] = None
    base_ref: Optional[str] = None
    base_ref_path: Optional[str] = None
    repo: Path = Path(".")
    write: bool = False
    update_images: bool = False
    update_deps: bool = False
    scan_glob: str = DEFAULT_SCAN_GLOB
    debug: bool = False

    @model_validator(mode="after")
    def check_base(self) -> "BumpOptions":
        if bool(self.base) == bool(self.base_ref):
            raise ValueError("exactly one of --base or --base-ref is required")
        return self

    @property
    def chart_dir(self) -> Path:
        return self.cur.parent

    @property
    def scan_globs(self) -> List[str]:
        return split_csv(self.scan_glob)

    @property
    def history_path(self) -> str:
        """Repository-relative path of the base chart when reading from git."""
        return self.base_ref_path or self.cur.as_posix()


def load_options(**values) -> BumpOptions:
    """Build :class:`BumpOptions`, turning empty strings into unset values.

    Raises:
        ConfigurationError: If the options are inconsistent.
    """
    cleaned = {key: value for key, value in values.items() if value not in ("", None)}
    try:
        return BumpOptions.model_validate(cleaned)
    except ValidationError as e:
        problems = "; ".join(error["msg"] for error in e.errors())
        raise ConfigurationError(f"invalid arguments: {problems}\nusage: {USAGE}")


def github_output_path(env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Path of the GitHub Actions step output file, if running in Actions."""
    env = os.environ if env is None else env
    return env.get("GITHUB_OUTPUT") or None
