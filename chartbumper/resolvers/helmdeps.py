"""Latest-version lookup for Chart.yaml dependencies in Helm chart repositories."""
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
from urllib.parse import urlparse

import requests
import yaml

from ..diagnostics import Diagnostics, quiet
from ..errors import ConstraintViolationError, RegistryError
from ..versioning.chart import load_meta
from ..versioning.constraints import Constraint, coerce_version

DEFAULT_TIMEOUT = 30


@dataclass
class ResolvedDependency:
    """A dependency whose best available version differs from Chart.yaml."""
    index: int
    name: str
    old_version: str
    new_version: str
    repository: str

    @property
    def address(self) -> str:
        return f"$.dependencies[{self.index}].version"


def pick_best_version(versions: Iterable[str], version_expr: str) -> Optional[str]:
    """Highest version satisfying ``version_expr``.

    When the expression does not parse as a constraint, the highest version
    overall is returned. Entries that are not versions are ignored.
    """
    constraint = None
    if version_expr and version_expr.strip():
        try:
            constraint = Constraint.parse(version_expr)
        except ConstraintViolationError:
            constraint = None
    best_text = None
    best = None
    for text in versions:
        version = coerce_version(text)
        if version is None:
            continue
        if constraint is not None and not constraint.check(version):
            continue
        if best is None or version > best:
            best, best_text = version, text
    return best_text


class ChartIndexProvider:
    """Downloads repository ``index.yaml`` files, once per repository URL."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: int = DEFAULT_TIMEOUT,
                 diagnostics: Optional[Diagnostics] = None):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.diagnostics = diagnostics or quiet()
        self._cache: Dict[str, Dict[str, List[str]]] = {}

    def fetch_index(self, repo_url: str) -> Dict[str, List[str]]:
        """Return ``{chart name: [versions]}`` for a chart repository.

        Raises:
            RegistryError: If the index cannot be downloaded or parsed.
        """
        if repo_url in self._cache:
            return self._cache[repo_url]
        url = repo_url.rstrip("/") + "/index.yaml"
        self.diagnostics.debug("downloading chart index", url=url)
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            data = yaml.safe_load(response.content)
        except requests.exceptions.RequestException as e:
            raise RegistryError(f"download {url}: {e}")
        except yaml.YAMLError as e:
            raise RegistryError(f"parse {url}: {e}")
        entries = (data.get("entries") or {}) if isinstance(data, dict) else {}
        index = {
            str(name): [str(item.get("version")) for item in (items or [])
                        if isinstance(item, dict) and item.get("version") is not None]
            for name, items in entries.items()
        }
        self._cache[repo_url] = index
        return index

    def resolve_latest_dependencies(self, chart_yaml_path: Union[str, Path]) -> List[ResolvedDependency]:
        """Find dependencies of a chart that have a better version available.

        Only ``http`` and ``https`` repositories are consulted; OCI and local
        dependencies are skipped.

        Args:
            chart_yaml_path: Path to Chart.yaml.

        Returns:
            List[ResolvedDependency]: Dependencies to update, in Chart.yaml order.
        """
        path = Path(chart_yaml_path)
        meta = load_meta(path.read_bytes(), str(path))
        resolved: List[ResolvedDependency] = []
        for index, dep in enumerate(meta.dependencies):
            log = self.diagnostics.bind(index=index, name=dep.name)
            repo_url = dep.repository.strip()
            if urlparse(repo_url).scheme not in ("http", "https"):
                log.debug("skipping dependency outside an http(s) repository", repository=repo_url)
                continue
            versions = self.fetch_index(repo_url).get(dep.name) or []
            best = pick_best_version(versions, dep.version)
            if best is None or best == dep.version:
                continue
            log.debug("dependency update available", old=dep.version, new=best)
            resolved.append(ResolvedDependency(index, dep.name, dep.version, best, repo_url))
        return resolved
