"""OCI registry client: tag listing and manifest digests over the distribution API."""
import os
import re
from typing import Dict, List, Mapping, Optional, Tuple
from urllib.parse import urljoin

import requests

from ..diagnostics import Diagnostics, quiet
from ..errors import MalformedDirectiveError, RegistryError

DEFAULT_TIMEOUT = 30
GHCR_HOST = "ghcr.io"

INDEX_MEDIA_TYPES = (
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
)
MANIFEST_MEDIA_TYPES = (
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
)
_CHALLENGE_PARAM_RE = re.compile(r'(\w+)="([^"]*)"')


def split_repository(repository: str) -> Tuple[str, str]:
    """Split ``ghcr.io/org/app`` into registry host and repository name.

    Raises:
        MalformedDirectiveError: If the repository is not fully qualified.
    """
    host, _, name = repository.partition("/")
    if not name or ("." not in host and ":" not in host and host != "localhost"):
        raise MalformedDirectiveError(
            f"image repository must be a full path like ghcr.io/org/image: {repository!r}")
    return host, name


def parse_platform(platform: str) -> Tuple[str, str]:
    """Parse ``os/arch`` (e.g. ``linux/amd64``)."""
    parts = platform.split("/")
    if len(parts) != 2 or not all(parts):
        raise MalformedDirectiveError(f"invalid platform {platform!r}, expected os/arch (e.g. linux/amd64)")
    return parts[0], parts[1]


def parse_challenge(header: str) -> Dict[str, str]:
    """Parse a ``WWW-Authenticate: Bearer realm=...,service=...`` header."""
    scheme, _, params = header.partition(" ")
    if scheme.lower() != "bearer":
        return {}
    return dict(_CHALLENGE_PARAM_RE.findall(params))


class RegistryClient:
    """Minimal client for the OCI distribution API.

    Anonymous access is tried first. When a registry answers with a bearer
    challenge, a token is requested from its realm; for ghcr.io the token
    request carries ``GITHUB_ACTOR``/``GITHUB_TOKEN`` when both are set.
    """

    def __init__(self, session: Optional[requests.Session] = None, env: Optional[Mapping[str, str]] = None,
                 timeout: int = DEFAULT_TIMEOUT, diagnostics: Optional[Diagnostics] = None):
        self.session = session or requests.Session()
        self.env = os.environ if env is None else env
        self.timeout = timeout
        self.diagnostics = diagnostics or quiet()
        self._tokens: Dict[Tuple[str, str], str] = {}

    def _credentials(self, host: str) -> Optional[Tuple[str, str]]:
        if host != GHCR_HOST:
            return None
        token = self.env.get("GITHUB_TOKEN")
        actor = self.env.get("GITHUB_ACTOR")
        if not token or not actor:
            return None
        return actor, token

    def _fetch_token(self, host: str, challenge: Dict[str, str]) -> str:
        realm = challenge.get("realm")
        if not realm:
            raise RegistryError(f"{host}: authentication challenge has no realm")
        params = {k: v for k, v in challenge.items() if k in ("service", "scope")}
        try:
            response = self.session.get(realm, params=params, auth=self._credentials(host), timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as e:
            raise RegistryError(f"{host}: token request failed: {e}")
        except ValueError as e:
            raise RegistryError(f"{host}: token response is not JSON: {e}")
        token = body.get("token") or body.get("access_token")
        if not token:
            raise RegistryError(f"{host}: token response carries no token")
        return token

    def _request(self, method: str, host: str, name: str, url: str,
                 headers: Optional[Dict[str, str]] = None) -> requests.Response:
        """Send a request, answering one bearer challenge if the registry asks."""
        headers = dict(headers or {})
        key = (host, name)
        if key in self._tokens:
            headers["Authorization"] = f"Bearer {self._tokens[key]}"
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout)
            if response.status_code == 401:
                challenge = parse_challenge(response.headers.get("WWW-Authenticate", ""))
                if not challenge:
                    raise RegistryError(f"{host}: unauthorized and no bearer challenge offered")
                self.diagnostics.debug("answering registry auth challenge", host=host, repository=name)
                self._tokens[key] = self._fetch_token(host, challenge)
                headers["Authorization"] = f"Bearer {self._tokens[key]}"
                response = self.session.request(method, url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise RegistryError(f"{method} {url} failed: {e}")
        return response

    def list_tags(self, repository: str) -> List[str]:
        """List all tags of a repository, following ``Link`` pagination.

        Args:
            repository: Fully qualified repository, e.g. ``ghcr.io/org/app``.

        Returns:
            List[str]: Tags in registry order.

        Raises:
            RegistryError: If the registry cannot be queried.
        """
        host, name = split_repository(repository)
        url: Optional[str] = f"https://{host}/v2/{name}/tags/list"
        tags: List[str] = []
        while url:
            response = self._request("GET", host, name, url)
            try:
                tags.extend(response.json().get("tags") or [])
            except ValueError as e:
                raise RegistryError(f"{repository}: tag list is not JSON: {e}")
            next_url = response.links.get("next", {}).get("url")
            url = urljoin(url, next_url) if next_url else None
        self.diagnostics.debug("listed registry tags", repository=repository, count=len(tags))
        return tags

    def resolve_digest(self, repository: str, tag: str, platform: Optional[str] = None) -> str:
        """Resolve the manifest digest of ``repository:tag``.

        When ``platform`` (``os/arch``) is given and the tag points at an
        index, the digest of the matching platform manifest is returned.

        Raises:
            RegistryError: If the manifest cannot be fetched or the platform is absent.
        """
        if not repository or not tag:
            raise RegistryError("image repository and tag are required to resolve digest")
        host, name = split_repository(repository)
        url = f"https://{host}/v2/{name}/manifests/{tag}"
        accept = {"Accept": ", ".join(INDEX_MEDIA_TYPES + MANIFEST_MEDIA_TYPES)}

        if not platform:
            response = self._request("HEAD", host, name, url, accept)
            digest = response.headers.get("Docker-Content-Digest")
            if not digest:
                raise RegistryError(f"{repository}:{tag}: registry returned no Docker-Content-Digest")
            return digest

        want_os, want_arch = parse_platform(platform)
        response = self._request("GET", host, name, url, accept)
        try:
            manifest = response.json()
        except ValueError as e:
            raise RegistryError(f"{repository}:{tag}: manifest is not JSON: {e}")
        media_type = manifest.get("mediaType") or response.headers.get("Content-Type", "").split(";")[0]
        if media_type not in INDEX_MEDIA_TYPES and "manifests" not in manifest:
            digest = response.headers.get("Docker-Content-Digest")
            if not digest:
                raise RegistryError(f"{repository}:{tag}: registry returned no Docker-Content-Digest")
            return digest
        for entry in manifest.get("manifests") or []:
            entry_platform = entry.get("platform") or {}
            if entry_platform.get("os") == want_os and entry_platform.get("architecture") == want_arch:
                return entry["digest"]
        raise RegistryError(f"{repository}:{tag}: no manifest for platform {platform}")
