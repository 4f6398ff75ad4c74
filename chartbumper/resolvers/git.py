"""Read files as they were at a git revision."""
import subprocess
from pathlib import PurePath
from typing import List, Optional, Union

from ..diagnostics import Diagnostics, quiet
from ..errors import HistoricalContentError


def ref_candidates(ref: str) -> List[str]:
    """Revisions tried, in order, for a user-supplied ref such as ``main`` or ``origin/main``."""
    candidates = [ref]
    if ref.startswith("origin/"):
        candidates.append("refs/remotes/" + ref)
    if not ref.startswith("refs/"):
        candidates.append("refs/heads/" + ref)
        candidates.append("refs/remotes/origin/" + ref)
    return candidates


def _git(repo: str, *args: str) -> subprocess.CompletedProcess:
    return subprocess.run(["git", "-C", repo, *args], capture_output=True, check=True)


def resolve_revision(repo: str, ref: str, diagnostics: Optional[Diagnostics] = None) -> str:
    """Resolve ``ref`` to a commit hash.

    Raises:
        HistoricalContentError: If no candidate resolves.
    """
    log = (diagnostics or quiet()).bind(ref=ref)
    candidates = ref_candidates(ref)
    log.debug("resolving revision", candidates=candidates)
    last_error = ""
    for candidate in candidates:
        try:
            result = _git(repo, "rev-parse", "--verify", "--quiet", candidate + "^{commit}")
        except FileNotFoundError as e:
            raise HistoricalContentError(f"git executable not found: {e}")
        except subprocess.CalledProcessError as e:
            last_error = (e.stderr or b"").decode("utf-8", "replace").strip() or f"exit status {e.returncode}"
            continue
        commit = result.stdout.decode("utf-8").strip()
        log.debug("resolved", candidate=candidate, hash=commit)
        return commit
    raise HistoricalContentError(f"unable to resolve git ref {ref!r} (tried {candidates}): {last_error}")


def read_file_at_ref(repo: str, ref: str, path: Union[str, PurePath],
                     diagnostics: Optional[Diagnostics] = None) -> bytes:
    """Read ``path`` (relative to the repository root) at ``ref``.

    Args:
        repo: Any directory inside the git work tree.
        ref: Revision, e.g. ``HEAD~1``, ``main`` or ``origin/main``.
        path: Repository-relative file path.
        diagnostics: Optional debug sink.

    Returns:
        bytes: The file content at that revision.

    Raises:
        HistoricalContentError: If the ref or the file cannot be read.
    """
    log = (diagnostics or quiet()).bind(repo=repo, ref=ref, path=str(path))
    relative = PurePath(path).as_posix()
    if relative.startswith("./"):
        relative = relative[2:]
    if relative in ("", "."):
        raise HistoricalContentError("empty repository-relative path")
    commit = resolve_revision(repo, ref, log)
    try:
        result = _git(repo, "show", f"{commit}:{relative}")
    except FileNotFoundError as e:
        raise HistoricalContentError(f"git executable not found: {e}")
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or b"").decode("utf-8", "replace").strip()
        raise HistoricalContentError(f"read {relative!r} at ref {ref!r}: {detail}")
    log.debug("read bytes", size=len(result.stdout))
    return result.stdout
