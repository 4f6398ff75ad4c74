"""Tests for reading files at git revisions."""
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from chartbumper.errors import HistoricalContentError
from chartbumper.resolvers.git import read_file_at_ref, ref_candidates, resolve_revision


def _completed(stdout=b""):
    result = MagicMock()
    result.stdout = stdout
    return result


def _failed(stderr=b"fatal: bad revision"):
    return subprocess.CalledProcessError(1, ["git"], stderr=stderr)


def test_ref_candidates():
    """Test the revisions tried for short and full refs."""
    assert ref_candidates("main") == ["main", "refs/heads/main", "refs/remotes/origin/main"]
    assert ref_candidates("origin/main") == [
        "origin/main",
        "refs/remotes/origin/main",
        "refs/heads/origin/main",
        "refs/remotes/origin/origin/main",
    ]
    assert ref_candidates("refs/remotes/origin/main") == ["refs/remotes/origin/main"]


@patch("chartbumper.resolvers.git.subprocess.run")
def test_read_file_at_ref(mock_run):
    """Test resolving a ref through its candidates and reading a file."""
    mock_run.side_effect = [_failed(), _completed(b"abc123\n"), _completed(b"version: 1.0.0\n")]

    content = read_file_at_ref("/repo", "main", "./charts/app/Chart.yaml")

    assert content == b"version: 1.0.0\n"
    commands = [c.args[0] for c in mock_run.call_args_list]
    assert commands == [
        ["git", "-C", "/repo", "rev-parse", "--verify", "--quiet", "main^{commit}"],
        ["git", "-C", "/repo", "rev-parse", "--verify", "--quiet", "refs/heads/main^{commit}"],
        ["git", "-C", "/repo", "show", "abc123:charts/app/Chart.yaml"],
    ]


@patch("chartbumper.resolvers.git.subprocess.run")
def test_unresolvable_ref(mock_run):
    """Test that a ref no candidate resolves is reported."""
    mock_run.side_effect = _failed()
    with pytest.raises(HistoricalContentError, match="unable to resolve git ref 'nope'"):
        resolve_revision("/repo", "nope")
    assert mock_run.call_count == 3


@patch("chartbumper.resolvers.git.subprocess.run")
def test_missing_file_at_ref(mock_run):
    """Test a path that does not exist at the revision."""
    mock_run.side_effect = [_completed(b"abc123\n"), _failed(b"fatal: path does not exist")]
    with pytest.raises(HistoricalContentError, match="path does not exist"):
        read_file_at_ref("/repo", "HEAD~1", "Chart.yaml")


@patch("chartbumper.resolvers.git.subprocess.run")
def test_git_not_installed(mock_run):
    """Test a missing git executable."""
    mock_run.side_effect = FileNotFoundError("git")
    with pytest.raises(HistoricalContentError, match="git executable not found"):
        read_file_at_ref("/repo", "HEAD", "Chart.yaml")


def test_empty_path():
    """Test that an empty path is rejected before running git."""
    with pytest.raises(HistoricalContentError):
        read_file_at_ref("/repo", "HEAD", "./")
