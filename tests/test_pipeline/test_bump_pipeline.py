"""Tests for the bump pipeline."""
from unittest.mock import MagicMock, patch

import pytest

from chartbumper.config import load_options
from chartbumper.errors import MalformedDirectiveError, NoMatchingTagError
from chartbumper.pipeline import (bump_chart, expand_globs, read_base_chart, run, update_dependencies,
                                  update_images, write_github_output)
from chartbumper.resolvers.helmdeps import ResolvedDependency
from chartbumper.resolvers.tags import TagResolver
from chartbumper.versioning.semver import ChangeLevel

GLOBS = ["Chart.yaml", "values*.yaml"]
BASE_CHART = b"apiVersion: v2\nname: demo\nversion: 0.3.1\nappVersion: 1.0.0\n"

DIGEST_VALUES = """\
image:
  repository: ghcr.io/org/app
  tag: 1.2.3
  # bump: image=ghcr.io/org/app strategy=digest platform=linux/amd64
  digest: sha256:old
"""


@pytest.fixture
def tags():
    return TagResolver(MagicMock(return_value=["2.3.1", "2.4.0", "3.0.0-rc.1", "latest"]))


@pytest.fixture
def digests():
    return MagicMock(return_value="sha256:new")


def test_expand_globs(chart_dir):
    """Test that globs expand to sorted unique files."""
    (chart_dir / "values-prod.yaml").write_text("a: 1\n")
    (chart_dir / "values.d").mkdir()
    files = expand_globs(chart_dir, GLOBS + ["*.yaml"])
    assert [f.name for f in files] == ["Chart.yaml", "values-prod.yaml", "values.yaml"]


def test_update_images(chart_dir, values_text, tags, digests):
    """Test that a semver directive updates its tag in place."""
    assert update_images(chart_dir, GLOBS, tags, digests) is True
    assert (chart_dir / "values.yaml").read_text() == values_text.replace('tag: "2.3.1"', 'tag: "2.4.0"')
    digests.assert_not_called()


def test_update_images_up_to_date(chart_dir, values_text, digests):
    """Test that nothing is written when the tag is current."""
    tags = TagResolver(MagicMock(return_value=["2.3.1", "2.2.0"]))
    assert update_images(chart_dir, GLOBS, tags, digests) is False
    assert (chart_dir / "values.yaml").read_text() == values_text


def test_update_images_digest(tmp_path, tags, digests):
    """Test that a digest directive resolves the sibling tag."""
    values = tmp_path / "values.yaml"
    values.write_text(DIGEST_VALUES)

    assert update_images(tmp_path, GLOBS, tags, digests) is True
    digests.assert_called_once_with("ghcr.io/org/app", "1.2.3", "linux/amd64")
    assert values.read_text() == DIGEST_VALUES.replace("sha256:old", "sha256:new")


def test_update_images_digest_without_tag(tmp_path, tags, digests):
    """Test that a digest directive needs a sibling tag."""
    values = tmp_path / "values.yaml"
    values.write_text("image:\n  # bump: image=ghcr.io/org/app strategy=digest\n  digest: sha256:old\n")

    with pytest.raises(MalformedDirectiveError) as exc_info:
        update_images(tmp_path, GLOBS, tags, digests)
    assert exc_info.value.path == str(values)
    assert exc_info.value.line == 2


def test_update_images_error_location(chart_dir, digests):
    """Test that resolution errors carry the directive's file and line."""
    tags = TagResolver(MagicMock(return_value=["latest"]))
    with pytest.raises(NoMatchingTagError) as exc_info:
        update_images(chart_dir, GLOBS, tags, digests)
    assert str(exc_info.value).startswith(f"{chart_dir / 'values.yaml'}:6:")


def test_update_dependencies(chart_dir, chart_text):
    """Test writing resolved dependency versions."""
    provider = MagicMock()
    provider.resolve_latest_dependencies.return_value = [
        ResolvedDependency(1, "postgresql", "^12.1.0", "12.5.8", "https://charts.bitnami.com/bitnami"),
    ]
    assert update_dependencies(chart_dir, provider) is True
    assert (chart_dir / "Chart.yaml").read_text() == chart_text.replace('"^12.1.0"', '"12.5.8"')


def test_update_dependencies_nothing_to_do(chart_dir, chart_text):
    """Test that no resolved dependencies leave Chart.yaml alone."""
    provider = MagicMock()
    provider.resolve_latest_dependencies.return_value = []
    assert update_dependencies(chart_dir, provider) is False
    assert (chart_dir / "Chart.yaml").read_text() == chart_text


def test_bump_chart(chart_dir, chart_text):
    """Test bumping the chart version from an appVersion change."""
    cur = chart_dir / "Chart.yaml"
    cur.write_text(chart_text.replace('appVersion: "1.0.0"', 'appVersion: "1.1.0"'))

    result = bump_chart(BASE_CHART, cur, write=True)

    assert result.level == ChangeLevel.MINOR
    assert result.changed is True
    assert result.written is True
    expected = chart_text.replace('appVersion: "1.0.0"', 'appVersion: "1.1.0"').replace(
        "version: 0.3.2", "version: 0.4.0")
    assert result.rendered.decode("utf-8") == expected
    assert cur.read_text() == expected


def test_bump_chart_dry_run(chart_dir, chart_text):
    """Test that a dry run renders without writing."""
    cur = chart_dir / "Chart.yaml"
    result = bump_chart(BASE_CHART.replace(b"1.0.0", b"0.9.0"), cur)

    assert result.level == ChangeLevel.MAJOR
    assert result.written is False
    assert b"version: 1.0.0\n" in result.rendered
    assert cur.read_text() == chart_text


def test_bump_chart_no_change(chart_dir, chart_text):
    """Test that an unchanged appVersion keeps the chart as it is."""
    result = bump_chart(BASE_CHART, chart_dir / "Chart.yaml", write=True)
    assert result.level == ChangeLevel.NONE
    assert result.changed is False
    assert result.written is False
    assert result.rendered == chart_text.encode("utf-8")


def test_write_github_output(tmp_path):
    """Test appending the changed flag to the step output file."""
    output = tmp_path / "output.txt"
    output.write_text("other=1\n")
    env = {"GITHUB_OUTPUT": str(output)}

    assert write_github_output(True, env) is True
    assert write_github_output(False, env) is True
    assert output.read_text() == "other=1\nchanged=true\nchanged=false\n"
    assert write_github_output(True, {}) is False


@patch("chartbumper.pipeline.read_file_at_ref")
def test_read_base_chart_from_git(mock_read, chart_dir):
    """Test that --base-ref reads the base chart from git."""
    mock_read.return_value = BASE_CHART
    options = load_options(base_ref="origin/main", cur=str(chart_dir / "Chart.yaml"), repo="/repo")

    assert read_base_chart(options) == BASE_CHART
    args = mock_read.call_args.args
    assert args[:3] == ("/repo", "origin/main", (chart_dir / "Chart.yaml").as_posix())


def test_run_write_mode(tmp_path, chart_dir, chart_text, values_text, tags, digests):
    """Test a full run with image updates in write mode."""
    base = tmp_path / "base-Chart.yaml"
    base.write_text(chart_text)
    options = load_options(base=str(base), cur=str(chart_dir / "Chart.yaml"), write=True,
                           update_images=True)
    provider = MagicMock()

    result = run(options, tags, digests, provider)

    assert result.level == ChangeLevel.NONE
    assert result.written is True
    assert 'tag: "2.4.0"' in (chart_dir / "values.yaml").read_text()
    provider.resolve_latest_dependencies.assert_not_called()


def test_run_dry_run_skips_images(tmp_path, chart_dir, values_text, tags, digests):
    """Test that image updates only happen in write mode."""
    base = tmp_path / "base-Chart.yaml"
    base.write_bytes(BASE_CHART)
    options = load_options(base=str(base), cur=str(chart_dir / "Chart.yaml"), update_images=True)

    result = run(options, tags, digests, MagicMock())

    assert result.written is False
    assert (chart_dir / "values.yaml").read_text() == values_text
