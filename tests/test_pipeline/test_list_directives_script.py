"""Tests for the list_directives script."""
import json

from scripts.list_directives import main


def test_list_directives_tsv(chart_dir, capsys):
    """Test listing directives as tab-separated lines."""
    assert main([str(chart_dir)]) == 0
    out = capsys.readouterr().out
    assert out == f'{chart_dir / "values.yaml"}:6\t$.image.tag\tghcr.io/example/app\tsemver\t"2.3.1"\n'


def test_list_directives_json_check(chart_dir, capsys):
    """Test JSON output with address checks."""
    assert main([str(chart_dir), "--json", "--check"]) == 0
    listed = json.loads(capsys.readouterr().out)
    assert listed == [{
        "file": str(chart_dir / "values.yaml"),
        "line": 6,
        "address": "$.image.tag",
        "image": "ghcr.io/example/app",
        "strategy": "semver",
        "constraint": None,
        "tagRegex": None,
        "allowPrerelease": False,
        "platform": None,
        "current": '"2.3.1"',
    }]


def test_list_directives_error(tmp_path, capsys):
    """Test that a malformed directive exits with code 2."""
    (tmp_path / "values.yaml").write_text("# bump: image=nginx\ntag: 1\n")
    assert main([str(tmp_path)]) == 2
    assert "Error listing directives" in capsys.readouterr().err
