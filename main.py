"""helm-chart-bumper CLI entrypoint."""
import sys
from typing import Optional

import typer
from rich.console import Console

from chartbumper.config import DEFAULT_SCAN_GLOB, load_options
from chartbumper.diagnostics import Diagnostics
from chartbumper.errors import BumperError
from chartbumper.pipeline import run, write_github_output
from chartbumper.resolvers.helmdeps import ChartIndexProvider
from chartbumper.resolvers.registry import RegistryClient
from chartbumper.resolvers.tags import TagResolver

app = typer.Typer(help="Helm chart bumper - bump Chart.yaml versions from appVersion and dependency changes")
console = Console(stderr=True)


@app.command()
def bump(
    base: Optional[str] = typer.Option(None, "--base", help="Path to base Chart.yaml"),
    base_ref: Optional[str] = typer.Option(
        None, "--base-ref", help="Git ref to read the base Chart.yaml from (e.g. 'refs/remotes/origin/main' or 'HEAD~1')"),
    base_ref_path: Optional[str] = typer.Option(
        None, "--base-ref-path", help="Repository-relative path to base Chart.yaml when using --base-ref (defaults to --cur)"),
    repo: str = typer.Option(".", "--repo", help="Path to the git working tree (used with --base-ref)"),
    cur: Optional[str] = typer.Option(None, "--cur", help="Path to current Chart.yaml"),
    write: bool = typer.Option(False, "--write", help="Write updated files back to disk"),
    update_images: bool = typer.Option(
        False, "--update-images", help="Update image versions based on '# bump:' directives"),
    update_deps: bool = typer.Option(
        False, "--update-deps", help="Update Chart.yaml dependencies to latest versions from their Helm repositories"),
    scan_glob: str = typer.Option(
        DEFAULT_SCAN_GLOB, "--scan-glob",
        help="Comma-separated glob(s) relative to the chart directory to scan for '# bump:' directives"),
    debug: bool = typer.Option(False, "--debug", help="Print debug information to stderr"),
):
    """Bump the chart version from appVersion and dependency changes."""
    diagnostics = Diagnostics(console, enabled=debug)
    try:
        options = load_options(base=base, base_ref=base_ref, base_ref_path=base_ref_path, repo=repo, cur=cur,
                               write=write, update_images=update_images, update_deps=update_deps,
                               scan_glob=scan_glob, debug=debug)
        diagnostics.debug("parsed options", **options.model_dump(mode="json"))

        registry = RegistryClient(diagnostics=diagnostics)
        tags = TagResolver(registry.list_tags, diagnostics)
        provider = ChartIndexProvider(diagnostics=diagnostics)
        result = run(options, tags, registry.resolve_digest, provider, diagnostics)

        if not options.write:
            # Emit the resulting Chart.yaml on stdout
            sys.stdout.write(result.rendered.decode("utf-8"))
            sys.stdout.flush()

        write_github_output(result.written)
        diagnostics.debug("done", changed=result.written)
    except (BumperError, OSError) as e:
        diagnostics.error(str(e))
        raise typer.Exit(code=2)


if __name__ == "__main__":
    app()
