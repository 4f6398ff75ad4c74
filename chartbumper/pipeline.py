"""Bump pipeline: image directives, dependency versions and the chart version."""
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Union

from .config import BumpOptions, github_output_path
from .diagnostics import Diagnostics, quiet
from .directives.models import Directive
from .directives.scanner import DirectiveScanner
from .document.address import Field
from .document.model import Document
from .document.parser import DocumentParser
from .document.renderer import DocumentRenderer
from .document.resolver import PathResolver
from .document.updater import DocumentUpdater
from .errors import BumperError, MalformedDirectiveError, UnrecognizedStrategyError
from .resolvers.git import read_file_at_ref
from .resolvers.helmdeps import ChartIndexProvider
from .resolvers.tags import TagResolver
from .versioning.chart import CHART_FILE, apply_chart_version_bump, compute_change_level, load_meta
from .versioning.semver import ChangeLevel

DigestResolver = Callable[[str, str, Optional[str]], str]
TAG_STRATEGIES = ("semver", "regex", "literal")


@dataclass
class BumpResult:
    """Outcome of bumping the chart version."""
    level: ChangeLevel
    changed: bool
    written: bool
    rendered: bytes


def expand_globs(chart_dir: Union[str, Path], globs: Iterable[str]) -> List[Path]:
    """Regular files under ``chart_dir`` matching any glob, sorted and unique."""
    root = Path(chart_dir)
    files = set()
    for pattern in globs:
        for match in root.glob(pattern):
            if match.is_file():
                files.add(match)
    return sorted(files)


def resolve_directive(doc: Document, directive: Directive, tags: TagResolver,
                      digests: DigestResolver, log: Optional[Diagnostics] = None) -> str:
    """Compute the new value for one directive.

    ``digest`` directives read the sibling ``tag`` key of their target and
    resolve that tag's manifest digest; the other strategies select a tag.

    Raises:
        MalformedDirectiveError: If a digest directive has no sibling tag.
        UnrecognizedStrategyError: If the strategy is unknown.
    """
    log = log or quiet()
    strategy = (directive.strategy or "semver").lower()
    if strategy == "digest":
        tag_address = directive.address.parent().child(Field("tag"))
        tag, found = PathResolver.get_text(doc, tag_address)
        if not found or not tag or not tag.strip():
            raise MalformedDirectiveError(
                f"strategy=digest requires a sibling 'tag' key (looked for {tag_address})")
        log.debug("resolving digest from tag", tag_address=str(tag_address), tag=tag)
        return digests(directive.image, tag, directive.platform)
    if strategy in TAG_STRATEGIES:
        log.debug("resolving tag")
        return tags.resolve(directive.image, strategy, directive.constraint,
                            directive.tag_regex, directive.allow_prerelease)
    raise UnrecognizedStrategyError(f"unknown strategy {directive.strategy!r}")


def update_images(chart_dir: Union[str, Path], globs: Iterable[str], tags: TagResolver,
                  digests: DigestResolver, diagnostics: Optional[Diagnostics] = None) -> bool:
    """Apply ``# bump:`` directives in the chart's scanned files.

    Each file is scanned, parsed once, updated for all its directives and
    rewritten only when its rendered bytes differ.

    Args:
        chart_dir: Chart directory the globs are relative to.
        globs: Glob patterns such as ``values*.yaml``.
        tags: Tag resolver for semver/regex/literal directives.
        digests: Callable ``(image, tag, platform) -> digest``.
        diagnostics: Optional debug sink.

    Returns:
        bool: True if any file was written.

    Raises:
        BumperError: On the first directive that cannot be applied; the error
            carries the file path and the directive's line.
    """
    log = (diagnostics or quiet()).bind(chart_dir=str(chart_dir))
    scanner = DirectiveScanner(log)
    any_written = False
    for path in expand_globs(chart_dir, globs):
        file_log = log.bind(file=str(path))
        directives = scanner.scan_file(path)
        file_log.debug("scanned for bump directives", directives=len(directives))
        if not directives:
            continue

        original = path.read_bytes()
        doc = DocumentParser.parse(original, path=str(path))
        file_changed = False
        for directive in directives:
            d_log = file_log.bind(line=directive.line, address=str(directive.address),
                                  image=directive.image, strategy=directive.strategy)
            try:
                new_value = resolve_directive(doc, directive, tags, digests, d_log)
                d_log.debug("resolved new value", current=directive.current_text, new=new_value)
                file_changed = PathResolver.set(doc, directive.address, new_value) or file_changed
            except BumperError as e:
                raise e.with_location(str(path), directive.line)

        if not file_changed:
            file_log.debug("no changes to apply")
            continue
        written = DocumentUpdater.write_if_changed(path, original, doc)
        file_log.debug("wrote updated file" if written else "rendered file identical; skipping write")
        any_written = written or any_written
    return any_written


def update_dependencies(chart_dir: Union[str, Path], provider: ChartIndexProvider,
                        diagnostics: Optional[Diagnostics] = None) -> bool:
    """Set ``$.dependencies[i].version`` to the best available versions.

    Returns:
        bool: True if Chart.yaml was written.
    """
    chart_path = Path(chart_dir) / CHART_FILE
    log = (diagnostics or quiet()).bind(chart=str(chart_path))
    resolved = provider.resolve_latest_dependencies(chart_path)
    log.debug("resolved dependency candidates", count=len(resolved))
    if not resolved:
        return False

    for dep in resolved:
        log.debug("dependency resolution", name=dep.name, index=dep.index, old=dep.old_version, new=dep.new_version)
    written = DocumentUpdater.update_fields(chart_path, {str(dep.address): dep.new_version for dep in resolved})
    log.debug("updated dependency versions", written=written)
    return written


def bump_chart(base_bytes: bytes, cur_path: Union[str, Path], write: bool = False,
               diagnostics: Optional[Diagnostics] = None) -> BumpResult:
    """Bump the current chart's version by comparing it with the base chart.

    Args:
        base_bytes: Base Chart.yaml content.
        cur_path: Path of the current Chart.yaml.
        write: Write the bumped chart back to ``cur_path``.
        diagnostics: Optional debug sink.

    Returns:
        BumpResult: Level, whether the version changed, whether the file was
        written, and the rendered chart.
    """
    log = diagnostics or quiet()
    path = Path(cur_path)
    cur_bytes = path.read_bytes()
    base_meta = load_meta(base_bytes, "<base>")
    cur_meta = load_meta(cur_bytes, str(path))

    level = compute_change_level(base_meta, cur_meta)
    log.debug("computed change level", base_version=base_meta.version, base_app_version=base_meta.app_version,
              cur_version=cur_meta.version, cur_app_version=cur_meta.app_version, level=str(level))

    doc = DocumentParser.parse(cur_bytes, path=str(path))
    changed = apply_chart_version_bump(doc, level)
    log.debug("applied chart version bump", changed=changed)
    rendered = DocumentRenderer.render(doc)

    written = False
    if write and changed:
        if rendered != cur_bytes:
            log.debug("writing updated Chart.yaml", path=str(path))
            path.write_bytes(rendered)
            written = True
        else:
            log.debug("rendered Chart.yaml identical; skipping write")
    return BumpResult(level, changed, written, rendered)


def write_github_output(changed: bool, env: Optional[Mapping[str, str]] = None) -> bool:
    """Append ``changed=true|false`` to ``$GITHUB_OUTPUT`` when it is set.

    Returns:
        bool: True if the output file was written.
    """
    output = github_output_path(env)
    if not output:
        return False
    with open(output, "a") as f:
        f.write(f"changed={'true' if changed else 'false'}\n")
    return True


def read_base_chart(options: BumpOptions, diagnostics: Optional[Diagnostics] = None) -> bytes:
    """Read the base Chart.yaml from ``--base`` or from git at ``--base-ref``."""
    log = diagnostics or quiet()
    if options.base_ref:
        log.debug("reading base chart from git ref", repo=str(options.repo), ref=options.base_ref,
                  path=options.history_path)
        return read_file_at_ref(str(options.repo), options.base_ref, options.history_path, log)
    log.debug("reading base chart from file", path=str(options.base))
    return Path(options.base).read_bytes()


def run(options: BumpOptions, tags: TagResolver, digests: DigestResolver, provider: ChartIndexProvider,
        diagnostics: Optional[Diagnostics] = None) -> BumpResult:
    """Run a full bump: optional image and dependency updates, then the chart version.

    Image and dependency updates only happen in write mode. The returned
    result's ``written`` is True when any file was written.
    """
    log = diagnostics or quiet()
    base_bytes = read_base_chart(options, log)
    chart_dir = options.chart_dir
    log.debug("computed chart directory", chart_dir=str(chart_dir))

    any_written = False
    if options.write:
        if options.update_images:
            written = update_images(chart_dir, options.scan_globs, tags, digests, log)
            log.debug("update images completed", any_written=written)
            any_written = any_written or written
        if options.update_deps:
            written = update_dependencies(chart_dir, provider, log)
            log.debug("update deps completed", any_written=written)
            any_written = any_written or written

    result = bump_chart(base_bytes, options.cur, options.write, log)
    result.written = result.written or any_written
    return result
