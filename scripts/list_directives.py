#!/usr/bin/env python
"""Standalone script that lists the bump directives found in a chart."""
import sys
import json
import argparse

from chartbumper.config import DEFAULT_SCAN_GLOB, split_csv
from chartbumper.directives.scanner import DirectiveScanner
from chartbumper.document.parser import DocumentParser
from chartbumper.document.resolver import PathResolver
from chartbumper.errors import BumperError
from chartbumper.pipeline import expand_globs


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="List '# bump:' directives in a Helm chart directory")
    parser.add_argument("chart_dir", help="Chart directory")
    parser.add_argument("--scan-glob", default=DEFAULT_SCAN_GLOB, help="Comma-separated glob(s) to scan")
    parser.add_argument("--json", action="store_true", help="Print directives as JSON")
    parser.add_argument("--check", action="store_true",
                        help="Verify every directive address resolves in the parsed file")
    args = parser.parse_args(argv)

    try:
        files = expand_globs(args.chart_dir, split_csv(args.scan_glob))
        directives = DirectiveScanner().scan_files(files)

        if args.check:
            for directive in directives:
                doc = DocumentParser.load(directive.file_path)
                _, found = PathResolver.get(doc, directive.address)
                if not found:
                    print(f"{directive.location}: {directive.address} does not resolve", file=sys.stderr)
                    return 2

        if args.json:
            print(json.dumps([
                {
                    "file": d.file_path,
                    "line": d.line,
                    "address": str(d.address),
                    "image": d.image,
                    "strategy": d.strategy,
                    "constraint": d.constraint,
                    "tagRegex": d.tag_regex,
                    "allowPrerelease": d.allow_prerelease,
                    "platform": d.platform,
                    "current": d.current_text,
                }
                for d in directives
            ], indent=2))
        else:
            for d in directives:
                print(f"{d.location}\t{d.address}\t{d.image}\t{d.strategy}\t{d.current_text}")
        return 0
    except BumperError as e:
        print(f"Error listing directives: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
