"""Command-line interface for epub2site."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from .version import __version__

EXIT_INVALID_ARGS = 6
EXIT_OUTPUT_DIR = 7
EXIT_CONVERSION = 8

ASSET_URL_ENV = "EPUB2SITE_ASSET_URL"


def _get_usage() -> str:
    return (
        f"epub2site {__version__}\n"
        "Usage:\n"
        "  epub2site [--help] [--version|--ver]\n"
        "  epub2site --from-dir FROM_DIR --to-dir TO_DIR [options]\n\n"
        "Options:\n"
        "  --asset-url URL              Base URL of the shared site stylesheets and scripts\n"
        f"                               (fallback: {ASSET_URL_ENV} env var)\n"
        "  --templates DIR              Directory with page.html.j2 and navigation.html.j2\n"
        "  --verbose                    Verbose progress logs\n"
        "  --debug                      Debug logs"
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--help", action="store_true")
    parser.add_argument("--version", action="store_true")
    parser.add_argument("--ver", action="store_true")
    parser.add_argument("--from-dir", help="Extracted package directory containing META-INF/container.xml")
    parser.add_argument("--to-dir", help="Output directory")
    parser.add_argument("--asset-url", default=None, help="Base URL of the shared site assets")
    parser.add_argument("--templates", default=None, help="Directory overriding the bundled templates")
    parser.add_argument("--verbose", action="store_true", help="Verbose progress logs")
    parser.add_argument("--debug", action="store_true", help="Debug logs")
    return parser


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = _build_parser()
    args, unknown = parser.parse_known_args(argv)
    if unknown:
        print(_get_usage())
        return 2

    if not argv or args.help:
        print(_get_usage())
        return 0

    if args.version or args.ver:
        print(__version__)
        return 0

    if not args.from_dir or not args.to_dir:
        print(_get_usage())
        print("Options --from-dir and --to-dir are required", file=sys.stderr)
        return EXIT_INVALID_ARGS

    from_dir = Path(args.from_dir).expanduser().resolve()
    to_dir = Path(args.to_dir).expanduser().resolve()

    if not from_dir.exists() or not from_dir.is_dir():
        print(f"Source directory not found: {from_dir}", file=sys.stderr)
        return EXIT_INVALID_ARGS

    if to_dir.exists() and not to_dir.is_dir():
        print(f"Output path is not a directory: {to_dir}", file=sys.stderr)
        return EXIT_OUTPUT_DIR

    template_dir = None
    if args.templates:
        template_dir = Path(args.templates).expanduser().resolve()
        if not template_dir.is_dir():
            print(f"Templates directory not found: {template_dir}", file=sys.stderr)
            return EXIT_INVALID_ARGS

    from epub2site import core
    from epub2site.render import load_render_config

    core.setup_logging(args.verbose, args.debug)

    asset_url = args.asset_url if args.asset_url is not None else os.environ.get(ASSET_URL_ENV, "")
    try:
        config = load_render_config(template_dir=template_dir, asset_url=asset_url)
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_INVALID_ARGS

    try:
        first_page = core.convert(from_dir, to_dir, config)
    except RuntimeError as exc:
        print(f"Conversion failed: {exc}", file=sys.stderr)
        return EXIT_CONVERSION

    if first_page:
        print(first_page)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
