"""
Command-line interface for Waymend.

Provides one subcommand per pass over a mirrored site: ``clean`` rewrites
pages in place, ``prune`` lists or deletes unreferenced bundle assets, and
``verify`` reports broken local page links.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from ..core.controller import NoPagesFoundError, RunConfig, WaymendController
from ..core.link_rewriter import DEFAULT_ARCHIVE_HOST
from ..core.logger import initialize_logging
from ..core.pruner import DEFAULT_BUNDLE_SUFFIX, DEFAULT_SAMPLE_SIZE

logger = logging.getLogger("waymend.cli")

EXIT_OK = 0
EXIT_BROKEN_LINKS = 1
EXIT_NO_PAGES = 2
EXIT_BAD_ROOT = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="waymend",
        description="Normalize a mirrored Wayback Machine copy of a website.",
    )
    parser.add_argument("--log-dir", default="logs", help="Directory for log files")
    parser.add_argument("--verbose", action="store_true", help="Show debug output on the console")
    parser.add_argument(
        "--manifest",
        default=None,
        help="Append a JSON Lines record of every page/file action to this path",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    clean = subparsers.add_parser("clean", help="Strip archive markup and rewrite links in place")
    clean.add_argument("root", nargs="?", default=".", help="Mirror root directory")
    clean.add_argument("--site-host", required=True, help="Host name of the archived site")
    clean.add_argument(
        "--archive-host",
        default=DEFAULT_ARCHIVE_HOST,
        help="Host serving archive replay URLs",
    )
    clean.add_argument(
        "--concurrency",
        type=int,
        default=1,
        help="Number of worker threads for the per-page stage",
    )
    clean.add_argument(
        "--audit",
        action="store_true",
        help="Warn when cleaning a page drops paragraphs or headings",
    )

    prune = subparsers.add_parser("prune", help="List or delete unreferenced asset-bundle files")
    prune.add_argument("root", nargs="?", default=".", help="Mirror root directory")
    prune.add_argument("--apply", action="store_true", help="Delete the unreferenced files")
    prune.add_argument(
        "--suffix",
        default=DEFAULT_BUNDLE_SUFFIX,
        help="Directory-name suffix marking asset-bundle directories",
    )
    prune.add_argument(
        "--sample",
        type=int,
        default=DEFAULT_SAMPLE_SIZE,
        help="Number of candidates listed in a dry run",
    )

    verify = subparsers.add_parser("verify", help="Report local page links whose target is missing")
    verify.add_argument("root", nargs="?", default=".", help="Mirror root directory")

    return parser


def config_from_args(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        root=args.root,
        site_host=getattr(args, "site_host", ""),
        archive_host=getattr(args, "archive_host", DEFAULT_ARCHIVE_HOST),
        concurrency=getattr(args, "concurrency", 1),
        audit=getattr(args, "audit", False),
        manifest_path=args.manifest,
        bundle_suffix=getattr(args, "suffix", DEFAULT_BUNDLE_SUFFIX),
        apply=getattr(args, "apply", False),
        sample_size=getattr(args, "sample", DEFAULT_SAMPLE_SIZE),
    )


def run_command(command: str, controller: WaymendController) -> int:
    if command == "clean":
        try:
            controller.run_clean()
        except NoPagesFoundError as e:
            logger.error(str(e))
            return EXIT_NO_PAGES
        return EXIT_OK

    if command == "prune":
        controller.run_prune()
        return EXIT_OK

    broken = controller.run_verify()
    return EXIT_BROKEN_LINKS if broken else EXIT_OK


def log_error_summary(controller: WaymendController) -> None:
    summary = controller.error_tracker.get_error_summary()
    if not summary['total_errors'] and not summary['total_warnings']:
        return
    logger.warning(f"Finished with {summary['total_errors']} errors and {summary['total_warnings']} warnings.")
    for path in summary['failed_paths']:
        logger.warning(f" - failed: {path}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    initialize_logging(args.log_dir, logging.DEBUG if args.verbose else logging.INFO)

    controller = WaymendController(config_from_args(args))
    if not controller.files.exists():
        logger.error(f"Mirror root is not a directory: {args.root}")
        return EXIT_BAD_ROOT

    try:
        return run_command(args.command, controller)
    finally:
        log_error_summary(controller)


if __name__ == "__main__":
    sys.exit(main())
