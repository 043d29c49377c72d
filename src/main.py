# src/main.py — v3
"""CLI entry point: generate, cache commands.

Usage:
    rfgbuild generate [--src FILE] [--dest DIR] [--html FILE ...] [options]
    rfgbuild cache clear
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rfgbuild.version import __version__

if TYPE_CHECKING:
    from rfgbuild.config.options import PluginOptions
    from rfgbuild.config.settings import Settings
    from rfgbuild.core.models import GenerationResult
    from rfgbuild.tracking.progress import ProgressEvent

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _setup_logging(args.verbose)
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="rfgbuild",
        description=f"rfgbuild v{__version__}: favicon bundles from RealFaviconGenerator",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- generate ---
    p_generate = subparsers.add_parser(
        "generate", help="Generate favicons and patch HTML files",
    )
    p_generate.add_argument(
        "--src", action="append", default=None,
        help="Source image path, glob or URL (repeatable; default: favicon auto-detection)",
    )
    p_generate.add_argument(
        "-o", "--dest", type=Path, default=Path("favicons"),
        help="Destination directory (default: ./favicons)",
    )
    p_generate.add_argument(
        "--html", action="append", type=Path, default=[],
        help="HTML file to inject markup into (repeatable)",
    )
    p_generate.add_argument(
        "-c", "--config", type=Path, default=None,
        help="JSON configuration file, merged after discovered ones",
    )
    p_generate.add_argument(
        "--no-cache", action="store_true",
        help="Always call the remote service and skip the cache",
    )
    p_generate.add_argument(
        "--cache-ttl", type=float, default=None,
        help="Refresh cached responses older than this many seconds",
    )
    p_generate.add_argument(
        "--keep", action="append", default=None,
        help="Selector of existing head elements to preserve (repeatable)",
    )
    p_generate.add_argument(
        "--debug", action="store_true",
        help="Include request and response in remote error messages",
    )
    p_generate.add_argument(
        "-w", "--watch", action="store_true",
        help="Keep running and regenerate when the source changes",
    )
    p_generate.set_defaults(func=_cmd_generate)

    # --- cache ---
    p_cache = subparsers.add_parser("cache", help="Manage the response cache")
    cache_sub = p_cache.add_subparsers(dest="cache_command")
    p_clear = cache_sub.add_parser("clear", help="Remove every cached response")
    p_clear.set_defaults(func=_cmd_cache_clear)

    return parser


def _build_options(args: argparse.Namespace) -> tuple[PluginOptions, list[dict[str, Any]]]:
    """PluginOptions and extra config sources from parsed arguments."""
    from rfgbuild.config.discovery import read_config_file
    from rfgbuild.config.options import PluginOptions

    extra_sources: list[dict[str, Any]] = []
    if args.config is not None:
        extra_sources.append(read_config_file(args.config))

    cache: bool | float = True
    if args.no_cache:
        cache = False
    elif args.cache_ttl is not None:
        cache = args.cache_ttl

    fields: dict[str, Any] = {
        "cache": cache,
        "debug": args.debug,
        "dest": args.dest,
        "html_files": args.html,
        "keep": args.keep,
        "watch": args.watch,
    }
    if args.src:
        fields["src"] = args.src
    return PluginOptions(**fields), extra_sources


async def _cmd_generate(args: argparse.Namespace, settings: Settings) -> int:
    """Run the generation pipeline once, then optionally watch."""
    from rfgbuild.pipeline.orchestrator import FaviconGenerator

    options, extra_sources = _build_options(args)

    async with FaviconGenerator(
        options, settings, observer=_print_progress, extra_sources=extra_sources,
    ) as generator:
        result = await generator.run()
        if result is not None:
            _print_result_summary(result)
        if not args.watch:
            return 1 if result is not None and result.failed_files else 0

        if not await generator.watch():
            logger.error("Unable to watch the favicon source")
            return 1
        try:
            while True:
                await asyncio.sleep(3600)
        finally:
            await generator.stop_watching()


async def _cmd_cache_clear(args: argparse.Namespace, settings: Settings) -> int:
    """Remove every cached response."""
    from rfgbuild.cache.cache_factory import create_cache_store

    store = create_cache_store(settings)
    removed = await store.clear()
    print(f"Removed {removed} cached response(s) from {store.root}")
    return 0


def _print_progress(event: ProgressEvent) -> None:
    if event.state == "error":
        return
    print(f"[rfgbuild] {event.inline}", file=sys.stderr)


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024 or unit == "MB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def _print_result_summary(result: GenerationResult) -> None:
    """Print a human-readable summary of a GenerationResult."""
    from rfgbuild.core.util import relative_path

    print("\nFavicons generated:")
    print(f"  Destination:  {relative_path(result.destination)}")
    if result.preview_file is not None:
        print(f"  Preview:      {relative_path(result.preview_file)}")
    print(f"  Cache:        {'hit' if result.cache_hit else 'miss'} ({result.fingerprint[:12]})")
    if result.assets:
        width = max(len(relative_path(a.path)) for a in result.assets)
        print()
        for asset in result.assets:
            print(f"  {relative_path(asset.path):<{width}}  {_format_size(asset.size):>10}")
    for failed in result.failed_files:
        print(f"  Skipped:      {relative_path(Path(failed))}")


def _setup_logging(verbose: bool) -> Settings:
    """Configure logging from settings; -v forces DEBUG."""
    from rfgbuild.config.settings import load_settings
    from rfgbuild.logging.logger import setup_logging

    settings = load_settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    return settings


if __name__ == "__main__":
    sys.exit(main())
