# src/main.py — v2
"""CLI entry point — process, retry, list, show, delete, clear-cache.

Usage:
    newsweaver process [URL ...]
    newsweaver retry
    newsweaver list [--page N] [--page-size N]
    newsweaver show <id>
    newsweaver delete <id>
    newsweaver clear-cache
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from newsweaver.api.models import DEFAULT_PAGE_SIZE
from newsweaver.config.settings import Settings
from newsweaver.core.errors import ItemNotFoundError
from newsweaver.logging.logger import setup_logging
from newsweaver.version import __version__

if TYPE_CHECKING:
    from newsweaver.api.facade import NewsService

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = Settings()
        _setup_logging(settings, args.verbose)
        return asyncio.run(_dispatch(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="newsweaver",
        description=f"newsweaver v{__version__} — feed ingestion and enrichment pipeline",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    p_process = subparsers.add_parser(
        "process", help="Fetch, enrich and store items from feeds",
    )
    p_process.add_argument(
        "urls", nargs="*", metavar="URL",
        help="Feed URLs (default: FEED_URLS)",
    )
    p_process.set_defaults(func=_cmd_process)

    p_retry = subparsers.add_parser(
        "retry", help="Run one retry cycle over queued items",
    )
    p_retry.set_defaults(func=_cmd_retry)

    p_list = subparsers.add_parser("list", help="List stored items, newest first")
    p_list.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    p_list.add_argument(
        "--page-size", type=int, default=DEFAULT_PAGE_SIZE,
        help=f"Items per page, 1-100 (default: {DEFAULT_PAGE_SIZE})",
    )
    p_list.set_defaults(func=_cmd_list)

    p_show = subparsers.add_parser("show", help="Print one stored item")
    p_show.add_argument("item_id", help="Item ID")
    p_show.set_defaults(func=_cmd_show)

    p_delete = subparsers.add_parser("delete", help="Delete one stored item")
    p_delete.add_argument("item_id", help="Item ID")
    p_delete.set_defaults(func=_cmd_delete)

    p_clear = subparsers.add_parser(
        "clear-cache", help="Forget every processed fingerprint",
    )
    p_clear.set_defaults(func=_cmd_clear_cache)

    return parser


async def _dispatch(args: argparse.Namespace, settings: Settings) -> int:
    from newsweaver.api.facade import NewsService

    async with await NewsService.from_settings(settings) as service:
        return await args.func(service, args)


async def _cmd_process(service: NewsService, args: argparse.Namespace) -> int:
    outcome = await service.process(args.urls or None)
    print(outcome.model_dump_json(indent=2))
    return 0


async def _cmd_retry(service: NewsService, args: argparse.Namespace) -> int:
    outcome = await service.run_retry_cycle()
    print(outcome.model_dump_json(indent=2))
    return 0


async def _cmd_list(service: NewsService, args: argparse.Namespace) -> int:
    page = await service.list_items(page=args.page, page_size=args.page_size)
    print(f"Page {page.page} ({len(page.items)} of {page.total} item(s)):")
    for item in page.items:
        created = item.created_at.isoformat() if item.created_at else "-"
        flag = " [fallback]" if item.fallback else ""
        print(f"  {item.id}  {created}  {item.seo_title}{flag}")
    return 0


async def _cmd_show(service: NewsService, args: argparse.Namespace) -> int:
    try:
        item = await service.get_item(args.item_id)
    except ItemNotFoundError as e:
        logger.error("%s", e)
        return 1
    print(item.model_dump_json(indent=2))
    return 0


async def _cmd_delete(service: NewsService, args: argparse.Namespace) -> int:
    try:
        await service.delete_item(args.item_id)
    except ItemNotFoundError as e:
        logger.error("%s", e)
        return 1
    print(f"Deleted {args.item_id}")
    return 0


async def _cmd_clear_cache(service: NewsService, args: argparse.Namespace) -> int:
    await service.clear_cache()
    print("Fingerprint cache cleared")
    return 0


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage (stderr, so stdout stays parseable)."""
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
        stream=sys.stderr,
    )


if __name__ == "__main__":
    sys.exit(main())
