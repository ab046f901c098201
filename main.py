#!/usr/bin/env python3
"""
Inkbridge - Handwritten notes to Logseq

Main entry point for the Inkbridge system. This orchestrator imports pen
strokes into the ledger and runs reconciliation passes that keep each page's
Logseq transcript in step with its handwriting.
"""

import asyncio
import logging
import sys
import argparse
from pathlib import Path
from typing import List, Optional, Tuple

from inkbridge.config import config
from inkbridge.errors import NoteDatabaseError
from inkbridge.importers import JsonPageImporter
from inkbridge.ledger import StrokeLedger
from inkbridge.logseq import LogseqClient
from inkbridge.models import PageKey, PassResult, PassState
from inkbridge.recognition import MyScriptClient
from inkbridge.reconcile import TranscriptUpdater


def setup_logging():
    """Configure logging for the application."""
    level = getattr(logging, config.get("logging.level", "INFO").upper())
    format_str = config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file = config.log_filename

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def import_strokes(ledger: StrokeLedger, sources: List[str]) -> int:
    """
    Import stroke documents into the ledger.

    Args:
        ledger: Connected stroke ledger
        sources: Files or directories of page storage documents

    Returns:
        Number of strokes that were new to the ledger
    """
    imported = 0
    for source in sources:
        importer = JsonPageImporter(source)
        added = ledger.add_strokes(importer.get_all_strokes())
        logging.info(f"Imported {added} new strokes from {source}")
        imported += added
    return imported


def select_pages(ledger: StrokeLedger, book: Optional[int], page: Optional[int]) -> List[PageKey]:
    """
    Choose the pages to reconcile.

    Args:
        ledger: Connected stroke ledger
        book: Restrict to this notebook, if given
        page: Restrict to this page number, if given

    Returns:
        Pages with strokes matching the filters
    """
    pages = ledger.list_pages()
    if book is not None:
        pages = [p for p in pages if p.book == book]
    if page is not None:
        pages = [p for p in pages if p.page == page]
    return pages


def format_result(result: PassResult) -> str:
    """Render one page's outcome as a single summary line."""
    if result.state == PassState.FAILED:
        return f"❌ {result.page.name}: failed ({result.error})"

    summary = result.summary
    line = (
        f"{result.page.name}: {summary.created} created, {summary.updated} updated, "
        f"{summary.skipped} skipped, {summary.conflicts} conflicts, {summary.errors} errors"
    )
    if summary.geometry_missing:
        line += f", {summary.geometry_missing} lines without geometry"
    return ("⚠️  " if summary.errors else "✅ ") + line


def format_plan(result: PassResult) -> List[str]:
    """Render the planned actions of a dry run."""
    if result.state == PassState.FAILED:
        return [f"❌ {result.page.name}: failed ({result.error})"]

    lines = [f"{result.page.name}: {len(result.actions)} planned actions"]
    for action in result.actions:
        target = action.block.uuid if action.block else "new block"
        bounds = action.y_bounds.to_property() if action.y_bounds else "?"
        lines.append(f"  {action.action_type.name:<15} {target:<36} [{bounds}] {action.canonical}")
        if action.conflict:
            lines.append(f"  {'':<15} conflict: {action.conflict}")
    return lines


async def run_pipeline(pages: List[PageKey], ledger: StrokeLedger, dry_run: bool = False) -> List[PassResult]:
    """
    Run reconciliation (or planning) for each page in turn.

    Args:
        pages: Pages to process
        ledger: Connected stroke ledger
        dry_run: Only compute actions, write nothing

    Returns:
        One result per page
    """
    async with LogseqClient() as logseq, MyScriptClient() as recognizer:
        updater = TranscriptUpdater(logseq, recognizer, ledger)

        if not dry_run:
            return await updater.reconcile_pages(pages)

        results = []
        for page in pages:
            results.append(await updater.plan_page(page))
        return results


async def check_services(logseq: LogseqClient, recognizer: MyScriptClient) -> Tuple[bool, List[str]]:
    """
    Check that Logseq is reachable and MyScript accepts the configured keys.

    Returns:
        Whether both services are usable, and one report line per service
    """
    report = []

    try:
        graph = await logseq.test_connection()
    except NoteDatabaseError as e:
        logging.error(f"Logseq check failed: {e}")
        graph = None
        report.append(f"❌ Logseq: {e}")
    else:
        if graph:
            report.append(f"✅ Logseq: graph {graph.get('name')!r} at {logseq.host}")
        else:
            report.append(f"❌ Logseq: no graph is open at {logseq.host}")

    credentials_ok = await recognizer.test_credentials()
    if credentials_ok:
        report.append(f"✅ MyScript: credentials accepted by {recognizer.api_url}")
    else:
        report.append(f"❌ MyScript: credentials rejected or service unreachable ({recognizer.api_url})")

    return bool(graph) and credentials_ok, report


async def run_checks() -> bool:
    async with LogseqClient() as logseq, MyScriptClient() as recognizer:
        ok, report = await check_services(logseq, recognizer)
    print("\n".join(report))
    return ok


def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Inkbridge - Handwritten notes to Logseq",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                   # Reconcile every page with new strokes
  python main.py --import exports/                 # Import page documents, then reconcile
  python main.py --book 3017 --page 42 --dry-run   # Show what would change on one page
  python main.py --book 3017 --page 42 --reset     # Forget block links and re-recognize the page
  python main.py --check                           # Verify Logseq and MyScript are reachable
        """
    )

    parser.add_argument(
        "--import",
        dest="imports",
        action="append",
        default=[],
        metavar="PATH",
        help="Page storage document or directory of documents to import (repeatable)"
    )

    parser.add_argument(
        "--book",
        type=int,
        help="Only process pages of this notebook"
    )

    parser.add_argument(
        "--page",
        type=int,
        help="Only process this page number"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show planned actions without writing to Logseq"
    )

    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear stroke-to-block links for the selected pages before reconciling"
    )

    parser.add_argument(
        "--check",
        action="store_true",
        help="Check the Logseq connection and MyScript credentials, then exit"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to the configuration file (default: config.yaml)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="Inkbridge 0.1.0"
    )

    return parser.parse_args()


def main():
    """Main entry point."""
    args = parse_arguments()

    if args.config:
        config.config_path = Path(args.config)
        config.reload()

    setup_logging()
    logging.info("Inkbridge - Handwritten notes to Logseq")

    if args.check:
        if not asyncio.run(run_checks()):
            sys.exit(1)
        return

    try:
        with StrokeLedger(config.ledger_filename) as ledger:
            ledger.initialize_database()

            if args.imports:
                imported = import_strokes(ledger, args.imports)
                print(f"Imported {imported} new strokes")

            pages = select_pages(ledger, args.book, args.page)
            if not pages:
                print("No pages with strokes found.")
                return

            if args.reset:
                for page in pages:
                    ledger.reset_page(page)

            results = asyncio.run(run_pipeline(pages, ledger, dry_run=args.dry_run))

            print("\n" + "=" * 60)
            for result in results:
                if args.dry_run:
                    print("\n".join(format_plan(result)))
                else:
                    print(format_result(result))
            print("=" * 60)

            if any(r.state == PassState.FAILED for r in results):
                sys.exit(1)

    except KeyboardInterrupt:
        logging.info("Pipeline interrupted by user")
        print("\nPipeline interrupted.")


if __name__ == "__main__":
    main()
