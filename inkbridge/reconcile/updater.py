"""
Transcript updater for Inkbridge.

This module runs reconciliation passes: for one page it sends the strokes that
were never recognized to the recognition service, loads the page's transcript
blocks, matches the two and applies the resulting actions.

Pages are processed one at a time and, within a page, actions run strictly in
sequence. Only one pass may be active per page; passes on the same page are
serialized with a per-page lock.
"""

import asyncio
import duckdb
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import InkbridgeError
from ..geometry import assign_strokes_to_lines
from ..ledger import StrokeLedger
from ..logseq import LogseqClient
from ..models import PageKey, PassResult, PassState, PassSummary, Stroke, TranscriptBlock
from ..recognition import MyScriptClient
from ..stroke_filter import filter_decorative_strokes
from .adapter import PersistenceAdapter
from .matcher import BlockMatcher


class TranscriptUpdater:
    """
    Orchestrates reconciliation passes over pages.
    """

    def __init__(self, logseq: LogseqClient, recognizer: MyScriptClient, ledger: StrokeLedger,
                 matcher: Optional[BlockMatcher] = None):
        """
        Initialize the updater.

        Args:
            logseq: Client for the note database
            recognizer: Client for the recognition service
            ledger: Stroke ledger (already connected and initialized)
            matcher: Block matcher to use (defaults to a standard BlockMatcher)
        """
        self.logseq = logseq
        self.recognizer = recognizer
        self.ledger = ledger
        self.matcher = matcher or BlockMatcher()
        self._locks: Dict[PageKey, asyncio.Lock] = {}

    def _lock_for(self, page: PageKey) -> asyncio.Lock:
        if page not in self._locks:
            self._locks[page] = asyncio.Lock()
        return self._locks[page]

    async def plan_page(self, page: PageKey) -> PassResult:
        """
        Run a pass up to MATCHING without writing anything.

        Returns:
            The pass result with the planned actions; state is MATCHING on success
        """
        async with self._lock_for(page):
            result, _ = await self._prepare(page)
            return result

    async def reconcile_page(self, page: PageKey) -> PassResult:
        """
        Run one complete reconciliation pass over a page.

        Args:
            page: The page to reconcile

        Returns:
            The pass result; state is DONE on success and FAILED when recognition
            or loading failed (individual action failures don't fail the pass)
        """
        async with self._lock_for(page):
            result, blocks = await self._prepare(page)
            if result.state != PassState.MATCHING:
                return result

            result.state = PassState.APPLYING
            geometry_missing = result.summary.geometry_missing
            adapter = PersistenceAdapter(self.logseq, self.ledger, page, blocks)
            result.summary = await adapter.apply(result.actions)
            result.summary.geometry_missing = geometry_missing

            result.state = PassState.DONE
            return result

    def _pending_text_strokes(self, page: PageKey) -> List[Stroke]:
        """
        Unrecognized strokes of a page, minus boxes, underlines and circles.

        Decorations are detected against every stroke of the page, so a box
        drawn around text recognized in an earlier pass is still found.
        """
        pending = self.ledger.get_unrecognized_strokes(page)
        if not pending:
            return pending
        decorative = filter_decorative_strokes(self.ledger.get_page_strokes(page)).decorative
        return [stroke for stroke in pending if stroke.stroke_id not in decorative]

    async def _prepare(self, page: PageKey) -> Tuple[PassResult, List[TranscriptBlock]]:
        result = PassResult(page=page)

        try:
            pending = self._pending_text_strokes(page)
        except duckdb.Error as e:
            logging.error(f"Page {page}: could not read strokes from the ledger: {e}")
            result.error = f"Ledger read failed: {e}"
            result.state = PassState.FAILED
            return result, []

        if not pending:
            logging.info(f"Page {page}: no unrecognized strokes")
            result.state = PassState.DONE
            return result, []

        try:
            result.state = PassState.RECOGNIZING
            logging.info(f"Page {page}: recognizing {len(pending)} strokes")
            lines = await self.recognizer.recognize(pending)
            assign_strokes_to_lines(lines, pending)

            result.state = PassState.LOADING
            blocks = await self.logseq.get_transcript_blocks(page.name)
            logging.info(f"Page {page}: found {len(blocks)} existing transcript blocks")

        except InkbridgeError as e:
            logging.error(f"Page {page}: pass failed while {result.state.value}: {e}")
            result.error = str(e)
            result.state = PassState.FAILED
            return result, []

        result.state = PassState.MATCHING
        result.actions = self.matcher.detect_actions(blocks, lines)
        result.summary = PassSummary(
            geometry_missing=sum(1 for line in lines if line.y_bounds is None)
        )
        return result, blocks

    async def reconcile_pages(self, pages: Iterable[PageKey]) -> List[PassResult]:
        """
        Reconcile several pages one after another.

        A failing page is reported and does not stop the remaining pages.
        """
        results = []
        for page in pages:
            result = await self.reconcile_page(page)
            if result.state == PassState.FAILED:
                logging.warning(f"Page {page} failed: {result.error}")
            results.append(result)
        return results
