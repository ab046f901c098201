"""
Persistence adapter for Inkbridge.

This module executes the matcher's actions against Logseq, one action at a
time, and records stroke-to-block assignments in the ledger only after a
write has been confirmed.
"""

import duckdb
import logging
from typing import Dict, List, Optional, Tuple

from ..canonical import property_lines, render_display_text
from ..errors import InkbridgeError, NoteDatabaseError, OrderingViolation, PersistenceFailure
from ..ledger import StrokeLedger
from ..logseq import LogseqClient
from ..models import (
    ActionFailure,
    ActionType,
    BlockProperties,
    PageKey,
    PassSummary,
    ReconciliationAction,
    RecognizedLine,
    TranscriptBlock,
    YBounds,
)
from ..models.transcript import CANONICAL_PROPERTY, MERGED_LINES_PROPERTY, Y_BOUNDS_PROPERTY


class PersistenceAdapter:
    """
    Applies reconciliation actions for a single page.

    A failed action is recorded and the remaining actions still run; nothing
    is retried within the pass. Strokes behind a failed action stay unassigned
    and are therefore recognized again on the next pass.
    """

    def __init__(self, client: LogseqClient, ledger: StrokeLedger, page: PageKey,
                 existing_blocks: Optional[List[TranscriptBlock]] = None):
        """
        Initialize the adapter.

        Args:
            client: Logseq API client
            ledger: Stroke ledger receiving assignments
            page: Page the actions belong to
            existing_blocks: Blocks loaded at the start of the pass, used to keep
                new blocks in page order
        """
        self.client = client
        self.ledger = ledger
        self.page = page
        self.section_uuid: Optional[str] = None
        self._section_failed = False
        # (bounds, uuid) of every block directly under the transcript section
        self._placed: List[Tuple[YBounds, str]] = [
            (block.properties.y_bounds, block.uuid)
            for block in existing_blocks or []
            if block.properties.y_bounds is not None and block.depth == 0
        ]
        # Lines of the pass, and the block each one ended up in
        self._lines: List[RecognizedLine] = []
        self._line_blocks: Dict[int, str] = {}

    async def apply(self, actions: List[ReconciliationAction]) -> PassSummary:
        """
        Execute actions sequentially.

        Args:
            actions: Actions computed by the block matcher for this page

        Returns:
            Counts of created, updated, skipped, conflicting and failed actions
        """
        summary = PassSummary()
        self._lines = [line for action in actions for line in action.lines]

        for action in actions:
            if action.conflict:
                summary.conflicts += 1

            try:
                block_uuid = await self._execute(action)
            except InkbridgeError as e:
                self._record_failure(summary, action, e)
                continue

            if action.action_type == ActionType.CREATE:
                summary.created += 1
            elif action.writes:
                summary.updated += 1
            else:
                summary.skipped += 1

            for line in action.lines:
                self._line_blocks[id(line)] = block_uuid

            try:
                self.ledger.assign(action.stroke_ids, block_uuid)
            except duckdb.Error as e:
                logging.error(f"Failed to record strokes for block {block_uuid}: {e}")
                self._record_failure(summary, action, e, block_uuid)

        logging.info(
            f"Page {self.page}: {summary.created} created, {summary.updated} updated, "
            f"{summary.skipped} skipped, {summary.conflicts} conflicts, {summary.errors} errors"
        )
        return summary

    async def _execute(self, action: ReconciliationAction) -> str:
        """Run one action and return the UUID of the block it concerns."""
        if action.action_type == ActionType.CREATE:
            return await self.create_block(action)
        if action.block is None:
            raise PersistenceFailure(f"{action.action_type.name} action has no target block")
        if action.writes:
            await self.update_block(action)
        return action.block.uuid

    def _record_failure(self, summary: PassSummary, action: ReconciliationAction,
                        error: Exception, block_uuid: Optional[str] = None):
        summary.errors += 1
        summary.failures.append(ActionFailure(
            action_type=action.action_type,
            block_uuid=block_uuid or (action.block.uuid if action.block else None),
            stroke_ids=action.stroke_ids,
            error=str(error),
        ))
        logging.error(f"{action.action_type.name} failed on page {self.page}: {error}")

    async def ensure_section(self) -> str:
        """
        Make sure the transcript section exists before any child is created.

        The section is attempted once per pass. After a failure every CREATE in
        the same pass fails with OrderingViolation.
        """
        if self.section_uuid:
            return self.section_uuid
        if self._section_failed:
            raise OrderingViolation(
                f"Transcript section on {self.page.name} is missing; not creating child blocks"
            )

        try:
            await self.client.get_or_create_page(
                self.page.name, {"book": str(self.page.book), "page": str(self.page.page)}
            )
            self.section_uuid = await self.client.get_or_create_transcript_section(self.page.name)
        except NoteDatabaseError as e:
            self._section_failed = True
            raise OrderingViolation(
                f"Could not create transcript section on {self.page.name}: {e}"
            ) from e
        return self.section_uuid

    def _next_block_below(self, bounds: YBounds) -> Optional[str]:
        below = [(b.min_y, uuid) for b, uuid in self._placed if b.min_y > bounds.max_y]
        return min(below)[1] if below else None

    def _parent_block(self, action: ReconciliationAction) -> Optional[str]:
        """
        Block an indented new line belongs under.

        The parent is the block of the nearest line above with a smaller indent.
        Lines above are handled first, so that block already exists unless its
        own action failed.
        """
        if len(action.lines) != 1:
            return None
        line = action.lines[0]
        if line.indent_level <= 0 or line.y_bounds is None:
            return None

        above = [
            other for other in self._lines
            if other.y_bounds is not None
            and other.y_bounds.min_y < line.y_bounds.min_y
            and other.indent_level < line.indent_level
        ]
        if not above:
            return None
        nearest = max(above, key=lambda other: other.y_bounds.min_y)
        return self._line_blocks.get(id(nearest))

    async def create_block(self, action: ReconciliationAction) -> str:
        """
        Insert a new transcript block in page order.

        An indented line is appended as the last child of its parent line's
        block; other lines go directly under the transcript section, above the
        first block that lies below them.

        Returns:
            UUID of the created block
        """
        section_uuid = await self.ensure_section()
        content = render_display_text(action.text)
        properties = action.properties.to_logseq()

        parent = self._parent_block(action)
        below = self._next_block_below(action.y_bounds) if action.y_bounds else None
        try:
            if parent:
                block = await self.client.insert_block(
                    parent, content, sibling=False, properties=properties
                )
            elif below:
                block = await self.client.insert_block(
                    below, content, sibling=True, before=True, properties=properties
                )
            else:
                block = await self.client.insert_block(
                    section_uuid, content, sibling=False, properties=properties
                )
        except NoteDatabaseError as e:
            raise PersistenceFailure(f"Could not create block for {action.canonical!r}: {e}") from e

        uuid = block["uuid"]
        if parent:
            logging.info(f"Created block {uuid} under {parent}: {content!r}")
            return uuid
        if action.y_bounds is not None:
            self._placed.append((action.y_bounds, uuid))
        logging.info(f"Created block {uuid}: {content!r}")
        return uuid

    async def update_block(self, action: ReconciliationAction):
        """
        Rewrite a block's text and engine properties.

        The text is written first, then canonical text, Y-bounds and merged line
        count, in that order. The block's children and the user's own properties
        are never touched. If a later write fails the block is left partially
        updated; the next pass detects the canonical mismatch and repairs it.
        """
        block = action.block
        content = render_display_text(action.text, previous=block.content)
        # Stored property lines go back unchanged; the upserts below replace the
        # engine's own values, so a failed upsert leaves the old ones in place.
        kept = property_lines(block.raw_content)
        if kept:
            content = "\n".join([content] + kept)

        properties: BlockProperties = action.properties
        try:
            await self.client.update_block(block.uuid, content)
            await self.client.upsert_block_property(block.uuid, CANONICAL_PROPERTY, properties.canonical)
            if properties.y_bounds is not None:
                await self.client.upsert_block_property(
                    block.uuid, Y_BOUNDS_PROPERTY, properties.y_bounds.to_property()
                )
            await self.client.upsert_block_property(
                block.uuid, MERGED_LINES_PROPERTY, str(properties.merged_lines)
            )
        except NoteDatabaseError as e:
            raise PersistenceFailure(f"Could not update block {block.uuid}: {e}") from e

        logging.info(f"Updated block {block.uuid}: {content.splitlines()[0]!r}")
