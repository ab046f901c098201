"""
Block matcher for Inkbridge.

Given the transcript blocks already on a page and a fresh batch of recognized
lines, this module decides for every block and line whether to create,
update, preserve or flag it. Matching is purely spatial: a line belongs to a
block when their Y-bounds overlap.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from ..canonical import canonicalize
from ..geometry import bounds_overlap, closest_by_midpoint, midpoint_distance, union_bounds
from ..models import (
    ActionType,
    ReconciliationAction,
    RecognizedLine,
    TranscriptBlock,
)

# Allowed difference between a block's merged line count and the number of
# lines that overlap it before the decision is flagged as a conflict
MERGE_COUNT_TOLERANCE = 1


class BlockMatcher:
    """
    Computes the actions that bring a page's transcript blocks in line with a
    new recognition result.

    Blocks whose canonical text is unchanged are preserved exactly, which is
    what keeps user edits layered on top of recognized text (task state, tags,
    typo fixes) alive across re-recognition.
    """

    def __init__(self, merge_tolerance: int = MERGE_COUNT_TOLERANCE):
        self.merge_tolerance = merge_tolerance

    def detect_actions(self, blocks: Sequence[TranscriptBlock],
                       lines: Sequence[RecognizedLine]) -> List[ReconciliationAction]:
        """
        Match fresh lines against existing blocks.

        Args:
            blocks: Every transcript block currently on the page
            lines: Lines recognized from strokes that were never recognized before

        Returns:
            Actions for touched blocks in page order, followed by CREATE actions
            for lines that overlap no block
        """
        located = []
        for line in lines:
            if line.y_bounds is None:
                logging.warning(
                    f"GeometryMissing: skipping line {line.text!r} without word boxes; "
                    f"its {len(line.stroke_ids)} strokes stay unassigned"
                )
                continue
            located.append(line)

        candidates = []
        for block in blocks:
            if block.properties.y_bounds is None:
                logging.warning(f"Block {block.uuid} has no readable Y-bounds; it cannot be matched")
                continue
            candidates.append(block)
        candidates.sort(key=lambda b: (b.properties.y_bounds.min_y, b.uuid))

        assigned, unclaimed, ties = self._assign_lines(candidates, located)

        actions = []
        for block in candidates:
            overlapping = sorted(assigned[block.uuid], key=lambda line: line.y_bounds.min_y)
            if not overlapping:
                continue
            actions.append(self._match_block(block, overlapping, ties.get(block.uuid, [])))

        for line in sorted(unclaimed, key=lambda line: line.y_bounds.min_y):
            logging.info(f"CREATE: new line {line.canonical!r} at {line.y_bounds.to_property()}")
            actions.append(ReconciliationAction(
                action_type=ActionType.CREATE,
                lines=[line],
                text=line.text,
                canonical=line.canonical,
                y_bounds=line.y_bounds,
                merged_lines=line.merged_line_count,
            ))

        return actions

    def _assign_lines(self, blocks: Sequence[TranscriptBlock], lines: Sequence[RecognizedLine]
                      ) -> Tuple[Dict[str, List[RecognizedLine]], List[RecognizedLine], Dict[str, List[str]]]:
        """
        Give every line to at most one block.

        A line overlapping several blocks goes to the one with the closest
        Y-bounds midpoint. An exact tie goes to the higher block and is
        reported so the decision can be flagged.

        Returns:
            Lines per block UUID, lines overlapping no block, and tie notes per block UUID
        """
        assigned: Dict[str, List[RecognizedLine]] = {block.uuid: [] for block in blocks}
        unclaimed: List[RecognizedLine] = []
        ties: Dict[str, List[str]] = {}

        for line in lines:
            overlapping = [b for b in blocks if bounds_overlap(b.properties.y_bounds, line.y_bounds)]
            if not overlapping:
                unclaimed.append(line)
                continue

            index = closest_by_midpoint(line.y_bounds, [b.properties.y_bounds for b in overlapping])
            owner = overlapping[index]
            assigned[owner.uuid].append(line)

            if len(overlapping) > 1:
                best = midpoint_distance(line.y_bounds, owner.properties.y_bounds)
                rivals = [
                    b.uuid for b in overlapping
                    if b.uuid != owner.uuid
                    and midpoint_distance(line.y_bounds, b.properties.y_bounds) == best
                ]
                if rivals:
                    note = f"line {line.canonical!r} is equally close to blocks {owner.uuid} and {', '.join(rivals)}"
                    logging.warning(f"CONFLICT: {note}; assigned to {owner.uuid}")
                    ties.setdefault(owner.uuid, []).append(note)

        return assigned, unclaimed, ties

    def _match_block(self, block: TranscriptBlock, overlapping: List[RecognizedLine],
                     tie_notes: List[str]) -> ReconciliationAction:
        merged_lines = block.properties.merged_lines

        if merged_lines == 1 and len(overlapping) == 1:
            candidate = overlapping[0].canonical
        else:
            # Merge-aware combination: a block spanning several lines is compared as a unit
            candidate = " ".join(line.canonical for line in overlapping)
        canonical = canonicalize(candidate)

        notes = list(tie_notes)
        if abs(len(overlapping) - merged_lines) > self.merge_tolerance:
            mismatch = (
                f"block {block.uuid} expected {merged_lines} merged lines, "
                f"found {len(overlapping)} overlapping lines"
            )
            logging.warning(f"CONFLICT: {mismatch}")
            notes.append(mismatch)
        conflict = "; ".join(notes) if notes else None

        if canonical == canonicalize(block.properties.canonical):
            if merged_lines == 1 and len(overlapping) == 1:
                action_type = ActionType.SKIP
            else:
                action_type = ActionType.MERGE_PRESERVE
            logging.debug(f"{action_type.name}: block {block.uuid} canonical unchanged")
            return ReconciliationAction(
                action_type=action_type,
                lines=overlapping,
                block=block,
                text=block.content,
                canonical=block.properties.canonical,
                y_bounds=block.properties.y_bounds,
                merged_lines=merged_lines,
                conflict=conflict,
            )

        action_type = ActionType.CONFLICT if conflict else ActionType.UPDATE
        y_bounds = union_bounds(line.y_bounds for line in overlapping)
        logging.info(
            f"{action_type.name}: block {block.uuid} canonical "
            f"{block.properties.canonical!r} -> {canonical!r} ({len(overlapping)} lines)"
        )
        return ReconciliationAction(
            action_type=action_type,
            lines=overlapping,
            block=block,
            text=" ".join(line.text for line in overlapping),
            canonical=canonical,
            y_bounds=y_bounds,
            merged_lines=len(overlapping),
            conflict=conflict,
        )
