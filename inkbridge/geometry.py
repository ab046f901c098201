"""
Geometry helpers for Inkbridge.

Vertical extents ("Y-bounds") are the only key used to match recognition
output against persisted blocks. Recognition may return lines in a different
order or a different number of lines between runs, so matching is spatial
rather than by line index.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from .errors import GeometryMissing
from .models.strokes import Stroke, StrokeSample
from .models.transcript import RecognizedLine, WordBox, YBounds


def line_bounds(words: Sequence[WordBox]) -> YBounds:
    """
    Compute the vertical extent of a recognized line from its word boxes.

    Args:
        words: Word bounding boxes attached to the line

    Returns:
        The smallest top edge and largest bottom edge across all words

    Raises:
        GeometryMissing: If the line has no words
    """
    if not words:
        raise GeometryMissing("Recognized line has no word boxes")

    min_y = min(word.y for word in words)
    max_y = max(word.y + max(word.height, 0.0) for word in words)
    return YBounds(min_y=min_y, max_y=max_y)


def stroke_bounds(samples: Sequence[StrokeSample]) -> YBounds:
    """
    Compute the vertical extent of a stroke from its coordinate samples.

    A single-sample stroke yields a degenerate range (min_y == max_y).

    Raises:
        GeometryMissing: If the stroke has no samples
    """
    if not samples:
        raise GeometryMissing("Stroke has no samples")

    ys = [sample.y for sample in samples]
    return YBounds(min_y=min(ys), max_y=max(ys))


def bounds_overlap(a: YBounds, b: YBounds) -> bool:
    """Two ranges overlap iff a.min <= b.max and b.min <= a.max (touching counts)."""
    return a.min_y <= b.max_y and b.min_y <= a.max_y


def union_bounds(bounds: Iterable[YBounds]) -> YBounds:
    """Smallest range covering every given range."""
    bounds = list(bounds)
    if not bounds:
        raise GeometryMissing("Cannot take the union of zero ranges")
    return YBounds(
        min_y=min(b.min_y for b in bounds),
        max_y=max(b.max_y for b in bounds),
    )


def midpoint_distance(a: YBounds, b: YBounds) -> float:
    return abs(a.midpoint - b.midpoint)


def closest_by_midpoint(target: YBounds, candidates: Sequence[YBounds]) -> Optional[int]:
    """
    Index of the candidate whose midpoint is closest to the target's.

    Ties go to the candidate that sits higher on the page.

    Returns:
        The index into ``candidates``, or None if there are none
    """
    if not candidates:
        return None
    return min(
        range(len(candidates)),
        key=lambda i: (midpoint_distance(target, candidates[i]), candidates[i].min_y),
    )


def assign_strokes_to_lines(lines: List[RecognizedLine], strokes: Iterable[Stroke]) -> int:
    """
    Attribute strokes to the recognized lines they were written in.

    Each stroke goes to the overlapping line with the closest midpoint. The
    stroke ids are appended to ``RecognizedLine.stroke_ids`` in place.

    Args:
        lines: Lines of one recognition result
        strokes: The strokes that were sent for recognition

    Returns:
        The number of strokes that could be attributed to a line
    """
    located = [line for line in lines if line.y_bounds is not None]
    attributed = 0

    for stroke in strokes:
        try:
            bounds = stroke_bounds(stroke.samples)
        except GeometryMissing:
            logging.warning(f"Stroke {stroke.stroke_id} has no samples; leaving it unattributed")
            continue

        candidates = [line for line in located if bounds_overlap(line.y_bounds, bounds)]
        index = closest_by_midpoint(bounds, [line.y_bounds for line in candidates])
        if index is None:
            logging.debug(f"Stroke {stroke.stroke_id} overlaps no recognized line")
            continue

        owner = candidates[index]
        if stroke.stroke_id not in owner.stroke_ids:
            owner.stroke_ids.append(stroke.stroke_id)
        attributed += 1

    return attributed
