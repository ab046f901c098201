"""
Decorative stroke filter for Inkbridge.

Boxes, underlines and circles drawn around handwriting are not text, and
MyScript's text recognizer turns them into stray glyphs. This module finds
such strokes so they can be held back from recognition. Only decorations
that enclose other strokes (boxes, circles) or that are long and straight
(underlines) are treated as decorative.

All thresholds are in millimetres on paper.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from .models import Stroke
from .recognition.myscript import NCODE_TO_MM


# Two-stroke boxes
BOX_TIME_THRESHOLD = 5000  # ms between the two strokes
BOX_MIN_SIZE = 5.0
BOX_MAX_SIZE = 50.0
BOX_HORIZONTAL_ASPECT = 5.0
BOX_VERTICAL_ASPECT = 0.2
BOX_MIN_CONTENT = 2

# Underlines
UNDERLINE_MIN_SAMPLES = 10
UNDERLINE_MIN_ASPECT = 50.0
UNDERLINE_MIN_STRAIGHTNESS = 0.90
UNDERLINE_MIN_WIDTH = 15.0

# Circles and ovals
CIRCLE_MIN_SAMPLES = 30
CIRCLE_MIN_SIZE = 4.0
CIRCLE_MAX_ENDPOINT_DIST = 2.0
CIRCLE_MIN_ASPECT = 0.3
CIRCLE_MAX_ASPECT = 3.0
CIRCLE_MIN_CONTENT = 1

CONTAINMENT_MARGIN = 0.5


@dataclass
class Box:
    """Axis-aligned bounding box in millimetres."""
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def aspect(self) -> float:
        return self.width / (self.height or 0.01)

    def contains(self, other: "Box", margin: float = CONTAINMENT_MARGIN) -> bool:
        return (
            other.min_x >= self.min_x - margin
            and other.max_x <= self.max_x + margin
            and other.min_y >= self.min_y - margin
            and other.max_y <= self.max_y + margin
        )

    def union(self, other: "Box") -> "Box":
        return Box(
            min_x=min(self.min_x, other.min_x),
            max_x=max(self.max_x, other.max_x),
            min_y=min(self.min_y, other.min_y),
            max_y=max(self.max_y, other.max_y),
        )


@dataclass
class FilterResult:
    """Strokes split into text and decorations, with the kind of each decoration."""
    text_strokes: List[Stroke] = field(default_factory=list)
    decorative: Dict[str, str] = field(default_factory=dict)

    def count(self, kind: str) -> int:
        return sum(1 for value in self.decorative.values() if value == kind)


def stroke_box(stroke: Stroke) -> Optional[Box]:
    """Bounding box of a stroke in millimetres, or None for an empty stroke."""
    if not stroke.samples:
        return None
    xs = [sample.x * NCODE_TO_MM for sample in stroke.samples]
    ys = [sample.y * NCODE_TO_MM for sample in stroke.samples]
    return Box(min_x=min(xs), max_x=max(xs), min_y=min(ys), max_y=max(ys))


def path_length(stroke: Stroke) -> float:
    samples = stroke.samples
    return sum(
        math.hypot((b.x - a.x) * NCODE_TO_MM, (b.y - a.y) * NCODE_TO_MM)
        for a, b in zip(samples, samples[1:])
    )


def _contained_count(boxes: List[Optional[Box]], outer: Box, skip: Set[int]) -> int:
    return sum(
        1 for index, box in enumerate(boxes)
        if index not in skip and box is not None and outer.contains(box)
    )


def detect_boxes(strokes: Sequence[Stroke], boxes: List[Optional[Box]]) -> Set[int]:
    """
    Find boxes drawn as two consecutive strokes around at least two other strokes.

    A stroke belongs to at most one box.
    """
    used: Set[int] = set()
    for i in range(len(strokes) - 1):
        if i in used or i + 1 in used:
            continue
        first, second = strokes[i], strokes[i + 1]
        first_box, second_box = boxes[i], boxes[i + 1]
        if first_box is None or second_box is None:
            continue

        if first.end_time is None or second.start_time is None:
            continue
        if second.start_time - first.end_time > BOX_TIME_THRESHOLD:
            continue

        combined = first_box.union(second_box)
        if not (BOX_MIN_SIZE <= combined.width <= BOX_MAX_SIZE
                and BOX_MIN_SIZE <= combined.height <= BOX_MAX_SIZE):
            continue

        aspects = (first_box.aspect, second_box.aspect)
        has_horizontal = any(a > BOX_HORIZONTAL_ASPECT for a in aspects)
        has_vertical = any(a < BOX_VERTICAL_ASPECT for a in aspects)
        if not has_horizontal and not has_vertical:
            continue

        if _contained_count(boxes, combined, {i, i + 1}) >= BOX_MIN_CONTENT:
            used.update((i, i + 1))
    return used


def is_underline(stroke: Stroke, box: Optional[Box]) -> bool:
    """A long, flat, nearly straight stroke."""
    if box is None or len(stroke.samples) < UNDERLINE_MIN_SAMPLES or box.height < 0.01:
        return False

    length = path_length(stroke)
    if length == 0:
        return False
    straightness = math.hypot(box.width, box.height) / length

    return (
        box.width / box.height > UNDERLINE_MIN_ASPECT
        and straightness > UNDERLINE_MIN_STRAIGHTNESS
        and box.width > UNDERLINE_MIN_WIDTH
    )


def is_circle(index: int, strokes: Sequence[Stroke], boxes: List[Optional[Box]]) -> bool:
    """A closed, roughly round stroke enclosing at least one other stroke."""
    stroke, box = strokes[index], boxes[index]
    if box is None or len(stroke.samples) < CIRCLE_MIN_SAMPLES:
        return False
    if box.width <= CIRCLE_MIN_SIZE or box.height <= CIRCLE_MIN_SIZE:
        return False

    first, last = stroke.samples[0], stroke.samples[-1]
    gap = math.hypot((last.x - first.x) * NCODE_TO_MM, (last.y - first.y) * NCODE_TO_MM)
    if gap > CIRCLE_MAX_ENDPOINT_DIST:
        return False

    if not CIRCLE_MIN_ASPECT <= box.width / box.height <= CIRCLE_MAX_ASPECT:
        return False

    return _contained_count(boxes, box, {index}) >= CIRCLE_MIN_CONTENT


def filter_decorative_strokes(strokes: Sequence[Stroke]) -> FilterResult:
    """
    Separate text strokes from boxes, underlines and circles.

    Args:
        strokes: Strokes of one page in capture order

    Returns:
        The text strokes in their original order, and the kind ("box",
        "underline" or "circle") of every decorative stroke by stroke id
    """
    strokes = list(strokes)
    boxes = [stroke_box(stroke) for stroke in strokes]
    result = FilterResult()

    box_indices = detect_boxes(strokes, boxes)
    for index, stroke in enumerate(strokes):
        if index in box_indices:
            result.decorative[stroke.stroke_id] = "box"
        elif is_circle(index, strokes, boxes):
            result.decorative[stroke.stroke_id] = "circle"
        elif is_underline(stroke, boxes[index]):
            result.decorative[stroke.stroke_id] = "underline"
        else:
            result.text_strokes.append(stroke)

    if result.decorative:
        logging.info(
            f"Held back {len(result.decorative)} decorative strokes "
            f"({result.count('box')} box, {result.count('underline')} underline, "
            f"{result.count('circle')} circle)"
        )
    return result
