"""
Unit tests for the decorative stroke filter.

Coordinates are in Ncode page units; one unit is 2.371 mm on paper.
"""

import math
import unittest
from typing import List, Tuple

from inkbridge.models import Stroke, StrokeSample
from inkbridge.stroke_filter import filter_decorative_strokes, stroke_box


def stroke(stroke_id: str, points: List[Tuple[float, float]]) -> Stroke:
    start = int(stroke_id.lstrip("s"))
    return Stroke(
        stroke_id=stroke_id,
        book=3017,
        page=42,
        start_time=start,
        end_time=start + 20 * len(points),
        samples=[StrokeSample(x=x, y=y, timestamp=start + 20 * i) for i, (x, y) in enumerate(points)],
    )


def circle(stroke_id: str, cx: float, cy: float, radius: float, sweep: float = 2 * math.pi,
           samples: int = 36) -> Stroke:
    return stroke(stroke_id, [
        (cx + radius * math.cos(sweep * i / (samples - 1)), cy + radius * math.sin(sweep * i / (samples - 1)))
        for i in range(samples)
    ])


def text_strokes() -> List[Stroke]:
    """Two small pen strokes, the size of handwritten letters."""
    return [
        stroke("s3000", [(2.0, 2.0), (3.0, 3.0), (4.0, 2.5)]),
        stroke("s4000", [(5.0, 2.0), (5.5, 4.0), (6.0, 3.0)]),
    ]


class TestBoxes(unittest.TestCase):
    """Test two-stroke box detection."""

    def box_strokes(self, second_start: int = 2000) -> List[Stroke]:
        top = stroke("s1000", [(0.0, 0.0), (8.0, 0.0)])
        rest = stroke(f"s{second_start}", [(8.0, 0.0), (8.0, 6.0), (0.0, 6.0), (0.0, 0.0)])
        return [top, rest]

    def test_box_around_text_is_decorative(self):
        result = filter_decorative_strokes(self.box_strokes() + text_strokes())

        self.assertEqual(result.decorative, {"s1000": "box", "s2000": "box"})
        self.assertEqual([s.stroke_id for s in result.text_strokes], ["s3000", "s4000"])
        self.assertEqual(result.count("box"), 2)

    def test_empty_box_is_kept(self):
        result = filter_decorative_strokes(self.box_strokes())

        self.assertEqual(result.decorative, {})
        self.assertEqual(len(result.text_strokes), 2)

    def test_strokes_drawn_far_apart_in_time_are_kept(self):
        strokes = self.box_strokes(second_start=7000) + [
            stroke("s8000", [(2.0, 2.0), (3.0, 3.0), (4.0, 2.5)]),
            stroke("s9000", [(5.0, 2.0), (5.5, 4.0), (6.0, 3.0)]),
        ]

        result = filter_decorative_strokes(strokes)

        self.assertEqual(result.decorative, {})


class TestUnderlines(unittest.TestCase):
    """Test underline detection."""

    def test_long_straight_stroke_is_decorative(self):
        underline = stroke("s5000", [(float(i), 20.0 + i * 0.01) for i in range(12)])

        result = filter_decorative_strokes(text_strokes() + [underline])

        self.assertEqual(result.decorative, {"s5000": "underline"})
        self.assertEqual(len(result.text_strokes), 2)

    def test_short_dash_is_kept(self):
        dash = stroke("s5000", [(i * 0.5, 20.0 + i * 0.01) for i in range(12)])

        self.assertEqual(filter_decorative_strokes([dash]).decorative, {})

    def test_stroke_with_few_samples_is_kept(self):
        line = stroke("s5000", [(0.0, 20.0), (11.0, 20.1)])

        self.assertEqual(filter_decorative_strokes([line]).decorative, {})


class TestCircles(unittest.TestCase):
    """Test circle detection."""

    def test_closed_loop_around_text_is_decorative(self):
        ring = circle("s1000", 10.0, 10.0, 3.0)
        inner = stroke("s2000", [(9.0, 9.5), (10.0, 10.5), (11.0, 10.0)])

        result = filter_decorative_strokes([ring, inner])

        self.assertEqual(result.decorative, {"s1000": "circle"})
        self.assertEqual([s.stroke_id for s in result.text_strokes], ["s2000"])

    def test_empty_loop_is_kept(self):
        self.assertEqual(filter_decorative_strokes([circle("s1000", 10.0, 10.0, 3.0)]).decorative, {})

    def test_open_arc_is_kept(self):
        arc = circle("s1000", 10.0, 10.0, 3.0, sweep=math.pi)
        inner = stroke("s2000", [(9.0, 10.5), (10.0, 11.0), (11.0, 10.5)])

        self.assertEqual(filter_decorative_strokes([arc, inner]).decorative, {})


class TestPlainText(unittest.TestCase):
    """Test that handwriting passes through untouched."""

    def test_text_is_not_filtered(self):
        strokes = text_strokes()

        result = filter_decorative_strokes(strokes)

        self.assertEqual(result.text_strokes, strokes)
        self.assertEqual(result.decorative, {})

    def test_empty_stroke_has_no_box(self):
        self.assertIsNone(stroke_box(stroke("s1000", [])))
        self.assertEqual(filter_decorative_strokes([stroke("s1000", [])]).decorative, {})


if __name__ == '__main__':
    unittest.main(verbosity=2)
