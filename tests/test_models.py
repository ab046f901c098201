"""
Unit tests for Inkbridge data models.
"""

import unittest

from pydantic import ValidationError

from inkbridge.models import (
    ActionType,
    BlockProperties,
    PageKey,
    ReconciliationAction,
    Stroke,
    YBounds,
)

from fakes import make_line


class TestYBounds(unittest.TestCase):
    """Test the persisted Y-bounds format."""

    def test_property_format_has_fixed_precision(self):
        self.assertEqual(YBounds(min_y=100, max_y=140.456).to_property(), "100.00-140.46")

    def test_property_round_trip(self):
        bounds = YBounds.from_property("100.00-140.50")
        self.assertEqual(bounds, YBounds(min_y=100.0, max_y=140.5))
        self.assertEqual(YBounds.from_property(bounds.to_property()), bounds)

    def test_malformed_property_is_none(self):
        for value in (None, "", "abc", "140-100", "100.0"):
            with self.subTest(value=value):
                self.assertIsNone(YBounds.from_property(value))

    def test_inverted_range_is_rejected(self):
        with self.assertRaises(ValidationError):
            YBounds(min_y=200, max_y=100)

    def test_midpoint(self):
        self.assertEqual(YBounds(min_y=100, max_y=200).midpoint, 150)


class TestBlockProperties(unittest.TestCase):
    """Test reading and writing engine properties."""

    def test_from_kebab_case(self):
        properties = BlockProperties.from_logseq({
            "stroke-y-bounds": "100.00-200.00",
            "canonical-transcript": "Review mockups",
            "merged-lines": "2",
        })

        self.assertEqual(properties.y_bounds, YBounds(min_y=100, max_y=200))
        self.assertEqual(properties.canonical, "Review mockups")
        self.assertEqual(properties.merged_lines, 2)

    def test_from_camel_case(self):
        properties = BlockProperties.from_logseq({
            "strokeYBounds": "100.00-200.00",
            "canonicalTranscript": "Review mockups",
            "mergedLines": 3,
        })

        self.assertEqual(properties.y_bounds.max_y, 200)
        self.assertEqual(properties.canonical, "Review mockups")
        self.assertEqual(properties.merged_lines, 3)

    def test_missing_properties_use_defaults(self):
        properties = BlockProperties.from_logseq(None)

        self.assertIsNone(properties.y_bounds)
        self.assertEqual(properties.canonical, "")
        self.assertEqual(properties.merged_lines, 1)

    def test_bad_merged_lines_falls_back_to_one(self):
        self.assertEqual(BlockProperties.from_logseq({"merged-lines": "many"}).merged_lines, 1)
        self.assertEqual(BlockProperties.from_logseq({"merged-lines": "0"}).merged_lines, 1)

    def test_to_logseq(self):
        properties = BlockProperties(
            y_bounds=YBounds(min_y=500, max_y=540),
            canonical="Buy milk",
            merged_lines=1,
        )

        self.assertEqual(properties.to_logseq(), {
            "canonical-transcript": "Buy milk",
            "merged-lines": "1",
            "stroke-y-bounds": "500.00-540.00",
        })


class TestStrokeModels(unittest.TestCase):
    """Test stroke and page identifiers."""

    def test_stroke_id_from_start_time(self):
        self.assertEqual(Stroke.make_id(1765313505107), "s1765313505107")

    def test_page_name(self):
        page = PageKey(book=3017, page=42)
        self.assertEqual(page.name, "Smartpen Data/B3017/P42")
        self.assertEqual(str(page), "B3017/P42")

    def test_page_key_is_hashable(self):
        self.assertEqual(len({PageKey(book=1, page=2), PageKey(book=1, page=2)}), 1)


class TestReconciliationAction(unittest.TestCase):
    """Test derived values of an action."""

    def test_stroke_ids_are_deduplicated_in_order(self):
        first = make_line("one", 100, 140)
        second = make_line("two", 150, 190)
        first.stroke_ids = ["s1", "s2"]
        second.stroke_ids = ["s2", "s3"]

        action = ReconciliationAction(action_type=ActionType.UPDATE, lines=[first, second])

        self.assertEqual(action.stroke_ids, ["s1", "s2", "s3"])

    def test_writes(self):
        self.assertTrue(ReconciliationAction(action_type=ActionType.CREATE).writes)
        self.assertTrue(ReconciliationAction(action_type=ActionType.CONFLICT).writes)
        self.assertFalse(ReconciliationAction(action_type=ActionType.SKIP).writes)
        self.assertFalse(ReconciliationAction(action_type=ActionType.MERGE_PRESERVE).writes)


if __name__ == '__main__':
    unittest.main(verbosity=2)
