"""
Unit tests for the block matcher.

Each test builds the blocks already on a page and a fresh recognition result,
then checks the actions the matcher decides on.
"""

import unittest

from inkbridge.models import (
    ActionType,
    BlockProperties,
    RecognizedLine,
    TranscriptBlock,
    YBounds,
)
from inkbridge.reconcile import BlockMatcher

from fakes import make_line


def make_block(uuid: str, content: str, canonical: str, min_y: float, max_y: float,
               merged_lines: int = 1) -> TranscriptBlock:
    return TranscriptBlock(
        uuid=uuid,
        content=content,
        raw_content=content,
        properties=BlockProperties(
            y_bounds=YBounds(min_y=min_y, max_y=max_y),
            canonical=canonical,
            merged_lines=merged_lines,
        ),
    )


class TestBlockMatcher(unittest.TestCase):
    """Test action detection."""

    def setUp(self):
        self.matcher = BlockMatcher()

    def test_unchanged_line_is_skipped(self):
        blocks = [make_block("b1", "Check emails", "Check emails", 100, 140)]
        lines = [make_line("Check emails", 100, 140)]

        actions = self.matcher.detect_actions(blocks, lines)

        self.assertEqual(len(actions), 1)
        self.assertEqual(actions[0].action_type, ActionType.SKIP)
        self.assertFalse(actions[0].writes)

    def test_user_completion_marker_survives(self):
        """A block the user marked DONE is preserved when the text is unchanged."""
        block = make_block("b1", "DONE Review mockups", "Review mockups", 100, 140)

        for text in ("Review mockups", "  Review   mockups ", "TODO Review mockups"):
            with self.subTest(text=text):
                actions = self.matcher.detect_actions([block], [make_line(text, 102, 138)])

                self.assertEqual(actions[0].action_type, ActionType.SKIP)
                self.assertEqual(actions[0].text, block.content)

    def test_merged_block_with_two_lines_is_preserved(self):
        blocks = [make_block("b1", "Plan the offsite agenda", "Plan the offsite agenda", 100, 200, merged_lines=2)]
        lines = [make_line("Plan the", 100, 140), make_line("offsite agenda", 150, 200)]

        actions = self.matcher.detect_actions(blocks, lines)

        self.assertEqual(len(actions), 1)
        self.assertEqual(actions[0].action_type, ActionType.MERGE_PRESERVE)
        self.assertFalse(actions[0].writes)
        self.assertIsNone(actions[0].conflict)

    def test_merged_block_with_one_line_is_preserved(self):
        blocks = [make_block("b1", "Plan the offsite agenda", "Plan the offsite agenda", 100, 200, merged_lines=2)]
        lines = [make_line("Plan the offsite agenda", 100, 200)]

        actions = self.matcher.detect_actions(blocks, lines)

        self.assertEqual(len(actions), 1)
        self.assertIn(actions[0].action_type, (ActionType.SKIP, ActionType.MERGE_PRESERVE))
        self.assertFalse(actions[0].writes)

    def test_merged_lines_are_combined_in_vertical_order(self):
        blocks = [make_block("b1", "Plan the offsite agenda", "Plan the offsite agenda", 100, 200, merged_lines=2)]
        lines = [make_line("offsite agenda", 150, 200), make_line("Plan the", 100, 140)]

        actions = self.matcher.detect_actions(blocks, lines)

        self.assertEqual(actions[0].action_type, ActionType.MERGE_PRESERVE)

    def test_new_line_is_created(self):
        blocks = [
            make_block("b1", "Check emails", "Check emails", 100, 140),
            make_block("b2", "Call Bob", "Call Bob", 150, 190),
        ]
        lines = [make_line("Buy milk", 500, 540)]

        actions = self.matcher.detect_actions(blocks, lines)

        self.assertEqual(len(actions), 1)
        self.assertEqual(actions[0].action_type, ActionType.CREATE)
        self.assertIsNone(actions[0].block)
        self.assertEqual(actions[0].canonical, "Buy milk")
        self.assertEqual(actions[0].y_bounds, YBounds(min_y=500, max_y=540))

    def test_changed_text_is_updated(self):
        blocks = [make_block("b1", "Check emails", "Check emails", 100, 140)]
        lines = [make_line("Check email server", 100, 140)]

        actions = self.matcher.detect_actions(blocks, lines)

        self.assertEqual(len(actions), 1)
        action = actions[0]
        self.assertEqual(action.action_type, ActionType.UPDATE)
        self.assertEqual(action.block.uuid, "b1")
        self.assertEqual(action.canonical, "Check email server")
        self.assertEqual(action.properties.canonical, "Check email server")
        self.assertEqual(action.merged_lines, 1)

    def test_update_takes_union_of_line_bounds(self):
        blocks = [make_block("b1", "Plan", "Plan", 100, 200, merged_lines=2)]
        lines = [make_line("Plan the", 95, 140), make_line("offsite", 150, 210)]

        action = self.matcher.detect_actions(blocks, lines)[0]

        self.assertEqual(action.action_type, ActionType.UPDATE)
        self.assertEqual(action.text, "Plan the offsite")
        self.assertEqual(action.y_bounds, YBounds(min_y=95, max_y=210))
        self.assertEqual(action.merged_lines, 2)

    def test_line_count_mismatch_is_flagged_but_updated(self):
        blocks = [make_block("b1", "Agenda", "Agenda", 100, 300)]
        lines = [
            make_line("Agenda", 100, 140),
            make_line("venue", 150, 190),
            make_line("budget", 200, 240),
        ]

        action = self.matcher.detect_actions(blocks, lines)[0]

        self.assertEqual(action.action_type, ActionType.CONFLICT)
        self.assertTrue(action.writes)
        self.assertIn("expected 1 merged lines", action.conflict)
        self.assertEqual(action.canonical, "Agenda venue budget")
        self.assertEqual(action.merged_lines, 3)

    def test_line_count_within_tolerance_is_not_flagged(self):
        blocks = [make_block("b1", "Agenda", "Agenda", 100, 200)]
        lines = [make_line("Agenda", 100, 140), make_line("venue", 150, 190)]

        action = self.matcher.detect_actions(blocks, lines)[0]

        self.assertEqual(action.action_type, ActionType.UPDATE)
        self.assertIsNone(action.conflict)

    def test_line_goes_to_closest_block(self):
        blocks = [
            make_block("upper", "Check emails", "Check emails", 100, 140),
            make_block("lower", "Call Bob", "Call Bob", 150, 190),
        ]
        lines = [make_line("Call Rob", 140, 180)]

        actions = self.matcher.detect_actions(blocks, lines)

        self.assertEqual(len(actions), 1)
        self.assertEqual(actions[0].block.uuid, "lower")
        self.assertEqual(actions[0].action_type, ActionType.UPDATE)

    def test_exact_tie_goes_to_higher_block_and_is_flagged(self):
        blocks = [
            make_block("lower", "Call Bob", "Call Bob", 150, 190),
            make_block("upper", "Check emails", "Check emails", 100, 140),
        ]
        lines = [make_line("Check mail", 120, 170)]

        actions = self.matcher.detect_actions(blocks, lines)

        self.assertEqual(len(actions), 1)
        self.assertEqual(actions[0].block.uuid, "upper")
        self.assertEqual(actions[0].action_type, ActionType.CONFLICT)
        self.assertIn("equally close", actions[0].conflict)

    def test_line_without_geometry_is_skipped(self):
        blocks = [make_block("b1", "Check emails", "Check emails", 100, 140)]
        lines = [RecognizedLine.from_words("mystery", []), make_line("Buy milk", 500, 540)]

        actions = self.matcher.detect_actions(blocks, lines)

        self.assertEqual([a.action_type for a in actions], [ActionType.CREATE])
        self.assertEqual(actions[0].canonical, "Buy milk")

    def test_block_without_bounds_is_not_matched(self):
        block = TranscriptBlock(
            uuid="b1",
            content="Check emails",
            properties=BlockProperties(canonical="Check emails"),
        )

        actions = self.matcher.detect_actions([block], [make_line("Check emails", 100, 140)])

        self.assertEqual([a.action_type for a in actions], [ActionType.CREATE])

    def test_untouched_blocks_get_no_action(self):
        blocks = [
            make_block("b1", "Check emails", "Check emails", 100, 140),
            make_block("b2", "Call Bob", "Call Bob", 300, 340),
        ]

        actions = self.matcher.detect_actions(blocks, [make_line("Check emails", 100, 140)])

        self.assertEqual([a.block.uuid for a in actions], ["b1"])

    def test_actions_follow_page_order(self):
        blocks = [
            make_block("b2", "Call Bob", "Call Bob", 300, 340),
            make_block("b1", "Check emails", "Check emails", 100, 140),
        ]
        lines = [
            make_line("Buy milk", 500, 540),
            make_line("Call Rob", 300, 340),
            make_line("Check emails", 100, 140),
            make_line("Water plants", 200, 240),
        ]

        actions = self.matcher.detect_actions(blocks, lines)

        self.assertEqual(
            [(a.action_type, a.canonical) for a in actions],
            [
                (ActionType.SKIP, "Check emails"),
                (ActionType.UPDATE, "Call Rob"),
                (ActionType.CREATE, "Water plants"),
                (ActionType.CREATE, "Buy milk"),
            ]
        )

    def test_no_lines_no_actions(self):
        blocks = [make_block("b1", "Check emails", "Check emails", 100, 140)]
        self.assertEqual(self.matcher.detect_actions(blocks, []), [])


if __name__ == '__main__':
    unittest.main(verbosity=2)
