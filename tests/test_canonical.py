"""
Unit tests for canonical text normalization.
"""

import unittest

from inkbridge.canonical import (
    canonicalize,
    property_lines,
    render_display_text,
    strip_property_lines,
    task_marker,
)


class TestCanonicalize(unittest.TestCase):
    """Test the canonical comparison form."""

    def test_whitespace_is_collapsed_and_trimmed(self):
        self.assertEqual(canonicalize("  Review \t mockups\n"), "Review mockups")

    def test_checkbox_forms_fold_together(self):
        expected = "[ ] Call Bob"
        for text in ("[ ] Call Bob", "[] Call Bob", "[x] Call Bob", "[X]  Call Bob", "☐ Call Bob", "☑ Call Bob"):
            with self.subTest(text=text):
                self.assertEqual(canonicalize(text), expected)

    def test_task_markers_are_stripped(self):
        self.assertEqual(canonicalize("DONE Review mockups"), "Review mockups")
        self.assertEqual(canonicalize("TODO Review mockups"), "Review mockups")
        self.assertEqual(canonicalize("LATER NOW Review mockups"), "Review mockups")

    def test_marker_inside_text_is_kept(self):
        self.assertEqual(canonicalize("Ask whether TODO list is done"), "Ask whether TODO list is done")

    def test_case_is_preserved(self):
        self.assertNotEqual(canonicalize("Check Emails"), canonicalize("Check emails"))

    def test_empty(self):
        self.assertEqual(canonicalize(""), "")
        self.assertEqual(canonicalize(None), "")

    def test_idempotent(self):
        samples = [
            "  DONE  [x] Review   mockups ",
            "☐ Buy milk",
            "TODO",
            "[ ]",
            "Plain line",
            "NOW DOING  ☒  tidy   desk",
        ]
        for text in samples:
            with self.subTest(text=text):
                once = canonicalize(text)
                self.assertEqual(canonicalize(once), once)


class TestDisplayText(unittest.TestCase):
    """Test rendering recognized text for a block."""

    def test_plain_text(self):
        self.assertEqual(render_display_text("Check  emails"), "Check emails")

    def test_empty_checkbox_becomes_todo(self):
        self.assertEqual(render_display_text("[ ] Call Bob"), "TODO Call Bob")

    def test_checked_box_becomes_done(self):
        self.assertEqual(render_display_text("[x] Call Bob"), "DONE Call Bob")

    def test_existing_marker_wins(self):
        self.assertEqual(
            render_display_text("[ ] Review mockups v2", previous="DONE Review mockups"),
            "DONE Review mockups v2"
        )

    def test_previous_without_marker(self):
        self.assertEqual(render_display_text("[ ] Call Rob", previous="Call Bob"), "TODO Call Rob")


class TestMarkersAndProperties(unittest.TestCase):
    """Test marker and property line helpers."""

    def test_task_marker(self):
        self.assertEqual(task_marker("DONE Review mockups"), "DONE")
        self.assertIsNone(task_marker("Review mockups"))
        self.assertIsNone(task_marker(None))

    def test_property_lines(self):
        content = "Call Bob\ncanonical-transcript:: Call Bob\nowner:: alice"

        self.assertEqual(property_lines(content), ["canonical-transcript:: Call Bob", "owner:: alice"])
        self.assertEqual(strip_property_lines(content), "Call Bob")


if __name__ == '__main__':
    unittest.main(verbosity=2)
