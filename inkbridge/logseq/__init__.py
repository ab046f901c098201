"""Logseq note database access."""

from .client import LogseqClient, SECTION_HEADING, SECTION_CONTENT

__all__ = ["LogseqClient", "SECTION_HEADING", "SECTION_CONTENT"]
