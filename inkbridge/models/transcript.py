"""
Transcript models for Inkbridge.

This module defines the structures that flow through a reconciliation pass:
recognized lines coming back from the recognition service, transcript blocks
read from the note database, and the actions computed between the two.
"""

import re
from enum import Enum
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, Field, model_validator

from ..canonical import canonicalize
from ..errors import GeometryMissing
from .strokes import PageKey


Y_BOUNDS_PROPERTY = "stroke-y-bounds"
CANONICAL_PROPERTY = "canonical-transcript"
MERGED_LINES_PROPERTY = "merged-lines"

_Y_BOUNDS_PATTERN = re.compile(
    r"^\s*(-?\d+(?:\.\d+)?)\s*-\s*(-?\d+(?:\.\d+)?)\s*$"
)


class YBounds(BaseModel):
    """
    Vertical extent of a line, stroke or block on the page.
    """

    min_y: float = Field(..., description="Smallest vertical coordinate")
    max_y: float = Field(..., description="Largest vertical coordinate")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_order(self) -> "YBounds":
        if self.min_y > self.max_y:
            raise ValueError(f"min_y {self.min_y} is greater than max_y {self.max_y}")
        return self

    @property
    def midpoint(self) -> float:
        return (self.min_y + self.max_y) / 2

    def to_property(self) -> str:
        """Format as the persisted '<minY>-<maxY>' property value."""
        return f"{self.min_y:.2f}-{self.max_y:.2f}"

    @classmethod
    def from_property(cls, value: Any) -> Optional["YBounds"]:
        """
        Parse a persisted '<minY>-<maxY>' property value.

        Returns:
            The bounds, or None if the value is missing or malformed
        """
        if value is None:
            return None
        match = _Y_BOUNDS_PATTERN.match(str(value))
        if not match:
            return None
        min_y, max_y = float(match.group(1)), float(match.group(2))
        if min_y > max_y:
            return None
        return cls(min_y=min_y, max_y=max_y)


class WordBox(BaseModel):
    """
    A recognized word with its bounding box, in page coordinates.
    """

    label: str = Field(..., description="Recognized word text")
    x: float = Field(..., description="Left edge")
    y: float = Field(..., description="Top edge")
    width: float = Field(default=0.0, description="Box width")
    height: float = Field(default=0.0, description="Box height")


class RecognizedLine(BaseModel):
    """
    One line returned by the recognition service for a single request.

    Exists only for the duration of one reconciliation pass.
    """

    text: str = Field(..., description="Raw recognized text")

    canonical: str = Field(..., description="Normalized text used for change detection")

    words: List[WordBox] = Field(
        default_factory=list,
        description="Word-level geometry the line was built from"
    )

    y_bounds: Optional[YBounds] = Field(
        default=None,
        description="Vertical extent derived from the word boxes; None when the line has no words"
    )

    indent_level: int = Field(default=0, description="Indentation level relative to the leftmost line")

    merged_line_count: int = Field(
        default=1,
        ge=1,
        description="Number of raw lines combined into this one"
    )

    stroke_ids: List[str] = Field(
        default_factory=list,
        description="Identifiers of the strokes this line was recognized from"
    )

    @classmethod
    def from_words(cls, text: str, words: List[WordBox], indent_level: int = 0) -> "RecognizedLine":
        """
        Build a line from its text and word boxes, deriving canonical text and bounds.
        """
        # geometry imports this module
        from ..geometry import line_bounds

        try:
            bounds: Optional[YBounds] = line_bounds(words)
        except GeometryMissing:
            bounds = None

        return cls(
            text=text,
            canonical=canonicalize(text),
            words=words,
            y_bounds=bounds,
            indent_level=indent_level,
        )


class BlockProperties(BaseModel):
    """
    The three engine-owned properties of a transcript block.
    """

    y_bounds: Optional[YBounds] = Field(
        default=None,
        description="Persisted vertical range; None if absent or unreadable"
    )

    canonical: str = Field(
        default="",
        description="Last canonical text the engine wrote or confirmed"
    )

    merged_lines: int = Field(
        default=1,
        ge=1,
        description="Number of recognized lines this block spans"
    )

    @classmethod
    def from_logseq(cls, properties: Optional[Mapping[str, Any]]) -> "BlockProperties":
        """
        Read properties as returned by the Logseq API.

        Logseq reports property keys in camelCase ('strokeYBounds') while they
        are written in kebab-case ('stroke-y-bounds'); both are accepted.
        """
        properties = properties or {}

        def lookup(name: str) -> Any:
            if name in properties:
                return properties[name]
            head, *rest = name.split("-")
            camel = head + "".join(part.capitalize() for part in rest)
            return properties.get(camel)

        merged = lookup(MERGED_LINES_PROPERTY)
        try:
            merged_lines = max(1, int(str(merged).strip())) if merged is not None else 1
        except ValueError:
            merged_lines = 1

        canonical = lookup(CANONICAL_PROPERTY)

        return cls(
            y_bounds=YBounds.from_property(lookup(Y_BOUNDS_PROPERTY)),
            canonical="" if canonical is None else str(canonical),
            merged_lines=merged_lines,
        )

    def to_logseq(self) -> dict:
        """Render as the kebab-case property map written to Logseq."""
        properties = {
            CANONICAL_PROPERTY: self.canonical,
            MERGED_LINES_PROPERTY: str(self.merged_lines),
        }
        if self.y_bounds is not None:
            properties[Y_BOUNDS_PROPERTY] = self.y_bounds.to_property()
        return properties


class TranscriptBlock(BaseModel):
    """
    A persisted transcript block read from the note database.
    """

    uuid: str = Field(..., description="Identifier assigned by the note database")

    content: str = Field(
        default="",
        description="Display text, possibly carrying user edits, without property lines"
    )

    raw_content: str = Field(
        default="",
        description="Block content exactly as stored, including property lines"
    )

    properties: BlockProperties = Field(default_factory=BlockProperties)

    depth: int = Field(
        default=0,
        description="Nesting level below the transcript section (0 for its direct children)"
    )


class ActionType(str, Enum):
    """Kinds of decisions a reconciliation pass can make."""

    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"
    MERGE_PRESERVE = "merge_preserve"
    CONFLICT = "conflict"


class ReconciliationAction(BaseModel):
    """
    One decision of the block matcher, executed by the persistence adapter.
    """

    action_type: ActionType

    lines: List[RecognizedLine] = Field(
        default_factory=list,
        description="Fresh lines that triggered this action, in ascending Y order"
    )

    block: Optional[TranscriptBlock] = Field(
        default=None,
        description="Target block (absent for CREATE)"
    )

    text: str = Field(default="", description="Recognized text to write")

    canonical: str = Field(default="", description="Canonical text of the lines")

    y_bounds: Optional[YBounds] = Field(default=None, description="Union of the lines' bounds")

    merged_lines: int = Field(default=1, ge=1)

    conflict: Optional[str] = Field(
        default=None,
        description="Why the matcher flagged this decision as a conflict, if it did"
    )

    @property
    def stroke_ids(self) -> List[str]:
        seen = []
        for line in self.lines:
            for stroke_id in line.stroke_ids:
                if stroke_id not in seen:
                    seen.append(stroke_id)
        return seen

    @property
    def writes(self) -> bool:
        """Whether executing this action writes to the note database."""
        return self.action_type in (ActionType.CREATE, ActionType.UPDATE, ActionType.CONFLICT)

    @property
    def properties(self) -> BlockProperties:
        return BlockProperties(
            y_bounds=self.y_bounds,
            canonical=self.canonical,
            merged_lines=self.merged_lines,
        )


class PassState(str, Enum):
    """States of one reconciliation pass over a single page."""

    PENDING = "pending"
    RECOGNIZING = "recognizing"
    LOADING = "loading"
    MATCHING = "matching"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"


class ActionFailure(BaseModel):
    """An action that could not be completed."""

    action_type: ActionType
    block_uuid: Optional[str] = None
    stroke_ids: List[str] = Field(default_factory=list)
    error: str


class PassSummary(BaseModel):
    """
    Per-pass counts reported to the user.
    """

    created: int = 0
    updated: int = 0
    skipped: int = 0
    conflicts: int = 0
    errors: int = 0
    geometry_missing: int = 0
    failures: List[ActionFailure] = Field(default_factory=list)

    @property
    def writes(self) -> int:
        return self.created + self.updated


class PassResult(BaseModel):
    """
    Outcome of one reconciliation pass over one page.
    """

    page: PageKey
    state: PassState = PassState.PENDING
    summary: PassSummary = Field(default_factory=PassSummary)
    actions: List[ReconciliationAction] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.state == PassState.DONE
