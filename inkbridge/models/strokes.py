"""
Stroke models for Inkbridge.

This module defines the pen data the system works from: individual pen
strokes with their coordinate samples, and the physical page they belong to.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


PAGE_NAME_TEMPLATE = "Smartpen Data/B{book}/P{page}"


class StrokeSample(BaseModel):
    """
    One coordinate sample of a stroke, in Ncode page units.
    """

    x: float = Field(..., description="Horizontal position on the page")
    y: float = Field(..., description="Vertical position on the page")
    pressure: float = Field(
        default=0.5,
        description="Normalised pen pressure between 0 and 1"
    )
    timestamp: Optional[int] = Field(
        default=None,
        description="Sample time in milliseconds since epoch, when the pen reported one"
    )


class PageKey(BaseModel):
    """
    Identifies one physical notebook page by its (book, page) pair.
    """

    book: int = Field(..., description="Notebook (book) identifier reported by the pen")
    page: int = Field(..., description="Page number within the notebook")

    model_config = {"frozen": True}

    @property
    def name(self) -> str:
        """Name of the note database page holding this page's transcript."""
        return PAGE_NAME_TEMPLATE.format(book=self.book, page=self.page)

    def __str__(self) -> str:
        return f"B{self.book}/P{self.page}"


class Stroke(BaseModel):
    """
    One continuous pen-down to pen-up path.
    """

    stroke_id: str = Field(
        ...,
        description="Stable identifier derived from the capture start time (e.g. 's1765313505107')"
    )

    book: int = Field(..., description="Notebook the stroke was written in")

    page: int = Field(..., description="Page the stroke was written on")

    start_time: Optional[int] = Field(
        default=None,
        description="Capture start time in milliseconds since epoch"
    )

    end_time: Optional[int] = Field(
        default=None,
        description="Capture end time in milliseconds since epoch"
    )

    samples: List[StrokeSample] = Field(
        default_factory=list,
        description="Ordered coordinate samples"
    )

    block_ref: Optional[str] = Field(
        default=None,
        description="UUID of the block this stroke was last recognized into, if any"
    )

    @staticmethod
    def make_id(start_time: int) -> str:
        """Build the stable stroke identifier for a capture start time."""
        return f"s{start_time}"

    @property
    def page_key(self) -> PageKey:
        return PageKey(book=self.book, page=self.page)
