"""
JSON page importer for Inkbridge.

Reads page storage documents of the form

    {"version": "1.0",
     "pageInfo": {"section": 3, "owner": 1012, "book": 3017, "page": 42},
     "strokes": [{"id": "s1765313505107", "startTime": 1765313505107,
                  "endTime": 1765313505342, "points": [[x, y, t], ...],
                  "blockUuid": "..."}]}

either from a single file or from every *.json file in a directory.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from ..models import Stroke, StrokeSample
from .base import BaseImporter


class JsonPageImporter(BaseImporter):
    """
    Importer for JSON page storage documents.
    """

    def __init__(self, source_path: str):
        """
        Initialize the importer.

        Args:
            source_path: A page document, or a directory of page documents
        """
        self.source_path = Path(source_path)
        logging.info(f"Initialized JSON page importer for: {self.source_path}")

    def _document_files(self) -> List[Path]:
        if self.source_path.is_dir():
            return sorted(self.source_path.glob("*.json"))
        if self.source_path.is_file():
            return [self.source_path]
        logging.error(f"Stroke source not found: {self.source_path}")
        return []

    def get_all_strokes(self) -> List[Stroke]:
        strokes: List[Stroke] = []
        for path in self._document_files():
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    document = json.load(f)
                page_strokes = self.parse_document(document)
            except (OSError, json.JSONDecodeError, ValueError) as e:
                logging.error(f"Failed to import strokes from {path}: {e}")
                continue

            logging.info(f"Read {len(page_strokes)} strokes from {path.name}")
            strokes.extend(page_strokes)
        return strokes

    @staticmethod
    def parse_document(document: Dict[str, Any]) -> List[Stroke]:
        """
        Convert one page storage document into strokes.

        Raises:
            ValueError: If the document has no page info or no strokes array
        """
        page_info = document.get("pageInfo") or {}
        if "book" not in page_info or "page" not in page_info:
            raise ValueError("Invalid stroke data: missing pageInfo book/page")

        stored_strokes = document.get("strokes")
        if not isinstance(stored_strokes, list):
            raise ValueError("Invalid stroke data: missing strokes array")

        strokes = []
        for stored in stored_strokes:
            points = stored.get("points")
            if not isinstance(points, list):
                raise ValueError("Invalid stroke data: missing points array")

            start_time = stored.get("startTime")
            stroke_id = stored.get("id")
            if not stroke_id:
                if start_time is None:
                    raise ValueError("Invalid stroke data: stroke has neither id nor startTime")
                stroke_id = Stroke.make_id(start_time)

            strokes.append(Stroke(
                stroke_id=stroke_id,
                book=int(page_info["book"]),
                page=int(page_info["page"]),
                start_time=start_time,
                end_time=stored.get("endTime"),
                samples=[
                    StrokeSample(
                        x=point[0],
                        y=point[1],
                        timestamp=point[2] if len(point) > 2 else None,
                    )
                    for point in points
                ],
                block_ref=stored.get("blockUuid") or None,
            ))
        return strokes
