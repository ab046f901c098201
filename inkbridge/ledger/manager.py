"""
Stroke ledger for Inkbridge.

This module persists every captured stroke together with the block it was
last recognized into, using DuckDB. The ledger decides which strokes are sent
to the recognition service: a stroke with a block reference is never sent
again.
"""

import duckdb
import json
import logging
from typing import Iterable, List, Optional
from datetime import datetime

from ..models import PageKey, Stroke, StrokeSample


class StrokeLedger:
    """
    Manages the DuckDB database associating strokes with transcript blocks.
    """

    def __init__(self, db_path: str = "inkbridge.db"):
        """
        Initialize the stroke ledger.

        Args:
            db_path: Path to the DuckDB database file (":memory:" for a throwaway ledger)
        """
        self.db_path = db_path
        self.connection = None

    def connect(self):
        """Establish connection to the database."""
        self.connection = duckdb.connect(self.db_path)

    def disconnect(self):
        """Close the database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _require_connection(self):
        if not self.connection:
            raise RuntimeError("Database connection not established")
        return self.connection

    def initialize_database(self):
        """
        Create all necessary tables if they don't exist.
        """
        connection = self._require_connection()

        connection.execute("""
            CREATE TABLE IF NOT EXISTS strokes (
                stroke_id VARCHAR PRIMARY KEY,
                book BIGINT NOT NULL,
                page BIGINT NOT NULL,
                start_time BIGINT,
                end_time BIGINT,
                samples TEXT NOT NULL,
                block_ref VARCHAR,
                imported_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                assigned_at TIMESTAMP
            )
        """)

    def add_strokes(self, strokes: Iterable[Stroke]) -> int:
        """
        Record captured or imported strokes.

        Strokes whose identifier is already known are ignored, so importing the
        same capture twice is harmless and never clears a block reference.

        Args:
            strokes: Strokes to record

        Returns:
            Number of strokes that were new
        """
        connection = self._require_connection()

        fresh = {}
        for stroke in strokes:
            fresh.setdefault(stroke.stroke_id, stroke)
        if not fresh:
            return 0

        known = {
            row[0]
            for row in connection.execute(
                "SELECT stroke_id FROM strokes WHERE list_contains(?, stroke_id)",
                [list(fresh)]
            ).fetchall()
        }

        rows = [
            [
                stroke.stroke_id,
                stroke.book,
                stroke.page,
                stroke.start_time,
                stroke.end_time,
                json.dumps([[s.x, s.y, s.pressure, s.timestamp] for s in stroke.samples]),
                stroke.block_ref,
                datetime.now(),
            ]
            for stroke_id, stroke in fresh.items()
            if stroke_id not in known
        ]

        if rows:
            connection.executemany("""
                INSERT INTO strokes (stroke_id, book, page, start_time, end_time, samples, block_ref, imported_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, rows)

        if known:
            logging.debug(f"Ignored {len(known)} strokes already in the ledger")

        return len(rows)

    def get_page_strokes(self, page: PageKey) -> List[Stroke]:
        """
        Load every stroke of a page, in capture order.

        Args:
            page: The page to load

        Returns:
            List of strokes with their current block references
        """
        connection = self._require_connection()

        results = connection.execute("""
            SELECT stroke_id, book, page, start_time, end_time, samples, block_ref
            FROM strokes
            WHERE book = ? AND page = ?
            ORDER BY start_time, stroke_id
        """, [page.book, page.page]).fetchall()

        return [self._row_to_stroke(row) for row in results]

    def list_pages(self) -> List[PageKey]:
        """List every page that has at least one stroke."""
        connection = self._require_connection()

        results = connection.execute("""
            SELECT DISTINCT book, page FROM strokes ORDER BY book, page
        """).fetchall()

        return [PageKey(book=row[0], page=row[1]) for row in results]

    def exclude_recognized(self, strokes: Iterable[Stroke]) -> List[Stroke]:
        """
        Keep only the strokes that have never been recognized into a block.

        The ledger's stored reference wins over whatever the given stroke
        objects carry, so a stale in-memory copy cannot cause a stroke to be
        sent twice. This method only reads.

        Args:
            strokes: Candidate strokes

        Returns:
            The strokes whose block reference is unset
        """
        connection = self._require_connection()

        strokes = list(strokes)
        if not strokes:
            return []

        stored = dict(
            connection.execute(
                "SELECT stroke_id, block_ref FROM strokes WHERE list_contains(?, stroke_id)",
                [[stroke.stroke_id for stroke in strokes]]
            ).fetchall()
        )

        pending = []
        for stroke in strokes:
            block_ref = stored[stroke.stroke_id] if stroke.stroke_id in stored else stroke.block_ref
            if not block_ref:
                pending.append(stroke)
        return pending

    def get_unrecognized_strokes(self, page: PageKey) -> List[Stroke]:
        """Strokes of a page that still need to be sent for recognition."""
        return self.exclude_recognized(self.get_page_strokes(page))

    def assign(self, stroke_ids: Iterable[str], block_id: str) -> int:
        """
        Record that strokes were recognized into a block.

        Must only be called once the block write has been confirmed by the note
        database.

        Args:
            stroke_ids: Strokes that contributed to the block's text
            block_id: UUID of the block

        Returns:
            Number of strokes updated
        """
        connection = self._require_connection()

        stroke_ids = list(dict.fromkeys(stroke_ids))
        if not stroke_ids:
            return 0

        now = datetime.now()
        connection.executemany("""
            UPDATE strokes SET block_ref = ?, assigned_at = ? WHERE stroke_id = ?
        """, [[block_id, now, stroke_id] for stroke_id in stroke_ids])

        result = connection.execute(
            "SELECT count(*) FROM strokes WHERE block_ref = ? AND list_contains(?, stroke_id)",
            [block_id, stroke_ids]
        ).fetchone()
        assigned = result[0] if result else 0

        if assigned != len(stroke_ids):
            logging.warning(
                f"Assigned {assigned} of {len(stroke_ids)} strokes to block {block_id}; "
                f"the rest are not in the ledger"
            )
        return assigned

    def get_block_ref(self, stroke_id: str) -> Optional[str]:
        """
        Look up the block a stroke was recognized into.

        Returns:
            The block UUID, or None if the stroke is unknown or unrecognized
        """
        connection = self._require_connection()

        result = connection.execute(
            "SELECT block_ref FROM strokes WHERE stroke_id = ?", [stroke_id]
        ).fetchone()
        return result[0] if result else None

    def reset_page(self, page: PageKey) -> int:
        """
        Clear the block references of a page so all its strokes are recognized again.

        Returns:
            Number of strokes that had a block reference
        """
        connection = self._require_connection()

        result = connection.execute("""
            SELECT count(*) FROM strokes
            WHERE book = ? AND page = ? AND block_ref IS NOT NULL
        """, [page.book, page.page]).fetchone()

        connection.execute("""
            UPDATE strokes SET block_ref = NULL, assigned_at = NULL
            WHERE book = ? AND page = ?
        """, [page.book, page.page])

        cleared = result[0] if result else 0
        logging.info(f"Cleared {cleared} block references on page {page}")
        return cleared

    @staticmethod
    def _row_to_stroke(row) -> Stroke:
        samples = [
            StrokeSample(
                x=point[0],
                y=point[1],
                pressure=point[2] if len(point) > 2 else 0.5,
                timestamp=point[3] if len(point) > 3 else None,
            )
            for point in json.loads(row[5] or "[]")
        ]
        return Stroke(
            stroke_id=row[0],
            book=row[1],
            page=row[2],
            start_time=row[3],
            end_time=row[4],
            samples=samples,
            block_ref=row[6],
        )
