"""
Result checkpointing so an interrupted batch can resume.
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Sequence

from sitefinder.core.exceptions import StateError
from sitefinder.core.models import CompanyRecord, NOT_AVAILABLE


logger = logging.getLogger(__name__)


class ResultCheckpoint:
    """
    Store each finished company in an SQLite database.

    Records are keyed by company id; saving the same id again overwrites the
    earlier outcome (e.g. after a re-run).
    """

    def __init__(self, db_file: str, table_name: str = "results"):
        """
        Initialize the checkpoint store.

        Args:
            db_file: Path to SQLite database file
            table_name: Name of the results table

        Raises:
            StateError: If database cannot be initialized
        """
        self.db_file = db_file
        self.table_name = table_name

        Path(db_file).parent.mkdir(parents=True, exist_ok=True)
        self._initialize_database()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_file)

    def _initialize_database(self) -> None:
        """Initialize database schema."""
        try:
            conn = self._connect()
            cursor = conn.cursor()

            cursor.execute(f'''
                CREATE TABLE IF NOT EXISTS {self.table_name} (
                    company_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    website TEXT NOT NULL,
                    method TEXT,
                    confidence REAL,
                    completed_at TEXT NOT NULL
                )
            ''')

            conn.commit()
            conn.close()

        except sqlite3.Error as e:
            raise StateError(f"Failed to initialize database: {e}")

    def save_result(self, record: CompanyRecord) -> bool:
        """
        Persist one finished record.

        Args:
            record: Record whose website has been resolved

        Returns:
            True if the result was stored
        """
        try:
            conn = self._connect()
            cursor = conn.cursor()

            cursor.execute(f'''
                INSERT OR REPLACE INTO {self.table_name}
                (company_id, name, website, method, confidence, completed_at)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (record.id, record.name, record.website, record.method,
                  record.confidence, datetime.now().isoformat()))

            conn.commit()
            conn.close()
            return True

        except sqlite3.Error as e:
            logger.error(f"Error saving checkpoint for {record.id}: {e}")
            return False

    def get_completed(self) -> Dict[str, Dict[str, Any]]:
        """
        All stored results keyed by company id.

        Returns:
            Dictionary of company id -> stored result
        """
        try:
            conn = self._connect()
            cursor = conn.cursor()

            cursor.execute(f'''
                SELECT company_id, name, website, method, confidence, completed_at
                FROM {self.table_name}
            ''')

            rows = cursor.fetchall()
            conn.close()

        except sqlite3.Error as e:
            logger.error(f"Error reading checkpoints: {e}")
            return {}

        return {
            row[0]: {
                "name": row[1],
                "website": row[2],
                "method": row[3],
                "confidence": row[4],
                "completed_at": row[5]
            }
            for row in rows
        }

    def restore(self, records: Sequence[CompanyRecord]) -> int:
        """Copy stored outcomes onto matching records.

        Returns:
            Number of records restored
        """
        completed = self.get_completed()
        restored = 0
        for record in records:
            stored = completed.get(record.id)
            if stored is None:
                continue
            record.website = stored["website"]
            record.method = stored["method"]
            record.confidence = stored["confidence"]
            record.status = "not_available" if record.website == NOT_AVAILABLE else "found"
            restored += 1
        return restored

    def restart_from_scratch(self) -> bool:
        """
        Clear all stored results.

        Returns:
            True if results were cleared successfully
        """
        try:
            conn = self._connect()
            cursor = conn.cursor()
            cursor.execute(f"DELETE FROM {self.table_name}")
            conn.commit()
            conn.close()
            return True

        except sqlite3.Error as e:
            logger.error(f"Error restarting from scratch: {e}")
            return False

    def get_stats(self) -> Dict[str, Any]:
        """
        Summarise stored results.

        Returns:
            Dictionary with processing statistics
        """
        try:
            conn = self._connect()
            cursor = conn.cursor()

            cursor.execute(f"SELECT COUNT(*) FROM {self.table_name}")
            total = cursor.fetchone()[0]

            cursor.execute(f"SELECT COUNT(*) FROM {self.table_name} WHERE website = ?", (NOT_AVAILABLE,))
            not_available = cursor.fetchone()[0]

            cursor.execute(f'''
                SELECT method, COUNT(*) FROM {self.table_name}
                GROUP BY method ORDER BY COUNT(*) DESC
            ''')
            by_method = {method or 'unknown': count for method, count in cursor.fetchall()}

            conn.close()

        except sqlite3.Error as e:
            logger.error(f"Error getting processing stats: {e}")
            return {"total": 0, "found": 0, "not_available": 0, "by_method": {}, "success_rate": 0}

        found = total - not_available
        return {
            "total": total,
            "found": found,
            "not_available": not_available,
            "by_method": by_method,
            "success_rate": found / total * 100 if total > 0 else 0
        }
