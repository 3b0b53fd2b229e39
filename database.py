# database.py
import json
import logging
import sqlite3
from contextlib import contextmanager

logger = logging.getLogger("billing.database")


class Database:
    """
    Key-value persistence over SQLite. Values are stored as JSON.

    `save` commits immediately unless it runs inside `transaction()`, in which
    case every save in the block is committed together or rolled back together.
    """
    def __init__(self, db_name: str = "pos.db"):
        self.conn = sqlite3.connect(db_name)
        self.conn.row_factory = sqlite3.Row
        self._depth = 0
        self._create_tables()

    def _create_tables(self):
        cur = self.conn.cursor()
        cur.execute("""
        CREATE TABLE IF NOT EXISTS store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """)
        self.conn.commit()

    def load(self, key: str, default=None):
        """Return the stored value for key, or default when absent."""
        cur = self.conn.cursor()
        cur.execute("SELECT value FROM store WHERE key = ?", (key,))
        row = cur.fetchone()
        if row is None:
            return default
        return json.loads(row['value'])

    def save(self, key: str, value):
        """Store value under key, replacing any previous value."""
        payload = json.dumps(value, ensure_ascii=False)
        cur = self.conn.cursor()
        cur.execute("""
        INSERT INTO store (key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """, (key, payload))
        if self._depth == 0:
            self.conn.commit()

    def remove(self, key: str) -> bool:
        cur = self.conn.cursor()
        cur.execute("DELETE FROM store WHERE key = ?", (key,))
        if self._depth == 0:
            self.conn.commit()
        return cur.rowcount > 0

    def keys(self):
        cur = self.conn.cursor()
        cur.execute("SELECT key FROM store ORDER BY key")
        return [row['key'] for row in cur.fetchall()]

    @contextmanager
    def transaction(self):
        """Group saves so they persist all together or not at all."""
        if self._depth:
            # nested blocks join the outer one
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield self
        except BaseException:
            self.conn.rollback()
            logger.warning("Transaction rolled back")
            raise
        else:
            self.conn.commit()
        finally:
            self._depth = 0

    def close(self):
        self.conn.close()
