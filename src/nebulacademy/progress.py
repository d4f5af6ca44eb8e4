"""SQLite persistence for the progression ledger."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

SCHEMA_VERSION = 1
DEFAULT_USER_NAME = "Student"


@dataclass(frozen=True)
class ProgressionState:
    """Snapshot of the persisted ledger."""

    experience_points: int = 0
    unlocked_badge_ids: frozenset[str] = field(default_factory=frozenset)
    completed_lesson_ids: frozenset[int] = field(default_factory=frozenset)
    user_name: str = DEFAULT_USER_NAME


def decode_id_set(text: str | None) -> frozenset[str]:
    """Decode comma-joined ids, dropping blanks and duplicates."""
    if not text:
        return frozenset()
    return frozenset(part.strip() for part in text.split(",") if part.strip())


class LedgerStore:
    """Database access layer for the progression ledger."""

    def __init__(self, db_path: Path | str) -> None:
        """Initialize database and schema."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self._conn = sqlite3.connect(target, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )

    def _migrate_to_v1(self) -> None:
        """Create the keyed ledger and the two id sets."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS ledger (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS unlocked_badges (
                    badge_id TEXT PRIMARY KEY,
                    unlocked_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS completed_lessons (
                    lesson_id INTEGER PRIMARY KEY,
                    completed_at TEXT NOT NULL
                )
                """)

    def _get_value(self, key: str) -> str | None:
        row = self._conn.execute("SELECT value FROM ledger WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def load(self) -> ProgressionState:
        """Read the full ledger."""
        xp_text = self._get_value("experience_points")
        try:
            experience_points = max(0, int(xp_text)) if xp_text is not None else 0
        except ValueError:
            experience_points = 0
        badge_rows = self._conn.execute("SELECT badge_id FROM unlocked_badges").fetchall()
        lesson_rows = self._conn.execute("SELECT lesson_id FROM completed_lessons").fetchall()
        return ProgressionState(
            experience_points=experience_points,
            unlocked_badge_ids=frozenset(str(row["badge_id"]) for row in badge_rows),
            completed_lesson_ids=frozenset(int(row["lesson_id"]) for row in lesson_rows),
            user_name=self._get_value("user_name") or DEFAULT_USER_NAME,
        )

    def save(self, state: ProgressionState) -> None:
        """Write the ledger in one transaction.

        Ids are only ever inserted, so rows written by an earlier save are never removed.
        """
        now = datetime.now(UTC).isoformat()
        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO ledger (key, value) VALUES (?, ?)",
                ("experience_points", str(state.experience_points)),
            )
            self._conn.execute(
                "INSERT OR REPLACE INTO ledger (key, value) VALUES (?, ?)",
                ("user_name", state.user_name),
            )
            self._conn.executemany(
                "INSERT OR IGNORE INTO unlocked_badges (badge_id, unlocked_at) VALUES (?, ?)",
                [(badge_id, now) for badge_id in sorted(state.unlocked_badge_ids)],
            )
            self._conn.executemany(
                "INSERT OR IGNORE INTO completed_lessons (lesson_id, completed_at) VALUES (?, ?)",
                [(lesson_id, now) for lesson_id in sorted(state.completed_lesson_ids)],
            )

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort connection cleanup."""
        try:
            self.close()
        except Exception:
            pass
