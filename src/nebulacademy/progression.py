"""Authoritative in-memory progression ledger with idempotent reward rules."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterable
from dataclasses import dataclass

from .models import Badge, LevelInfo
from .progress import LedgerStore, ProgressionState
from .rewards import BADGES, CAPSTONE_BADGE_ID, LESSON_BADGES, LESSON_XP_REWARD, level_for, next_level_after

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LessonReward:
    """What one `complete_lesson` call granted."""

    lesson_id: int
    newly_completed: bool
    xp_gained: int
    unlocked_badge_ids: tuple[str, ...]
    persisted: bool


class ProgressionStore:
    """Experience, badges, and completed lessons for one user.

    Memory is the source of truth. Every mutation runs under a lock and is then flushed to
    the ledger; a failed flush is logged and exposed on `last_persist_error` but never undoes
    the in-memory change.
    """

    def __init__(
        self,
        ledger: LedgerStore | None,
        lesson_ids: Iterable[int],
        badges: dict[str, Badge] | None = None,
        lesson_badges: dict[int, str] | None = None,
    ) -> None:
        self._ledger = ledger
        self._lesson_ids = tuple(sorted(set(lesson_ids)))
        self._badges = BADGES if badges is None else badges
        self._lesson_badges = LESSON_BADGES if lesson_badges is None else lesson_badges
        self._lock = threading.RLock()
        self.last_persist_error: Exception | None = None

        state = ledger.load() if ledger is not None else ProgressionState()
        self._experience_points = state.experience_points
        self._unlocked_badge_ids = set(state.unlocked_badge_ids)
        self._completed_lesson_ids = set(state.completed_lesson_ids)
        self._user_name = state.user_name

    @property
    def experience_points(self) -> int:
        return self._experience_points

    @property
    def user_name(self) -> str:
        return self._user_name

    @property
    def lesson_ids(self) -> tuple[int, ...]:
        return self._lesson_ids

    def snapshot(self) -> ProgressionState:
        with self._lock:
            return ProgressionState(
                experience_points=self._experience_points,
                unlocked_badge_ids=frozenset(self._unlocked_badge_ids),
                completed_lesson_ids=frozenset(self._completed_lesson_ids),
                user_name=self._user_name,
            )

    def complete_lesson(self, lesson_id: int) -> LessonReward:
        """Complete a lesson once, granting base XP, its badge, and the capstone when due."""
        with self._lock:
            if lesson_id in self._completed_lesson_ids:
                return LessonReward(lesson_id, False, 0, (), True)

            self._completed_lesson_ids.add(lesson_id)
            self._experience_points += LESSON_XP_REWARD
            xp_gained = LESSON_XP_REWARD
            unlocked: list[str] = []

            badge_id = self._lesson_badges.get(lesson_id)
            if badge_id is not None:
                granted = self._insert_badge(badge_id)
                if granted is not None:
                    xp_gained += granted
                    unlocked.append(badge_id)

            if self._lesson_ids and all(item in self._completed_lesson_ids for item in self._lesson_ids):
                granted = self._insert_badge(CAPSTONE_BADGE_ID)
                if granted is not None:
                    xp_gained += granted
                    unlocked.append(CAPSTONE_BADGE_ID)

            logger.info("Completed lesson %s (+%s XP, badges: %s)", lesson_id, xp_gained, unlocked or "none")
            persisted = self._flush()
            return LessonReward(lesson_id, True, xp_gained, tuple(unlocked), persisted)

    def unlock_badge(self, badge_id: str) -> bool:
        """Unlock a badge; returns True only when this call changed membership."""
        with self._lock:
            granted = self._insert_badge(badge_id)
            if granted is None:
                return False
            self._flush()
            return True

    def add_xp(self, amount: int) -> None:
        """Add experience; negative amounts are treated as zero."""
        amount = max(0, int(amount))
        if amount == 0:
            return
        with self._lock:
            self._experience_points += amount
            self._flush()

    def set_user_name(self, name: str) -> None:
        cleaned = name.strip()
        if not cleaned:
            return
        with self._lock:
            self._user_name = cleaned
            self._flush()

    def merge(self, state: ProgressionState) -> None:
        """Union another ledger into this one without ever shrinking it.

        Newly merged lessons receive their mapped badge, and the capstone once every lesson is in.
        """
        with self._lock:
            self._experience_points = max(self._experience_points, state.experience_points)
            self._unlocked_badge_ids.update(badge for badge in state.unlocked_badge_ids if badge in self._badges)
            new_lessons = sorted(
                lesson_id
                for lesson_id in state.completed_lesson_ids
                if lesson_id in self._lesson_ids and lesson_id not in self._completed_lesson_ids
            )
            self._completed_lesson_ids.update(new_lessons)
            for lesson_id in new_lessons:
                badge_id = self._lesson_badges.get(lesson_id)
                if badge_id is not None:
                    self._insert_badge(badge_id)
            if self._lesson_ids and all(item in self._completed_lesson_ids for item in self._lesson_ids):
                self._insert_badge(CAPSTONE_BADGE_ID)
            self._flush()

    def _insert_badge(self, badge_id: str) -> int | None:
        """Insert a badge and add its XP. Returns the XP granted, or None when nothing changed."""
        badge = self._badges.get(badge_id)
        if badge is None:
            logger.warning("Ignoring unknown badge id '%s'", badge_id)
            return None
        if badge_id in self._unlocked_badge_ids:
            return None
        self._unlocked_badge_ids.add(badge_id)
        self._experience_points += badge.xp_reward
        return badge.xp_reward

    def _flush(self) -> bool:
        if self._ledger is None:
            return True
        try:
            self._ledger.save(self.snapshot())
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Could not persist progression ledger: %s", exc)
            self.last_persist_error = exc
            return False
        self.last_persist_error = None
        return True

    def is_badge_unlocked(self, badge_id: str) -> bool:
        return badge_id in self._unlocked_badge_ids

    def is_lesson_completed(self, lesson_id: int) -> bool:
        return lesson_id in self._completed_lesson_ids

    def is_lesson_unlocked(self, lesson_id: int) -> bool:
        """First lesson is always open; every other lesson needs its predecessor completed."""
        if lesson_id not in self._lesson_ids:
            return False
        if lesson_id == self._lesson_ids[0]:
            return True
        return (lesson_id - 1) in self._completed_lesson_ids

    def highest_unlocked_level_index(self) -> int:
        """Lesson id one past the highest completed lesson, capped at the catalog size."""
        highest = max(self._completed_lesson_ids, default=0)
        return max(1, min(highest + 1, len(self._lesson_ids)))

    def next_unlockable_lesson(self) -> int | None:
        for lesson_id in self._lesson_ids:
            if lesson_id not in self._completed_lesson_ids:
                return lesson_id if self.is_lesson_unlocked(lesson_id) else None
        return None

    def current_level(self) -> LevelInfo:
        return level_for(self._experience_points)

    def next_level(self) -> LevelInfo | None:
        return next_level_after(self.current_level())

    def close(self) -> None:
        if self._ledger is not None:
            self._ledger.close()
