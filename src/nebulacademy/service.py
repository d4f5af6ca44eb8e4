"""Application service wiring lessons, the step controller, and progression."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import cast

from . import __version__
from .content_loader import load_lessons
from .controller import NO_TRANSITION, TutorialController, TutorialState, Transition
from .models import Badge, Lesson, LevelInfo, SceneEvent
from .progress import SCHEMA_VERSION, LedgerStore, ProgressionState, decode_id_set
from .progression import LessonReward, ProgressionStore
from .rewards import BADGES

EXPORT_FORMAT_VERSION = 1

logger = logging.getLogger(__name__)


class Mode(Enum):
    AR = "ar"
    SIMULATION = "simulation"


@dataclass(frozen=True)
class LessonState:
    """Lesson state for the level map."""

    lesson: Lesson
    unlocked: bool
    completed: bool


@dataclass(frozen=True)
class ProgressSummary:
    """Progression snapshot for map and badge views."""

    user_name: str
    experience_points: int
    level: LevelInfo
    next_level: LevelInfo | None
    unlocked_badge_ids: tuple[str, ...]
    completed_lesson_ids: tuple[int, ...]
    unlocked_lesson_ids: tuple[int, ...]
    highest_unlocked_level_index: int


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one UI action or scene event."""

    state: TutorialState | None
    transition: Transition = NO_TRANSITION
    reward: LessonReward | None = None


@dataclass(frozen=True)
class LedgerTransferSummary:
    """Summary emitted by ledger export/import operations."""

    user_name: str
    experience_points: int
    badge_count: int
    lesson_count: int


class LessonSession:
    """One play-through of a lesson: its controller and the code buffer being edited."""

    def __init__(self, lesson: Lesson) -> None:
        self.lesson = lesson
        self.controller = TutorialController(lesson)
        self.code = lesson.starter_code
        self.controller.start()

    def reset(self) -> None:
        self.controller.reset()
        self.code = self.lesson.starter_code


class AcademyService:
    """Coordinates the lesson catalog, the active lesson session, and the progression ledger."""

    def __init__(self, db_path: Path | str, lessons: dict[int, Lesson] | None = None) -> None:
        """Initialize service with database path."""
        self.lessons = load_lessons() if lessons is None else lessons
        self.progression = ProgressionStore(LedgerStore(db_path), self.lessons)
        self.mode = Mode.AR
        self.session: LessonSession | None = None

    def get_lesson(self, lesson_id: int) -> Lesson | None:
        """Get lesson by id."""
        return self.lessons.get(lesson_id)

    def list_lesson_states(self) -> list[LessonState]:
        """Return lesson states ordered by id."""
        return [
            LessonState(
                lesson=lesson,
                unlocked=self.progression.is_lesson_unlocked(lesson.id),
                completed=self.progression.is_lesson_completed(lesson.id),
            )
            for lesson in self.lessons.values()
        ]

    def enter_lesson(self, lesson_id: int) -> LessonSession | None:
        """Start a fresh session for an unlocked lesson; locked or unknown lessons are ignored."""
        lesson = self.lessons.get(lesson_id)
        if lesson is None or not self.progression.is_lesson_unlocked(lesson_id):
            logger.info("Lesson %s is not available", lesson_id)
            return None
        self.session = LessonSession(lesson)
        return self.session

    def leave_lesson(self) -> None:
        self.session = None

    def current_state(self) -> TutorialState | None:
        if self.session is None:
            return None
        return self.session.controller.state()

    def continue_step(self) -> ActionResult:
        if self.session is None:
            return ActionResult(state=None)
        return self._apply(self.session, self.session.controller.continue_step())

    def edit_code(self, code: str) -> None:
        """Replace the code buffer without grading it."""
        if self.session is not None:
            self.session.code = code

    def execute(self, code: str | None = None) -> ActionResult:
        """Grade the session's code buffer, optionally replacing it first."""
        if self.session is None:
            return ActionResult(state=None)
        if code is not None:
            self.session.code = code
        return self._apply(self.session, self.session.controller.execute(self.session.code))

    def report_event(self, event: SceneEvent) -> ActionResult:
        if self.session is None:
            return ActionResult(state=None)
        return self._apply(self.session, self.session.controller.report_event(event))

    def reset_lesson(self) -> TutorialState | None:
        if self.session is None:
            return None
        self.session.reset()
        return self.session.controller.state()

    def toggle_mode(self) -> Mode:
        """Switch between AR and simulation; the active lesson restarts."""
        self.mode = Mode.SIMULATION if self.mode is Mode.AR else Mode.AR
        self.reset_lesson()
        return self.mode

    def _apply(self, session: LessonSession, transition: Transition) -> ActionResult:
        reward = None
        if transition.lesson_completed:
            reward = self.progression.complete_lesson(session.lesson.id)
        return ActionResult(state=session.controller.state(), transition=transition, reward=reward)

    def progress_summary(self) -> ProgressSummary:
        state = self.progression.snapshot()
        return ProgressSummary(
            user_name=state.user_name,
            experience_points=state.experience_points,
            level=self.progression.current_level(),
            next_level=self.progression.next_level(),
            unlocked_badge_ids=tuple(sorted(state.unlocked_badge_ids)),
            completed_lesson_ids=tuple(sorted(state.completed_lesson_ids)),
            unlocked_lesson_ids=tuple(
                lesson_id for lesson_id in self.lessons if self.progression.is_lesson_unlocked(lesson_id)
            ),
            highest_unlocked_level_index=self.progression.highest_unlocked_level_index(),
        )

    def badge_gallery(self) -> list[tuple[Badge, bool]]:
        """Return every badge in catalog order with its unlock flag."""
        return [(badge, self.progression.is_badge_unlocked(badge.id)) for badge in BADGES.values()]

    def set_user_name(self, name: str) -> None:
        self.progression.set_user_name(name)

    def force_complete_through(self, lesson_id: int) -> list[int]:
        """Complete every lesson up to and including `lesson_id`, in order."""
        if lesson_id not in self.lessons:
            raise KeyError(lesson_id)
        order = [item for item in self.lessons if item <= lesson_id]
        for item in order:
            self.progression.complete_lesson(item)
        return order

    def export_progress(self, export_path: Path | str) -> LedgerTransferSummary:
        """Export the ledger to a JSON file."""
        state = self.progression.snapshot()
        payload = {
            "format_version": EXPORT_FORMAT_VERSION,
            "exported_at": datetime.now(UTC).isoformat(),
            "source": {
                "app_version": __version__,
                "schema_version": SCHEMA_VERSION,
            },
            "ledger": {
                "user_name": state.user_name,
                "experience_points": state.experience_points,
                "unlocked_badge_ids": sorted(state.unlocked_badge_ids),
                "completed_lesson_ids": sorted(state.completed_lesson_ids),
            },
        }

        path = Path(export_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return _transfer_summary(state)

    def import_progress(self, import_path: Path | str) -> LedgerTransferSummary:
        """Merge an exported ledger into the current one."""
        path = Path(import_path)
        raw_obj: object = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw_obj, dict):
            raise ValueError("Import file root must be a JSON object.")
        raw = cast(dict[str, object], raw_obj)

        format_version = _coerce_int(raw.get("format_version", 0))
        if format_version is None:
            raise ValueError("Import file has invalid format_version.")
        if format_version > EXPORT_FORMAT_VERSION:
            raise ValueError(
                f"Import file format version {format_version} is newer than supported {EXPORT_FORMAT_VERSION}."
            )

        ledger_obj = raw.get("ledger")
        if not isinstance(ledger_obj, dict):
            raise ValueError("Import file has no ledger section.")
        ledger = cast(dict[str, object], ledger_obj)

        incoming = ProgressionState(
            experience_points=max(0, _coerce_int(ledger.get("experience_points", 0), default=0) or 0),
            unlocked_badge_ids=frozenset(_normalize_ids(ledger.get("unlocked_badge_ids"))),
            completed_lesson_ids=frozenset(
                lesson_id
                for lesson_id in (_coerce_int(item) for item in _normalize_ids(ledger.get("completed_lesson_ids")))
                if lesson_id is not None
            ),
        )
        self.progression.merge(incoming)
        user_name = ledger.get("user_name")
        if isinstance(user_name, str) and user_name.strip():
            self.progression.set_user_name(user_name)
        return _transfer_summary(self.progression.snapshot())

    def close(self) -> None:
        """Close resources."""
        self.progression.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort cleanup for test/process teardown."""
        try:
            self.close()
        except Exception:
            pass


def _transfer_summary(state: ProgressionState) -> LedgerTransferSummary:
    return LedgerTransferSummary(
        user_name=state.user_name,
        experience_points=state.experience_points,
        badge_count=len(state.unlocked_badge_ids),
        lesson_count=len(state.completed_lesson_ids),
    )


def _normalize_ids(raw: object) -> set[str]:
    """Normalize an id collection given as a list or as legacy comma-joined text."""
    if isinstance(raw, str):
        return set(decode_id_set(raw))
    if not isinstance(raw, list):
        return set()
    items = cast(list[object], raw)
    return {str(item).strip() for item in items if isinstance(item, str | int) and str(item).strip()}


def _coerce_int(value: object, default: int | None = None) -> int | None:
    """Coerce value to int for import normalization."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default
