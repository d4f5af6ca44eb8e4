"""Per-lesson step state machine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .evaluator import EvaluationContext, evaluate
from .models import AnyGoal, Lesson, LessonStep, NoGoal, PartPlaced, SatelliteLinked, SceneEvent
from .parser import extract_parameters

logger = logging.getLogger(__name__)


class ControllerStatus(Enum):
    NOT_STARTED = "not_started"
    STEP_ACTIVE = "step_active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class TutorialState:
    """HUD snapshot of one lesson instance."""

    lesson_id: int
    status: ControllerStatus
    step_index: int
    step_count: int
    parts_placed: int

    @property
    def lesson_completed(self) -> bool:
        return self.status is ControllerStatus.COMPLETED


@dataclass(frozen=True)
class Transition:
    """Result of one input: whether the step advanced and whether that finished the lesson."""

    advanced: bool = False
    lesson_completed: bool = False
    from_step: int | None = None
    to_step: int | None = None


NO_TRANSITION = Transition()


class TutorialController:
    """Drives one lesson instance through `NOT_STARTED`, `STEP_ACTIVE(i)`, and `COMPLETED`.

    Every input produces at most one transition. A satisfied goal only moves the step it was
    evaluated against, so repeating the same input after the step advanced cannot complete
    the lesson twice.
    """

    def __init__(self, lesson: Lesson) -> None:
        self.lesson = lesson
        self._status = ControllerStatus.NOT_STARTED
        self._step_index = 0
        self._parts_placed = 0
        self._satellite_links: set[tuple[str, str]] = set()
        self._last_code: str | None = None

    @property
    def status(self) -> ControllerStatus:
        return self._status

    @property
    def step_index(self) -> int:
        return self._step_index

    @property
    def current_step(self) -> LessonStep | None:
        if self._status is not ControllerStatus.STEP_ACTIVE:
            return None
        return self.lesson.steps[self._step_index]

    def state(self) -> TutorialState:
        return TutorialState(
            lesson_id=self.lesson.id,
            status=self._status,
            step_index=self._step_index,
            step_count=self.lesson.step_count,
            parts_placed=self._parts_placed,
        )

    def start(self) -> None:
        """Enter the lesson at its first step, clearing per-lesson counters."""
        self._status = ControllerStatus.STEP_ACTIVE
        self._step_index = 0
        self._parts_placed = 0
        self._satellite_links.clear()
        self._last_code = None

    def reset(self) -> None:
        self.start()

    def continue_step(self) -> Transition:
        """Handle an explicit continue; only `none` and `any` goals accept it."""
        step = self.current_step
        if step is None:
            logger.debug("Continue ignored for lesson %s in state %s", self.lesson.id, self._status.value)
            return NO_TRANSITION
        if isinstance(step.goal, NoGoal | AnyGoal):
            return self._advance()
        return NO_TRANSITION

    def execute(self, code: str) -> Transition:
        """Grade the code buffer against the current step."""
        step = self.current_step
        if step is None:
            return NO_TRANSITION
        self._last_code = code
        return self._evaluate(step, code=code, events=())

    def report_event(self, event: SceneEvent) -> Transition:
        """Record a scene event and grade the current step against it."""
        step = self.current_step
        if step is None:
            logger.debug("Scene event %r ignored for lesson %s", event, self.lesson.id)
            return NO_TRANSITION
        if isinstance(event, PartPlaced):
            self._parts_placed += 1
        elif isinstance(event, SatelliteLinked):
            self._satellite_links.add((event.parent, event.name))
        return self._evaluate(step, code=self._last_code, events=(event,))

    def _evaluate(self, step: LessonStep, code: str | None, events: tuple[SceneEvent, ...]) -> Transition:
        parameters = extract_parameters(code) if code is not None and step.show_code_editor else None
        context = EvaluationContext(
            parameters=parameters,
            events=events,
            parts_placed=self._parts_placed,
            satellite_links=frozenset(self._satellite_links),
        )
        if not evaluate(step.goal, context):
            return NO_TRANSITION
        return self._advance()

    def _advance(self) -> Transition:
        from_step = self._step_index
        if from_step + 1 >= self.lesson.step_count:
            self._status = ControllerStatus.COMPLETED
            logger.info("Lesson %s completed", self.lesson.id)
            return Transition(advanced=True, lesson_completed=True, from_step=from_step, to_step=None)
        self._step_index = from_step + 1
        logger.debug("Lesson %s advanced to step %s", self.lesson.id, self._step_index)
        return Transition(advanced=True, lesson_completed=False, from_step=from_step, to_step=self._step_index)
