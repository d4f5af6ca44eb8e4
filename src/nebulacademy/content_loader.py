"""Load declarative lesson content from bundled JSON resources."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from importlib import resources
from pathlib import Path
from typing import Any

from .models import (
    AnyGoal,
    ApplyForce,
    BuildOutpost,
    Challenge,
    GenerateBelt,
    Goal,
    Lesson,
    LessonStep,
    ModifyGravity,
    ModifyOrbit,
    ModifyPhysics,
    ModifyPosition,
    ModifyProperty,
    NoGoal,
    PlaceEntity,
    PlaceSatellite,
    PrerequisiteEntity,
)
from .rewards import BADGES, LESSON_BADGES

CONTENT_PACKAGE = "nebulacademy.content.lessons"


def _optional_float(raw: dict[str, Any], key: str) -> float | None:
    value = raw.get(key)
    return None if value is None else float(value)


GOAL_BUILDERS: dict[str, Callable[[dict[str, Any]], Goal]] = {
    "none": lambda raw: NoGoal(),
    "any": lambda raw: AnyGoal(),
    "place_entity": lambda raw: PlaceEntity(name=str(raw["name"])),
    "modify_property": lambda raw: ModifyProperty(
        target=str(raw["target"]),
        required_color=str(raw["required_color"]).lower(),
        min_radius=float(raw["min_radius"]),
    ),
    "modify_position": lambda raw: ModifyPosition(target=str(raw["target"]), target_x=float(raw["target_x"])),
    "modify_orbit": lambda raw: ModifyOrbit(
        target=str(raw["target"]),
        target_radius=float(raw["target_radius"]),
        target_speed=float(raw["target_speed"]),
    ),
    "place_satellite": lambda raw: PlaceSatellite(
        parent=str(raw["parent"]),
        name=str(raw["name"]),
        target_radius=float(raw["target_radius"]),
        target_speed=float(raw["target_speed"]),
    ),
    "generate_belt": lambda raw: GenerateBelt(
        target=str(raw["target"]),
        min_count=int(raw["min_count"]),
        target_radius=float(raw["target_radius"]),
    ),
    "modify_gravity": lambda raw: ModifyGravity(target_gravity=float(raw["target_gravity"])),
    "apply_force": lambda raw: ApplyForce(target=str(raw["target"]), required_z=float(raw["required_z"])),
    "modify_physics": lambda raw: ModifyPhysics(
        target=str(raw["target"]),
        target_friction=_optional_float(raw, "target_friction"),
        target_mass=_optional_float(raw, "target_mass"),
        target_restitution=_optional_float(raw, "target_restitution"),
    ),
    "build_outpost": lambda raw: BuildOutpost(required_parts=int(raw["required_parts"])),
}


def _goal_from_dict(raw: dict[str, Any]) -> Goal:
    """Build a goal variant from its tagged JSON form."""
    goal_type = str(raw.get("type", "none"))
    builder = GOAL_BUILDERS.get(goal_type)
    if builder is None:
        raise ValueError(f"Unknown goal type '{goal_type}'.")
    try:
        return builder(raw)
    except KeyError as exc:
        raise ValueError(f"Goal '{goal_type}' is missing field {exc}.") from exc


def _step_from_dict(raw: dict[str, Any]) -> LessonStep:
    return LessonStep(
        icon=str(raw.get("icon", "")),
        title=str(raw["title"]),
        instruction=str(raw.get("instruction", "")),
        hint=str(raw.get("hint", "")),
        show_code_editor=bool(raw.get("show_code_editor", False)),
        goal=_goal_from_dict(raw.get("goal", {})),
    )


def _entity_from_dict(raw: dict[str, Any]) -> PrerequisiteEntity:
    position = [float(value) for value in raw.get("position", [0, 0, 0])]
    if len(position) != 3:
        raise ValueError(f"Entity '{raw.get('name', '<unknown>')}' position must have 3 components.")
    count = raw.get("count")
    return PrerequisiteEntity(
        name=str(raw["name"]),
        shape=str(raw.get("shape", "box")),
        color=str(raw.get("color", "cyan")),
        radius=float(raw.get("radius", 0.1)),
        position=(position[0], position[1], position[2]),
        orbit_radius=_optional_float(raw, "orbit_radius"),
        orbit_speed=_optional_float(raw, "orbit_speed"),
        parent=str(raw["parent"]) if raw.get("parent") is not None else None,
        count=int(count) if count is not None else None,
    )


def _challenge_from_dict(raw: dict[str, Any] | None) -> Challenge | None:
    if not raw:
        return None
    return Challenge(
        id=str(raw["id"]),
        description=str(raw.get("description", "")),
        target_count=int(raw["target_count"]),
        xp_reward=int(raw.get("xp_reward", 0)),
    )


def _lesson_from_dict(raw: dict[str, Any]) -> Lesson:
    """Build a lesson from raw JSON content."""
    lesson_id = int(raw["id"])
    steps = tuple(_step_from_dict(item) for item in raw.get("steps", []))
    if not steps:
        raise ValueError(f"Lesson {lesson_id} has no steps.")
    code_editor_start_step = int(raw.get("code_editor_start_step", 0))
    if not 0 <= code_editor_start_step < len(steps):
        raise ValueError(f"Lesson {lesson_id} has code_editor_start_step outside its steps.")
    return Lesson(
        id=lesson_id,
        title=str(raw["title"]),
        description=str(raw.get("description", "")),
        steps=steps,
        code_editor_start_step=code_editor_start_step,
        prerequisites=tuple(_entity_from_dict(item) for item in raw.get("prerequisites", [])),
        starter_code=str(raw.get("starter_code", "")),
        challenge=_challenge_from_dict(raw.get("challenge")),
    )


def _build_catalog(raw_items: Iterable[dict[str, Any]]) -> dict[int, Lesson]:
    lessons: dict[int, Lesson] = {}
    for raw in raw_items:
        lesson = _lesson_from_dict(raw)
        if lesson.id in lessons:
            raise ValueError(f"Duplicate lesson id: {lesson.id}")
        lessons[lesson.id] = lesson
    _validate_dense_ids(lessons)
    _validate_reward_tables(lessons)
    return {lesson_id: lessons[lesson_id] for lesson_id in sorted(lessons)}


def load_lessons() -> dict[int, Lesson]:
    """Load bundled lessons ordered by id."""
    raw_items = [
        json.loads(entry.read_text(encoding="utf-8-sig"))
        for entry in sorted(resources.files(CONTENT_PACKAGE).iterdir(), key=lambda item: item.name)
        if entry.name.endswith(".json")
    ]
    return _build_catalog(raw_items)


def load_lessons_from_dir(path: Path) -> dict[int, Lesson]:
    """Load lessons from directory for tests/tools."""
    raw_items = [json.loads(file_path.read_text(encoding="utf-8-sig")) for file_path in sorted(path.glob("*.json"))]
    return _build_catalog(raw_items)


def _validate_dense_ids(lessons: dict[int, Lesson]) -> None:
    """Validate lesson ids run 1..N without gaps."""
    expected = list(range(1, len(lessons) + 1))
    if sorted(lessons) != expected:
        raise ValueError(f"Lesson ids must be dense from 1 to {len(lessons)}, got {sorted(lessons)}.")


def _validate_reward_tables(lessons: dict[int, Lesson]) -> None:
    """Validate that mapped badges exist for lessons present in the catalog."""
    for lesson_id, badge_id in LESSON_BADGES.items():
        if lesson_id in lessons and badge_id not in BADGES:
            raise ValueError(f"Lesson {lesson_id} maps to unknown badge '{badge_id}'.")
