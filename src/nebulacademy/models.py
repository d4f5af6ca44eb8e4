"""Core domain models for lessons, goals, rewards, and scene events."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NoGoal:
    """Step passes only on an explicit continue."""


@dataclass(frozen=True)
class AnyGoal:
    """Step passes on any input."""


@dataclass(frozen=True)
class PlaceEntity:
    """Place a named entity in the scene."""

    name: str


@dataclass(frozen=True)
class ModifyProperty:
    """Set the target's color and grow its radius to at least `min_radius`."""

    target: str
    required_color: str
    min_radius: float


@dataclass(frozen=True)
class ModifyPosition:
    """Move the target along the X axis."""

    target: str
    target_x: float


@dataclass(frozen=True)
class ModifyOrbit:
    """Tune the target's orbit radius and speed."""

    target: str
    target_radius: float
    target_speed: float


@dataclass(frozen=True)
class PlaceSatellite:
    """Put a satellite in orbit around a parent entity."""

    parent: str
    name: str
    target_radius: float
    target_speed: float


@dataclass(frozen=True)
class GenerateBelt:
    """Generate a ring of objects around the target."""

    target: str
    min_count: int
    target_radius: float


@dataclass(frozen=True)
class ModifyGravity:
    """Change world gravity."""

    target_gravity: float


@dataclass(frozen=True)
class ApplyForce:
    """Push the target along the depth axis."""

    target: str
    required_z: float


@dataclass(frozen=True)
class ModifyPhysics:
    """Match any subset of friction, mass, and restitution."""

    target: str
    target_friction: float | None = None
    target_mass: float | None = None
    target_restitution: float | None = None


@dataclass(frozen=True)
class BuildOutpost:
    """Place a number of outpost parts."""

    required_parts: int


Goal = (
    NoGoal
    | AnyGoal
    | PlaceEntity
    | ModifyProperty
    | ModifyPosition
    | ModifyOrbit
    | PlaceSatellite
    | GenerateBelt
    | ModifyGravity
    | ApplyForce
    | ModifyPhysics
    | BuildOutpost
)

# Goals graded from the code buffer rather than from scene interaction.
CODE_GOALS = (
    ModifyProperty,
    ModifyPosition,
    ModifyOrbit,
    PlaceSatellite,
    GenerateBelt,
    ModifyGravity,
    ApplyForce,
    ModifyPhysics,
)


@dataclass(frozen=True)
class EntityPlaced:
    """The user placed a logical entity in the scene."""

    name: str


@dataclass(frozen=True)
class PartPlaced:
    """The user placed one outpost part."""


@dataclass(frozen=True)
class SatelliteLinked:
    """The scene attached `name` to orbit around `parent`."""

    parent: str
    name: str


SceneEvent = EntityPlaced | PartPlaced | SatelliteLinked


@dataclass(frozen=True)
class LessonStep:
    """One instruction/goal pair inside a lesson."""

    icon: str
    title: str
    instruction: str
    hint: str
    show_code_editor: bool
    goal: Goal


@dataclass(frozen=True)
class PrerequisiteEntity:
    """Scene object a lesson assumes already exists. Used to seed rendering only."""

    name: str
    shape: str
    color: str
    radius: float
    position: tuple[float, float, float]
    orbit_radius: float | None = None
    orbit_speed: float | None = None
    parent: str | None = None
    count: int | None = None


@dataclass(frozen=True)
class Challenge:
    """Per-lesson reward challenge."""

    id: str
    description: str
    target_count: int
    xp_reward: int
    current_count: int = 0

    @property
    def is_completed(self) -> bool:
        return self.current_count >= self.target_count

    @property
    def progress(self) -> float:
        if self.target_count <= 0:
            return 1.0
        return min(1.0, self.current_count / self.target_count)


@dataclass(frozen=True)
class Lesson:
    """Ordered lesson made of steps."""

    id: int
    title: str
    description: str
    steps: tuple[LessonStep, ...]
    code_editor_start_step: int
    prerequisites: tuple[PrerequisiteEntity, ...]
    starter_code: str
    challenge: Challenge | None = None

    @property
    def step_count(self) -> int:
        return len(self.steps)


@dataclass(frozen=True)
class Badge:
    """Achievement unlocked at most once."""

    id: str
    name: str
    description: str
    icon: str
    xp_reward: int


@dataclass(frozen=True)
class LevelInfo:
    """Rank reached at an experience threshold."""

    level: int
    title: str
    xp_required: int
