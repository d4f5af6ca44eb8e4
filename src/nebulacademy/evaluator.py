"""Pure goal evaluation for lesson steps."""

from __future__ import annotations

from dataclasses import dataclass

from .models import (
    CODE_GOALS,
    AnyGoal,
    ApplyForce,
    BuildOutpost,
    EntityPlaced,
    GenerateBelt,
    Goal,
    ModifyGravity,
    ModifyOrbit,
    ModifyPhysics,
    ModifyPosition,
    ModifyProperty,
    NoGoal,
    PlaceEntity,
    PlaceSatellite,
    SceneEvent,
)
from .parser import Parameters

EPSILON = 1e-3


@dataclass(frozen=True)
class EvaluationContext:
    """Everything a goal may be graded against.

    `parameters` is only present when the step shows the code editor. `events` holds the
    scene events that triggered this evaluation, while `parts_placed` and `satellite_links`
    accumulate over the current lesson instance.
    """

    parameters: Parameters | None = None
    events: tuple[SceneEvent, ...] = ()
    parts_placed: int = 0
    satellite_links: frozenset[tuple[str, str]] = frozenset()


def approx_equal(actual: float, expected: float, epsilon: float = EPSILON) -> bool:
    """Compare numbers parsed from text, where `0.80` and `0.8` must agree."""
    return abs(actual - expected) <= epsilon


def _optional_match(actual: float, expected: float | None) -> bool:
    return expected is None or approx_equal(actual, expected)


def evaluate(goal: Goal, context: EvaluationContext) -> bool:
    """Return whether `context` satisfies `goal`."""
    if isinstance(goal, NoGoal):
        return False
    if isinstance(goal, AnyGoal):
        return True
    if isinstance(goal, PlaceEntity):
        return any(isinstance(event, EntityPlaced) and event.name == goal.name for event in context.events)
    if isinstance(goal, BuildOutpost):
        return context.parts_placed >= goal.required_parts

    params = context.parameters
    if params is None:
        if isinstance(goal, CODE_GOALS):
            return False
        raise TypeError(f"Unsupported goal: {goal!r}")

    if isinstance(goal, ModifyProperty):
        return params.color == goal.required_color and params.radius >= goal.min_radius - EPSILON
    if isinstance(goal, ModifyPosition):
        return approx_equal(params.position_x, goal.target_x)
    if isinstance(goal, ModifyOrbit):
        return approx_equal(params.orbit_radius, goal.target_radius) and approx_equal(
            params.orbit_speed, goal.target_speed
        )
    if isinstance(goal, PlaceSatellite):
        linked = (goal.parent, goal.name) in context.satellite_links
        return (
            linked
            and approx_equal(params.orbit_radius, goal.target_radius)
            and approx_equal(params.orbit_speed, goal.target_speed)
        )
    if isinstance(goal, GenerateBelt):
        return params.count >= goal.min_count and approx_equal(params.orbit_radius, goal.target_radius)
    if isinstance(goal, ModifyGravity):
        return approx_equal(params.gravity, goal.target_gravity)
    if isinstance(goal, ApplyForce):
        return approx_equal(params.force[2], goal.required_z)
    if isinstance(goal, ModifyPhysics):
        return (
            _optional_match(params.friction, goal.target_friction)
            and _optional_match(params.mass, goal.target_mass)
            and _optional_match(params.restitution, goal.target_restitution)
        )
    raise TypeError(f"Unsupported goal: {goal!r}")
