from nebulacademy.evaluator import EPSILON, EvaluationContext, approx_equal, evaluate
from nebulacademy.models import (
    AnyGoal,
    ApplyForce,
    BuildOutpost,
    EntityPlaced,
    GenerateBelt,
    ModifyGravity,
    ModifyOrbit,
    ModifyPhysics,
    ModifyPosition,
    ModifyProperty,
    NoGoal,
    PartPlaced,
    PlaceEntity,
    PlaceSatellite,
)
from nebulacademy.parser import extract_parameters


def _code(text: str) -> EvaluationContext:
    return EvaluationContext(parameters=extract_parameters(text))


def test_none_and_any_goals() -> None:
    assert evaluate(NoGoal(), _code("radius: 1")) is False
    assert evaluate(AnyGoal(), EvaluationContext()) is True


def test_color_and_radius_goal() -> None:
    goal = ModifyProperty(target="Sun", required_color="yellow", min_radius=0.4)
    assert evaluate(goal, _code("color: .yellow\nradius: 0.45")) is True
    assert evaluate(goal, _code("color: .yellow\nradius: 0.4")) is True
    assert evaluate(goal, _code("color: .yellow\nradius: 0.3")) is False
    assert evaluate(goal, _code("color: .white\nradius: 0.5")) is False
    assert evaluate(goal, _code("color: .gray\nradius: 0.5")) is False
    assert evaluate(goal, _code("color: .chartreuse\nradius: 0.5")) is False


def test_orbit_goal_uses_epsilon_comparison() -> None:
    goal = ModifyOrbit(target="Earth", target_radius=0.8, target_speed=2.0)
    assert evaluate(goal, _code("orbitRadius: 0.8\norbitSpeed: 2.0")) is True
    assert evaluate(goal, _code("orbitRadius: 0.80\norbitSpeed: 2")) is True
    assert evaluate(goal, _code("orbitRadius: 0.8\norbitSpeed: 1.0")) is False
    assert evaluate(goal, _code("orbitRadius: 0.8\norbitSpeed: 0.5")) is False
    assert evaluate(goal, _code("orbitRadius: 0.85\norbitSpeed: 2.0")) is False


def test_belt_goal() -> None:
    goal = GenerateBelt(target="Sun", min_count=20, target_radius=1.5)
    assert evaluate(goal, _code("count: 20\norbitRadius: 1.5")) is True
    assert evaluate(goal, _code("count: 19\norbitRadius: 1.5")) is False
    assert evaluate(goal, _code("count: 5\norbitRadius: 1.5")) is False
    assert evaluate(goal, _code("count: 40\norbitRadius: 1.2")) is False


def test_position_gravity_and_force_goals() -> None:
    assert evaluate(ModifyPosition(target="Earth", target_x=0.8), _code("positionX: 0.8")) is True
    assert evaluate(ModifyPosition(target="Earth", target_x=0.8), _code("positionX: 0.3")) is False
    assert evaluate(ModifyGravity(target_gravity=1.62), _code("gravity: 1.62")) is True
    assert evaluate(ModifyGravity(target_gravity=1.62), _code("")) is False
    force_goal = ApplyForce(target="Rocket", required_z=-10)
    assert evaluate(force_goal, _code("let force = SIMD3<Float>(0, 0, -10)")) is True
    assert evaluate(force_goal, _code("let force = SIMD3<Float>(0, 0, -3)")) is False


def test_physics_goal_checks_only_present_fields() -> None:
    goal = ModifyPhysics(target="Crate", target_friction=0.8, target_restitution=0.9)
    assert evaluate(goal, _code("friction: 0.8\nmass: 12\nrestitution: 0.9")) is True
    assert evaluate(goal, _code("friction: 0.8\nrestitution: 0.5")) is False
    assert evaluate(ModifyPhysics(target="Crate"), _code("")) is True


def test_code_goals_fail_without_parameters() -> None:
    goal = ModifyGravity(target_gravity=9.8)
    assert evaluate(goal, EvaluationContext()) is False


def test_place_entity_matches_event_name() -> None:
    goal = PlaceEntity(name="Sun")
    assert evaluate(goal, EvaluationContext(events=(EntityPlaced(name="Sun"),))) is True
    assert evaluate(goal, EvaluationContext(events=(EntityPlaced(name="Moon"),))) is False
    assert evaluate(goal, EvaluationContext(events=(PartPlaced(),))) is False


def test_satellite_goal_needs_link_and_orbit() -> None:
    goal = PlaceSatellite(parent="Earth", name="Moon", target_radius=0.15, target_speed=4.0)
    params = extract_parameters("orbitRadius: 0.15\norbitSpeed: 4.0")
    linked = frozenset({("Earth", "Moon")})
    assert evaluate(goal, EvaluationContext(parameters=params, satellite_links=linked)) is True
    assert evaluate(goal, EvaluationContext(parameters=params)) is False
    wrong_orbit = extract_parameters("orbitRadius: 0.5\norbitSpeed: 4.0")
    assert evaluate(goal, EvaluationContext(parameters=wrong_orbit, satellite_links=linked)) is False


def test_outpost_goal_counts_parts() -> None:
    goal = BuildOutpost(required_parts=5)
    assert evaluate(goal, EvaluationContext(parts_placed=4)) is False
    assert evaluate(goal, EvaluationContext(parts_placed=5)) is True
    assert evaluate(goal, EvaluationContext(parts_placed=6)) is True


def test_unknown_goal_raises_type_error() -> None:
    try:
        evaluate("orbit", EvaluationContext())  # type: ignore[arg-type]
        raise AssertionError("Expected TypeError for unsupported goal.")
    except TypeError as exc:
        assert "Unsupported goal" in str(exc)


def test_approx_equal_bounds() -> None:
    assert approx_equal(0.8, 0.8 + EPSILON / 2) is True
    assert approx_equal(0.8, 0.8 + EPSILON * 2) is False
