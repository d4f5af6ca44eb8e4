"""Static reward tables: badges, levels, and lesson-to-badge mapping."""

from __future__ import annotations

from .models import Badge, LevelInfo

LESSON_XP_REWARD = 100
CAPSTONE_BADGE_ID = "completionist"

BADGES: dict[str, Badge] = {
    badge.id: badge
    for badge in (
        Badge("first_steps", "First Steps", "Place your first star.", "shoeprints.fill", 50),
        Badge("color_wizard", "Color Wizard", "Paint the Sun.", "paintpalette.fill", 100),
        Badge("navigator", "Navigator", "Position a planet precisely.", "location.north.fill", 75),
        Badge("orbit_pilot", "Orbit Pilot", "Tune an orbit.", "circle.dashed", 100),
        Badge("moon_maker", "Moon Maker", "Put a moon in orbit.", "moon.fill", 125),
        Badge("belt_builder", "Belt Builder", "Generate an asteroid belt.", "circle.hexagongrid.fill", 150),
        Badge("physics_beginner", "Physics Beginner", "Learn gravity.", "arrow.down.to.line.alt", 75),
        Badge("force_wielder", "Force Wielder", "Control impulse forces.", "wind", 125),
        Badge("bounce_master", "Bounce Master", "Master friction, mass, and restitution.", "basketball.fill", 100),
        Badge("master_builder", "Master Builder", "Build a lunar outpost.", "building.2.fill", 200),
        Badge(CAPSTONE_BADGE_ID, "Certified ARchitect", "Complete every lesson.", "checkmark.seal.fill", 500),
    )
}

LESSON_BADGES: dict[int, str] = {
    1: "first_steps",
    2: "color_wizard",
    3: "navigator",
    4: "orbit_pilot",
    5: "moon_maker",
    6: "belt_builder",
    7: "physics_beginner",
    8: "force_wielder",
    9: "bounce_master",
    10: "master_builder",
}

# Ascending by threshold; the first entry must start at 0 XP.
LEVELS: tuple[LevelInfo, ...] = (
    LevelInfo(1, "Cadet", 0),
    LevelInfo(2, "Stargazer", 150),
    LevelInfo(3, "Navigator", 400),
    LevelInfo(4, "Astronomer", 800),
    LevelInfo(5, "Commander", 1300),
    LevelInfo(6, "Architect", 2000),
    LevelInfo(7, "Grand Architect", 3000),
)


def level_for(experience_points: int) -> LevelInfo:
    """Return the highest level whose threshold has been reached."""
    current = LEVELS[0]
    for level in LEVELS:
        if level.xp_required <= experience_points:
            current = level
    return current


def next_level_after(level: LevelInfo) -> LevelInfo | None:
    for candidate in LEVELS:
        if candidate.xp_required > level.xp_required:
            return candidate
    return None
