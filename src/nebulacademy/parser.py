"""Lenient extraction of parameter declarations from the user-edited code buffer.

The buffer is a stylized parameter list, not a program. Each line may hold one or more
``name: value`` (or ``name = value``) declarations::

    color: .yellow
    radius: 0.5
    let planet = Sphere(orbitRadius: 0.8, orbitSpeed: 2.0)

Names match case-insensitively and as whole identifiers, the first textual occurrence of a
name wins, and every extractor falls back to the caller's default instead of raising.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

COLOR_TABLE: dict[str, tuple[float, float, float]] = {
    "red": (1.0, 0.0, 0.0),
    "blue": (0.0, 0.0, 1.0),
    "green": (0.0, 1.0, 0.0),
    "yellow": (1.0, 1.0, 0.0),
    "orange": (1.0, 0.5, 0.0),
    "purple": (0.5, 0.0, 0.5),
    "cyan": (0.0, 1.0, 1.0),
    "magenta": (1.0, 0.0, 1.0),
    "white": (1.0, 1.0, 1.0),
    "black": (0.0, 0.0, 0.0),
    "gray": (0.5, 0.5, 0.5),
    "brown": (0.6, 0.4, 0.2),
}
COLOR_ALIASES = {"grey": "gray"}
FALLBACK_COLOR = "cyan"

SHAPES = frozenset({"box", "sphere", "cylinder", "cone", "plane", "capsule"})
FALLBACK_SHAPE = "box"

MAX_COUNT = 200

_MARKER_RE = re.compile(r"(?<!\w)([A-Za-z_]\w*)\s*(?::|=(?!=))")
_NUMBER_RE = re.compile(r"(?<![\w.])-?(?:\d+(?:\.\d*)?|\.\d+)")
_DOTTED_NAME_RE = re.compile(r"\.\s*([A-Za-z]+)")
_BARE_NAME_RE = re.compile(r"\s*\"?([A-Za-z]+)")


@dataclass(frozen=True)
class Declaration:
    """One `name: value` declaration found in the buffer."""

    name: str
    value: str
    line: int
    start: int
    end: int

    @property
    def key(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class Parameters:
    """Every parameter the goal evaluator can grade, resolved to typed values."""

    color: str = FALLBACK_COLOR
    shape: str = FALLBACK_SHAPE
    size: float = 0.1
    width: float = 0.1
    height: float = 0.1
    depth: float = 0.1
    chamfer: float = 0.0
    radius: float = 0.08
    position_x: float = 0.0
    orbit_radius: float = 0.5
    orbit_speed: float = 1.0
    rotation_speed: float = 1.0
    gravity: float = 9.8
    friction: float = 0.5
    mass: float = 1.0
    restitution: float = 0.5
    force: tuple[float, float, float] = (0.0, 0.0, -3.0)
    scale: tuple[float, float, float] = (1.0, 1.0, 1.0)
    count: int = 5
    metallic: bool = True


DEFAULTS = Parameters()


def _comment_start(line: str) -> int:
    """Return the index where a trailing `//` or `#` comment begins."""
    cut = len(line)
    for marker in ("//", "#"):
        index = line.find(marker)
        if index != -1:
            cut = min(cut, index)
    return cut


def _value_span(line: str, start: int, end: int) -> tuple[int, int]:
    """Trim separators and unbalanced closing parentheses around a raw value."""
    separators = " \t,;"
    while start < end and line[start].isspace():
        start += 1
    while end > start and line[end - 1] in separators:
        end -= 1
    depth = line.count("(", start, end) - line.count(")", start, end)
    while depth < 0 and end > start and line[end - 1] == ")":
        end -= 1
        depth += 1
        while end > start and line[end - 1] in separators:
            end -= 1
    return (start, end)


def scan(text: str) -> list[Declaration]:
    """Return every declaration in textual order, duplicates included."""
    declarations: list[Declaration] = []
    if not isinstance(text, str):
        return declarations
    for line_no, line in enumerate(text.splitlines()):
        code_end = _comment_start(line)
        markers = list(_MARKER_RE.finditer(line, 0, code_end))
        for index, marker in enumerate(markers):
            raw_end = markers[index + 1].start() if index + 1 < len(markers) else code_end
            start, end = _value_span(line, marker.end(), raw_end)
            declarations.append(
                Declaration(name=marker.group(1), value=line[start:end], line=line_no, start=start, end=end)
            )
    return declarations


def tokenize(text: str) -> dict[str, Declaration]:
    """Map lowercase parameter names to their first declaration."""
    found: dict[str, Declaration] = {}
    for declaration in scan(text):
        found.setdefault(declaration.key, declaration)
    return found


def _numbers(value: str) -> list[float]:
    values: list[float] = []
    for match in _NUMBER_RE.finditer(value):
        try:
            number = float(match.group(0))
        except ValueError:
            continue
        if math.isfinite(number):
            values.append(number)
    return values


def _float_from(declarations: dict[str, Declaration], name: str, default: float) -> float:
    declaration = declarations.get(name.lower())
    if declaration is None:
        return default
    numbers = _numbers(declaration.value)
    return numbers[0] if numbers else default


def _name_from(declarations: dict[str, Declaration], name: str) -> str | None:
    """Return the identifier assigned to `name`, e.g. `yellow` for `color: .yellow`."""
    declaration = declarations.get(name.lower())
    if declaration is None:
        return None
    match = _DOTTED_NAME_RE.search(declaration.value) or _BARE_NAME_RE.match(declaration.value)
    if match is None:
        return None
    return match.group(1).lower()


def _color_from(declarations: dict[str, Declaration], default: str) -> str:
    name = _name_from(declarations, "color")
    if name is None:
        return default
    name = COLOR_ALIASES.get(name, name)
    return name if name in COLOR_TABLE else default


def _shape_from(declarations: dict[str, Declaration], default: str) -> str:
    name = _name_from(declarations, "shape")
    if name is None or name not in SHAPES:
        return default
    return name


def _count_from(declarations: dict[str, Declaration], default: int) -> int:
    declaration = declarations.get("count")
    if declaration is None:
        return default
    numbers = _numbers(declaration.value)
    if not numbers:
        return default
    return max(1, min(int(numbers[0]), MAX_COUNT))


def _bool_from(declarations: dict[str, Declaration], name: str, default: bool) -> bool:
    declaration = declarations.get(name.lower())
    if declaration is None:
        return default
    lowered = declaration.value.strip().lower()
    if lowered.startswith("true"):
        return True
    if lowered.startswith("false"):
        return False
    return default


def _vector_from(declarations: dict[str, Declaration], name: str) -> list[float] | None:
    declaration = declarations.get(name.lower())
    if declaration is None:
        return None
    numbers = _numbers(declaration.value)
    return numbers if len(numbers) >= 3 else None


def _force_from(declarations: dict[str, Declaration], default_z: float) -> tuple[float, float, float]:
    vector = _vector_from(declarations, "force")
    if vector is not None:
        return (0.0, 0.0, vector[2])
    return (0.0, 0.0, _float_from(declarations, "forceZ", default_z))


def _scale_from(declarations: dict[str, Declaration]) -> tuple[float, float, float]:
    vector = _vector_from(declarations, "scale")
    if vector is not None:
        return (vector[0], vector[1], vector[2])
    return (
        _float_from(declarations, "scaleX", 1.0),
        _float_from(declarations, "scaleY", 1.0),
        _float_from(declarations, "scaleZ", 1.0),
    )


def _position_x_from(declarations: dict[str, Declaration], default: float) -> float:
    if "positionx" in declarations:
        return _float_from(declarations, "positionX", default)
    vector = _vector_from(declarations, "position")
    if vector is not None:
        return vector[0]
    return default


def extract_float(text: str, name: str, default: float) -> float:
    """Return the first numeric literal declared for `name`, or `default`."""
    return _float_from(tokenize(text), name, default)


def extract_count(text: str, default: int = DEFAULTS.count) -> int:
    """Return the declared object count clamped to `[1, MAX_COUNT]`."""
    return _count_from(tokenize(text), default)


def extract_color(text: str, default: str = FALLBACK_COLOR) -> str:
    """Return the declared color name; unknown names resolve to `default`."""
    return _color_from(tokenize(text), default)


def extract_shape(text: str, default: str = FALLBACK_SHAPE) -> str:
    return _shape_from(tokenize(text), default)


def extract_bool(text: str, name: str, default: bool) -> bool:
    return _bool_from(tokenize(text), name, default)


def extract_force(text: str, default_z: float = DEFAULTS.force[2]) -> tuple[float, float, float]:
    """Return the declared force with only its depth component kept."""
    return _force_from(tokenize(text), default_z)


def extract_parameters(text: str) -> Parameters:
    """Resolve every known parameter from one pass over the buffer."""
    declarations = tokenize(text)
    return Parameters(
        color=_color_from(declarations, DEFAULTS.color),
        shape=_shape_from(declarations, DEFAULTS.shape),
        size=_float_from(declarations, "size", DEFAULTS.size),
        width=_float_from(declarations, "width", DEFAULTS.width),
        height=_float_from(declarations, "height", DEFAULTS.height),
        depth=_float_from(declarations, "depth", DEFAULTS.depth),
        chamfer=_float_from(declarations, "chamfer", DEFAULTS.chamfer),
        radius=_float_from(declarations, "radius", DEFAULTS.radius),
        position_x=_position_x_from(declarations, DEFAULTS.position_x),
        orbit_radius=_float_from(declarations, "orbitRadius", DEFAULTS.orbit_radius),
        orbit_speed=_float_from(declarations, "orbitSpeed", DEFAULTS.orbit_speed),
        rotation_speed=_float_from(declarations, "rotationSpeed", DEFAULTS.rotation_speed),
        gravity=_float_from(declarations, "gravity", DEFAULTS.gravity),
        friction=_float_from(declarations, "friction", DEFAULTS.friction),
        mass=_float_from(declarations, "mass", DEFAULTS.mass),
        restitution=_float_from(declarations, "restitution", DEFAULTS.restitution),
        force=_force_from(declarations, DEFAULTS.force[2]),
        scale=_scale_from(declarations),
        count=_count_from(declarations, DEFAULTS.count),
        metallic=_bool_from(declarations, "metallic", DEFAULTS.metallic),
    )


def color_rgb(name: str) -> tuple[float, float, float]:
    """Return RGB components for a color name, using the fallback color when unknown."""
    return COLOR_TABLE.get(COLOR_ALIASES.get(name, name), COLOR_TABLE[FALLBACK_COLOR])


def set_declaration(text: str, name: str, value: str) -> str:
    """Replace the first declaration of `name` in place, or append `name: value`."""
    lines = text.splitlines()
    for declaration in scan(text):
        if declaration.key != name.lower():
            continue
        line = lines[declaration.line]
        prefix = line[: declaration.start]
        if not prefix.endswith((" ", "\t")):
            prefix += " "
        lines[declaration.line] = prefix + value + line[declaration.end :]
        return "\n".join(lines)
    lines.append(f"{name}: {value}")
    return "\n".join(lines)
