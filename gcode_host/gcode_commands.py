"""G-code builders for manual printer control.

Relative moves switch to relative positioning (G91) and back to absolute
(G90) around the move, so a jog never disturbs later absolute commands.
"""

from __future__ import annotations

from typing import Iterable, List

from .utils.constants import (
    EXTRUDE_FEED_DEFAULT,
    JOG_FEED_DEFAULT,
    POSITION_QUERY,
    TEMPERATURE_QUERY,
)
from .utils.validation import (
    validate_axis,
    validate_distance,
    validate_extruder,
    validate_feed_rate,
)

__all__ = [
    "TEMPERATURE_QUERY",
    "POSITION_QUERY",
    "build_home",
    "build_jog",
    "build_extrude",
]


def build_home(axes: str | Iterable[str] = "") -> str:
    """Build a homing command.

    Args:
        axes: Axes to home (e.g. "XY" or ["X", "Z"]); empty homes all axes

    Returns:
        "G28" or "G28 X Y"

    Raises:
        InvalidParameterError: If an axis is unknown
    """
    if isinstance(axes, str):
        axes = [a for a in axes.replace(" ", "").replace(",", "")]
    names: List[str] = []
    for axis in axes:
        name = validate_axis(axis)
        if name not in names:
            names.append(name)
    return " ".join(["G28", *names])


def build_jog(axis: str, distance: float, feed: float = JOG_FEED_DEFAULT) -> List[str]:
    """Build a relative move along one axis.

    Args:
        axis: "X", "Y" or "Z"
        distance: Signed distance in mm
        feed: Feed rate in mm/min

    Returns:
        e.g. ["G91", "G1 X10.000 F3000", "G90"]
    """
    axis = validate_axis(axis)
    distance = validate_distance(distance)
    feed = validate_feed_rate(feed)
    return ["G91", f"G1 {axis}{distance:.3f} F{feed:g}", "G90"]


def build_extrude(extruder: str, distance: float, feed: float = EXTRUDE_FEED_DEFAULT) -> List[str]:
    """Build a relative extrusion (or retraction, if negative) on one extruder.

    Args:
        extruder: "E1" or "E2"
        distance: Filament length in mm
        feed: Feed rate in mm/min
    """
    tool = validate_extruder(extruder)
    distance = validate_distance(distance)
    feed = validate_feed_rate(feed)
    return [f"T{tool}", "G91", f"G1 E{distance:.3f} F{feed:g}", "G90"]
