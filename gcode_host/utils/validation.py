"""Validation utilities for GCode Host.

This module provides validation functions for various input types,
ensuring data integrity throughout the application.
"""

from .constants import EXTRUDER_TOOLS, MAX_JOG_DISTANCE, MOTION_AXES
from .exceptions import InvalidParameterError, InvalidRangeError


def validate_port_name(port: str) -> str:
    """Validate serial port name.
    
    Args:
        port: Serial port name (e.g., "COM3" or "/dev/ttyUSB0")
        
    Returns:
        The validated port name
        
    Raises:
        InvalidParameterError: If port name is invalid
    """
    if not port or not isinstance(port, str):
        raise InvalidParameterError("port", port, "must be non-empty string")
    
    port = port.strip()
    if not port:
        raise InvalidParameterError("port", port, "must be non-empty")
    
    return port


def validate_command(command: str) -> str:
    """Validate a single outgoing command line.
    
    The worker appends the line terminator itself, so a command must not
    carry one (or any other line break) of its own.
    
    Args:
        command: Command text (e.g., "G28")
        
    Returns:
        The command with surrounding whitespace removed (may be empty)
        
    Raises:
        InvalidParameterError: If the command is not a string, spans lines
            or contains non-ASCII characters
    """
    if not isinstance(command, str):
        raise InvalidParameterError("command", command, "must be a string")
    
    command = command.strip()
    if "\n" in command or "\r" in command:
        raise InvalidParameterError("command", command, "must be a single line")
    
    if not command.isascii():
        raise InvalidParameterError("command", command, "must be ASCII")
    
    return command


def validate_interval(interval: float, min_val: float = 0.0) -> float:
    """Validate time interval.
    
    Args:
        interval: Time interval in seconds
        min_val: Minimum allowed value (default 0.0)
        
    Returns:
        The validated interval
        
    Raises:
        InvalidParameterError: If interval is invalid
    """
    try:
        interval = float(interval)
    except (TypeError, ValueError):
        raise InvalidParameterError("interval", interval, "must be numeric")
    
    if interval < min_val:
        raise InvalidParameterError(
            "interval",
            interval,
            f"must be >= {min_val}"
        )
    
    return interval


def validate_feed_rate(feed: float) -> float:
    """Validate feed rate value.
    
    Args:
        feed: Feed rate in mm/min
        
    Returns:
        The validated feed rate
        
    Raises:
        InvalidParameterError: If feed rate is invalid
    """
    try:
        feed = float(feed)
    except (TypeError, ValueError):
        raise InvalidParameterError("feed_rate", feed, "must be numeric")
    
    if feed <= 0:
        raise InvalidParameterError("feed_rate", feed, "must be positive")
    
    return feed


def validate_axis(axis: str) -> str:
    """Validate a motion axis name (case-insensitive).
    
    Returns:
        The upper-case axis letter
    """
    if not isinstance(axis, str) or axis.strip().upper() not in MOTION_AXES:
        raise InvalidParameterError("axis", axis, f"must be one of {MOTION_AXES}")
    return axis.strip().upper()


def validate_extruder(name: str) -> int:
    """Validate an extruder name and return its tool index."""
    key = name.strip().upper() if isinstance(name, str) else name
    if key not in EXTRUDER_TOOLS:
        raise InvalidParameterError(
            "extruder", name, f"must be one of {tuple(EXTRUDER_TOOLS)}"
        )
    return EXTRUDER_TOOLS[key]


def validate_distance(distance: float, max_abs: float = MAX_JOG_DISTANCE) -> float:
    """Validate a relative move distance.
    
    Args:
        distance: Signed distance in mm
        max_abs: Largest magnitude accepted
        
    Returns:
        The validated distance
        
    Raises:
        InvalidParameterError: If distance is not numeric or zero
        InvalidRangeError: If distance exceeds the limit
    """
    try:
        distance = float(distance)
    except (TypeError, ValueError):
        raise InvalidParameterError("distance", distance, "must be numeric")
    
    if distance == 0:
        raise InvalidParameterError("distance", distance, "must be non-zero")
    
    if abs(distance) > max_abs:
        raise InvalidRangeError(distance, -max_abs, max_abs)
    
    return distance
