"""Serial port enumeration."""

from typing import List, Tuple

from serial.tools import list_ports as _list_ports


def describe_ports() -> List[Tuple[str, str]]:
    """Enumerate available serial ports.

    Returns:
        Sorted list of (device, description) tuples,
        e.g. [("/dev/ttyACM0", "Marlin USB Device"), ...]
    """
    ports = [(p.device, p.description) for p in _list_ports.comports()]
    ports.sort(key=lambda item: item[0])
    return ports


def list_ports() -> List[str]:
    """Get sorted list of available serial port device names."""
    return [device for device, _ in describe_ports()]
