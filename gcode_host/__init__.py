"""GCode Host - serial printer controller.

Sends commands to a printer over a line-oriented serial link, one
acknowledged command at a time.
"""

__version__ = "0.3.0"
__author__ = "Bob Kolbasowski"

from .controller import PrinterController
from .serial_worker import SerialLinkWorker
from .types import AckState, ConnectionState, ReportKind
from .utils import Settings

__all__ = [
    "PrinterController",
    "SerialLinkWorker",
    "AckState",
    "ConnectionState",
    "ReportKind",
    "Settings",
]
