#!/usr/bin/env python3
# GCode Host (serial printer controller)
# Copyright (C) 2026 Bob Kolbasowski
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
#
# Optional (not required by the license): If you make improvements, please consider
# contributing them back upstream (e.g., via a pull request) so others can benefit.
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Terminal front end for the printer controller.

Lines typed on stdin are enqueued as commands. Lines starting with ``:``
are handled locally (see ``:help``). Traffic is echoed with ``>>`` for
sent commands and ``<<`` for received lines.
"""

from __future__ import annotations

import argparse
import logging
import queue
import sys
import threading
from typing import Any, Callable, Sequence, TextIO

from . import __version__
from .controller import PrinterController
from .ports import describe_ports
from .status_poller import StatusPoller
from .types import ReportKind, UiEvent
from .utils.config import Settings
from .utils.constants import CONSOLE_POLL_INTERVAL, ERROR_NOT_CONNECTED
from .utils.exceptions import (
    GcodeHostException,
    PortOpenError,
    SettingsException,
    ValidationException,
)
from .utils.logging_config import get_log_dir, setup_logging

logger = logging.getLogger(__name__)

HELP_TEXT = """\
Local commands:
  :help                  show this text
  :ports                 list serial ports
  :connect [PORT]        connect (default: last port)
  :disconnect            close the connection
  :home [AXES]           home all axes or e.g. ':home XY'
  :jog AXIS [DIST]       relative move, e.g. ':jog X -10'
  :extrude E1|E2 DIST    extrude (negative retracts)
  :temp / :pos           query temperature / position now
  :poll on|off|SECONDS   control periodic status queries
  :queue                 show commands waiting for dispatch
  :quit                  disconnect and exit
Anything else is sent to the printer as-is."""

_NO_INPUT = object()


def _format_report(kind: ReportKind, values: dict[str, float]) -> str:
    parts = []
    for key, value in values.items():
        if key.endswith("_target"):
            continue
        target = values.get(f"{key}_target")
        if target is None:
            parts.append(f"{key}={value:g}")
        else:
            parts.append(f"{key}={value:g}/{target:g}")
    return f"[{kind.value}] " + " ".join(parts)


def _stdin_reader(stream: TextIO, input_q: "queue.Queue[str | None]") -> None:
    for line in stream:
        input_q.put(line.rstrip("\r\n"))
    input_q.put(None)


class Console:
    def __init__(
        self,
        printer: PrinterController,
        settings: Settings,
        poller: StatusPoller,
        *,
        out: TextIO | None = None,
    ):
        self.printer = printer
        self.settings = settings
        self.poller = poller
        self.out = out if out is not None else sys.stdout
        self.input_q: queue.Queue[str | None] = queue.Queue()
        self._local: dict[str, Callable[[list[str]], bool]] = {
            "help": self._cmd_help,
            "ports": self._cmd_ports,
            "connect": self._cmd_connect,
            "disconnect": self._cmd_disconnect,
            "home": self._cmd_home,
            "jog": self._cmd_jog,
            "extrude": self._cmd_extrude,
            "temp": self._cmd_temp,
            "pos": self._cmd_pos,
            "poll": self._cmd_poll,
            "queue": self._cmd_queue,
            "quit": self._cmd_quit,
            "exit": self._cmd_quit,
        }

    def emit(self, text: str) -> None:
        print(text, file=self.out, flush=True)

    # ========================================================================
    # EVENTS
    # ========================================================================

    def drain_ui_events(self) -> int:
        count = 0
        while True:
            try:
                evt = self.printer.ui_q.get_nowait()
            except queue.Empty:
                return count
            self.handle_event(evt)
            count += 1

    def handle_event(self, evt: UiEvent) -> None:
        match evt:
            case ("conn", True, port):
                self.emit(f"[connected] {port}")
                self.settings.set("last_port", port)
            case ("conn", False, _):
                self.emit("[disconnected]")
            case ("conn_lost", reason):
                self.emit(f"[connection lost] {reason}")
            case ("log", text):
                self.emit(text)
            case ("log_tx", command):
                if self.settings.get("console_echo_tx", True):
                    self.emit(f">> {command}")
            case ("log_rx", line):
                self.emit(f"<< {line}")
            case ("report", kind, _payload, values):
                self.emit(_format_report(kind, values))
            case _:
                logger.debug(f"Unhandled UI event: {evt!r}")

    # ========================================================================
    # INPUT
    # ========================================================================

    def handle_input(self, text: str) -> bool:
        """Handle one input line.

        Returns:
            False when the console should exit
        """
        text = text.strip()
        if not text:
            return True

        try:
            if text.startswith(":"):
                parts = text[1:].split()
                handler = self._local.get(parts[0].lower()) if parts else None
                if handler is None:
                    self.emit(f"[error] Unknown command '{text}', try :help")
                    return True
                return handler(parts[1:])

            if not self.printer.is_connected():
                self.emit(f"[error] {ERROR_NOT_CONNECTED}, use :connect PORT")
                return True
            self.printer.enqueue(text)
        except (ValidationException, PortOpenError) as exc:
            self.emit(f"[error] {exc}")
        return True

    def _cmd_help(self, args: list[str]) -> bool:
        self.emit(HELP_TEXT)
        return True

    def _cmd_ports(self, args: list[str]) -> bool:
        ports = describe_ports()
        if not ports:
            self.emit("No serial ports found")
        for device, description in ports:
            self.emit(f"{device}\t{description}")
        return True

    def _cmd_connect(self, args: list[str]) -> bool:
        port = args[0] if args else self.settings.get("last_port", "")
        if not port:
            self.emit("[error] No port given and no previous port stored")
            return True
        self.printer.connect(port)
        return True

    def _cmd_disconnect(self, args: list[str]) -> bool:
        self.printer.disconnect()
        return True

    def _cmd_home(self, args: list[str]) -> bool:
        self.printer.home("".join(args))
        return True

    def _cmd_jog(self, args: list[str]) -> bool:
        if len(args) not in (1, 2):
            self.emit("usage: :jog AXIS [DIST]")
            return True
        distance = args[1] if len(args) == 2 else self.settings.get("jog_step")
        self.printer.jog(args[0], distance, self.settings.get("jog_feed"))
        return True

    def _cmd_extrude(self, args: list[str]) -> bool:
        if len(args) != 2:
            self.emit("usage: :extrude E1|E2 DIST")
            return True
        self.printer.extrude(args[0], args[1], self.settings.get("extruder_feed"))
        return True

    def _cmd_temp(self, args: list[str]) -> bool:
        self.printer.query_temperature()
        return True

    def _cmd_pos(self, args: list[str]) -> bool:
        self.printer.query_position()
        return True

    def _cmd_poll(self, args: list[str]) -> bool:
        if not args:
            state = "on" if self.poller.enabled else "off"
            self.emit(f"[poll] {state}, every {self.poller.interval:g}s")
            return True
        arg = args[0].lower()
        if arg in ("on", "off"):
            self.poller.enabled = arg == "on"
            self.settings.set("poll.enabled", self.poller.enabled)
        else:
            self.poller.set_interval(arg)
            self.settings.set("poll.interval", self.poller.interval)
        return True

    def _cmd_queue(self, args: list[str]) -> bool:
        pending = self.printer.pending_commands
        self.emit(f"[{self.printer.state.value}] {len(pending)} queued")
        for command in pending:
            self.emit(f"  {command}")
        return True

    def _cmd_quit(self, args: list[str]) -> bool:
        return False

    # ========================================================================
    # MAIN LOOP
    # ========================================================================

    def start_reader(self, stream: TextIO | None = None) -> threading.Thread:
        reader = threading.Thread(
            target=_stdin_reader,
            args=(stream if stream is not None else sys.stdin, self.input_q),
            daemon=True,
            name="Console-Input",
        )
        reader.start()
        return reader

    def step(self, timeout: float = CONSOLE_POLL_INTERVAL) -> bool:
        """Run one iteration of the main loop.

        Returns:
            False when the console should exit
        """
        try:
            text: Any = self.input_q.get(timeout=timeout) if timeout > 0 else self.input_q.get_nowait()
        except queue.Empty:
            text = _NO_INPUT

        keep_running = True
        if text is None:
            keep_running = False
        elif text is not _NO_INPUT:
            keep_running = self.handle_input(text)

        self.printer.process_events()
        self.poller.tick(self.printer)
        self.drain_ui_events()
        return keep_running

    def run(self) -> None:
        try:
            while self.step():
                pass
        except KeyboardInterrupt:
            self.emit("")
        finally:
            self.printer.disconnect()
            self.drain_ui_events()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gcode-host",
        description="Send G-code to a printer over a serial link, one acknowledged line at a time.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--list-ports", action="store_true", help="list serial ports and exit")
    parser.add_argument("--port", help="device path (default: last used port)")
    parser.add_argument("--no-poll", action="store_true", help="disable temperature/position polling")
    parser.add_argument("--poll-interval", type=float, help="seconds between status queries")
    parser.add_argument("--config", help="settings file path")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="console log level (files always log DEBUG)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.list_ports:
        for device, description in describe_ports():
            print(f"{device}\t{description}")
        return 0

    settings = Settings(args.config)
    setup_logging(
        console_level=getattr(logging, args.log_level),
        log_dir=get_log_dir(settings.filepath),
    )
    try:
        settings.load()
        settings.validate()
    except SettingsException as exc:
        logger.warning(f"Ignoring settings file: {exc}")
        settings.reset_to_defaults()

    try:
        poller = StatusPoller(
            args.poll_interval if args.poll_interval is not None else settings.get("poll.interval"),
            (settings.get("poll.temperature_command"), settings.get("poll.position_command")),
        )
    except ValidationException as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    poller.enabled = bool(settings.get("poll.enabled")) and not args.no_poll

    printer = PrinterController()
    console = Console(printer, settings, poller)

    port = args.port or settings.get("last_port")
    if port:
        try:
            printer.connect(port)
        except (PortOpenError, ValidationException) as exc:
            print(f"error: {exc}", file=sys.stderr)
    else:
        console.emit("No port selected. Use :ports and :connect PORT.")
    console.drain_ui_events()

    console.start_reader()
    console.run()

    try:
        settings.save()
    except GcodeHostException as exc:
        logger.error(f"Failed to save settings: {exc}")
    return 0
