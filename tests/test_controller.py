"""Tests for connection lifecycle and acknowledged dispatch."""

import time
from unittest.mock import Mock

import pytest
import serial

from conftest import drain, wait_until
from gcode_host.controller import PrinterController
from gcode_host.types import AckState, ConnectionState, ReportKind
from gcode_host.utils.exceptions import InvalidParameterError, PortOpenError

pytestmark = pytest.mark.integration


def wait_for_writes(port, count, timeout=2.0):
    return wait_until(lambda: len(port.writes) >= count, timeout=timeout)


class TestDisconnected:
    def test_initial_state(self, printer):
        assert printer.state is ConnectionState.DISCONNECTED
        assert printer.ack_state is AckState.IDLE
        assert not printer.is_connected()
        assert printer.port is None

    def test_enqueue_while_disconnected_is_discarded(self, printer, serial_factory):
        for cmd in ("G28", "M105", "G1 X1"):
            printer.enqueue(cmd)
        assert printer.pending_commands == ()
        assert printer.state is ConnectionState.DISCONNECTED
        assert serial_factory.instances == []

    def test_disconnect_is_idempotent(self, printer):
        printer.disconnect()
        printer.disconnect()
        assert printer.state is ConnectionState.DISCONNECTED
        assert drain(printer.ui_q) == []

    def test_multiline_command_rejected(self, printer):
        with pytest.raises(InvalidParameterError):
            printer.enqueue("G28\nG1 X1")


class TestConnect:
    def test_connect_emits_event(self, printer, serial_factory):
        printer.connect("/dev/ttyFAKE0")
        assert printer.state is ConnectionState.CONNECTED_IDLE
        assert printer.port == "/dev/ttyFAKE0"
        assert drain(printer.ui_q) == [("conn", True, "/dev/ttyFAKE0")]
        assert serial_factory.last.port == "/dev/ttyFAKE0"

    def test_open_failure_leaves_disconnected(self, printer, serial_factory):
        serial_factory.open_error = serial.SerialException("[Errno 16] Device or resource busy")
        with pytest.raises(PortOpenError):
            printer.connect("/dev/ttyFAKE0")
        assert printer.state is ConnectionState.DISCONNECTED
        assert printer.port is None
        evts = drain(printer.ui_q)
        assert [e[0] for e in evts] == ["log"]

    def test_empty_port_rejected(self, printer):
        with pytest.raises(InvalidParameterError):
            printer.connect("  ")

    def test_reconnect_closes_previous_port(self, printer, serial_factory):
        printer.connect("/dev/ttyFAKE0")
        first = serial_factory.last
        printer.connect("/dev/ttyFAKE1")
        assert first.close_count == 1
        assert len(serial_factory.instances) == 2
        assert printer.port == "/dev/ttyFAKE1"
        assert [e[:2] for e in drain(printer.ui_q)] == [
            ("conn", True),
            ("conn", False),
            ("conn", True),
        ]

    def test_reconnect_drops_stale_commands(self, connected, serial_factory):
        printer, port = connected
        printer.enqueue("G1 X1")
        printer.enqueue("G1 X2")
        printer.connect("/dev/ttyFAKE1")
        assert printer.pending_commands == ()
        assert printer.ack_state is AckState.IDLE
        # fresh session: first enqueue goes straight out
        printer.enqueue("M105")
        assert wait_for_writes(serial_factory.last, 1)
        assert serial_factory.last.writes == [b"M105\n"]

    def test_context_manager_disconnects(self, serial_factory):
        with PrinterController(serial_factory=serial_factory) as printer:
            printer.connect("/dev/ttyFAKE0")
        assert serial_factory.last.close_count == 1
        assert printer.state is ConnectionState.DISCONNECTED

    def test_reconnect_waits_for_blocked_write(self, connected, serial_factory):
        printer, first = connected
        first.write_delay = 1.5
        printer.enqueue("G28")
        assert first.write_started.wait(timeout=2.0)
        printer.connect("/dev/ttyFAKE1")
        assert first.close_count == 1
        assert serial_factory.overlapping_opens == 0
        assert printer.port == "/dev/ttyFAKE1"

    def test_disconnect_waits_for_blocked_write(self, connected):
        printer, port = connected
        port.write_delay = 1.5
        printer.enqueue("G28")
        assert port.write_started.wait(timeout=2.0)
        printer.disconnect()
        assert port.close_count == 1
        assert port.writes == [b"G28\n"]


class TestDispatch:
    def test_single_outstanding_command(self, connected):
        printer, port = connected
        for cmd in ("C1", "C2", "C3", "C4"):
            printer.enqueue(cmd)
        assert wait_for_writes(port, 1)
        time.sleep(0.05)
        assert port.writes == [b"C1\n"]
        assert printer.pending_commands == ("C2", "C3", "C4")
        assert printer.state is ConnectionState.CONNECTED_AWAITING_ACK

    def test_write_order_follows_acks(self, connected, pump):
        printer, port = connected
        commands = ["G28", "G1 X1", "G1 X2", "M105"]
        for cmd in commands:
            printer.enqueue(cmd)
        for i in range(len(commands)):
            assert wait_for_writes(port, i + 1)
            time.sleep(0.02)
            assert len(port.writes) == i + 1
            port.inject_line("ok")
            assert pump(printer, lambda: printer.ack_state is AckState.IDLE or len(port.writes) > i + 1)
        assert port.writes == [f"{c}\n".encode() for c in commands]

    def test_g28_scenario(self, connected, pump):
        printer, port = connected
        printer.enqueue("G28")
        assert wait_for_writes(port, 1)
        assert port.writes == [b"G28\n"]
        port.inject(b"ok\n")
        assert pump(printer, lambda: printer.ack_state is AckState.IDLE)
        time.sleep(0.05)
        assert port.writes == [b"G28\n"]
        assert printer.state is ConnectionState.CONNECTED_IDLE

    def test_two_moves_scenario(self, connected, pump):
        printer, port = connected
        printer.enqueue("G1 X1")
        printer.enqueue("G1 X2")
        assert wait_for_writes(port, 1)
        time.sleep(0.02)
        assert port.writes == [b"G1 X1\n"]
        port.inject(b"ok\n")
        assert pump(printer, lambda: len(port.writes) >= 2)
        assert port.writes == [b"G1 X1\n", b"G1 X2\n"]

    def test_ok_while_idle_is_informational(self, connected, pump):
        printer, port = connected
        port.inject(b"ok\n")
        assert pump(printer, lambda: not printer.ui_q.empty())
        assert drain(printer.ui_q) == [("log_rx", "ok")]
        assert printer.pending_commands == ()
        assert printer.state is ConnectionState.CONNECTED_IDLE
        assert port.writes == []

    def test_non_ack_line_does_not_release(self, connected, pump):
        printer, port = connected
        printer.enqueue("G28")
        printer.enqueue("M105")
        port.inject(b"echo:busy: processing\n")
        assert pump(printer, lambda: any(e[0] == "log_rx" for e in list(printer.ui_q.queue)))
        assert printer.ack_state is AckState.AWAITING_ACK
        assert printer.pending_commands == ("M105",)

    def test_okay_counts_as_ack(self, connected, pump):
        printer, port = connected
        printer.enqueue("M115")
        port.inject(b"okay\n")
        assert pump(printer, lambda: printer.ack_state is AckState.IDLE)

    def test_ui_events_for_traffic(self, connected, pump):
        printer, port = connected
        printer.enqueue("G28")
        port.inject(b"A1\nB2\nok\n")
        assert pump(printer, lambda: printer.ack_state is AckState.IDLE)
        assert drain(printer.ui_q) == [
            ("log_tx", "G28"),
            ("log_rx", "A1"),
            ("log_rx", "B2"),
            ("log_rx", "ok"),
        ]

    def test_disallowed_bytes_filtered_before_ui(self, connected, pump):
        printer, port = connected
        port.inject(b"A\x071\n")
        assert pump(printer, lambda: not printer.ui_q.empty())
        assert drain(printer.ui_q) == [("log_rx", "A1")]

    def test_non_ascii_command_rejected(self, connected):
        printer, port = connected
        with pytest.raises(InvalidParameterError):
            printer.enqueue("M117 Temp 21\u00b0C")
        assert printer.ack_state is AckState.IDLE
        printer.enqueue("M117 Temp 21C")
        assert wait_for_writes(port, 1)
        assert port.writes == [b"M117 Temp 21C\n"]

    def test_whitespace_only_command_ignored(self, connected):
        printer, port = connected
        printer.enqueue("   ")
        assert printer.ack_state is AckState.IDLE
        assert printer.pending_commands == ()


class TestConnectionLoss:
    def test_read_error_single_event_and_reset(self, connected, pump):
        printer, port = connected
        printer.enqueue("G28")
        printer.enqueue("G1 X1")
        port.fail_next_read()
        assert pump(printer, lambda: not printer.is_connected())
        evts = drain(printer.ui_q)
        lost = [e for e in evts if e[0] == "conn_lost"]
        assert len(lost) == 1
        assert evts[-1] == ("conn", False, None)
        assert printer.state is ConnectionState.DISCONNECTED
        assert printer.ack_state is AckState.IDLE
        assert printer.pending_commands == ()
        assert port.close_count == 1

        # no second loss reported later
        printer.process_events(timeout=0.05)
        assert [e for e in drain(printer.ui_q) if e[0] == "conn_lost"] == []

    def test_enqueue_after_loss_is_discarded(self, connected, pump):
        printer, port = connected
        port.fail_next_read()
        assert pump(printer, lambda: not printer.is_connected())
        printer.enqueue("G28")
        assert printer.pending_commands == ()

    def test_reconnect_after_loss(self, connected, pump, serial_factory):
        printer, port = connected
        port.fail_next_read()
        assert pump(printer, lambda: not printer.is_connected())
        printer.connect("/dev/ttyFAKE0")
        assert printer.state is ConnectionState.CONNECTED_IDLE
        assert len(serial_factory.instances) == 2

    def test_disconnect_clears_queue(self, connected):
        printer, port = connected
        printer.enqueue("G28")
        printer.enqueue("G1 X1")
        printer.disconnect()
        assert printer.pending_commands == ()
        assert printer.ack_state is AckState.IDLE
        assert port.close_count == 1
        assert drain(printer.ui_q)[-1] == ("conn", False, None)


class TestReports:
    def test_temperature_report_routed(self, connected, pump):
        printer, port = connected
        listener = Mock()
        printer.add_report_listener(listener)
        printer.query_temperature()
        assert wait_for_writes(port, 1)
        assert port.writes == [b"M105\n"]
        port.inject_line("okT:21.5 /0.0 B:20.1 /0.0")
        assert pump(printer, lambda: printer.last_report(ReportKind.TEMPERATURE) is not None)
        values = printer.last_report(ReportKind.TEMPERATURE)
        assert values["T"] == 21.5
        assert values["B_target"] == 0.0
        listener.assert_called_once_with(ReportKind.TEMPERATURE, values)
        reports = [e for e in drain(printer.ui_q) if e[0] == "report"]
        assert reports == [("report", ReportKind.TEMPERATURE, "T:21.5 /0.0 B:20.1 /0.0", values)]

    def test_position_report_routed(self, connected, pump):
        printer, port = connected
        printer.query_position()
        port.inject_line("okX:1.00 Y:2.00 Z:0.30 E:0.00")
        assert pump(printer, lambda: printer.last_report(ReportKind.POSITION) is not None)
        assert printer.last_report(ReportKind.POSITION) == {"X": 1.0, "Y": 2.0, "Z": 0.3, "E": 0.0}

    def test_unsolicited_report_not_routed(self, connected, pump):
        printer, port = connected
        port.inject_line("okT:21.5 /0.0")
        assert pump(printer, lambda: not printer.ui_q.empty())
        assert printer.last_report(ReportKind.TEMPERATURE) is None

    def test_listener_error_does_not_break_flow(self, connected, pump):
        printer, port = connected
        printer.add_report_listener(Mock(side_effect=RuntimeError("boom")))
        printer.query_temperature()
        printer.enqueue("G28")
        port.inject_line("okT:20.0 /0.0")
        assert pump(printer, lambda: len(port.writes) >= 2)
        assert port.writes[-1] == b"G28\n"

    def test_reports_forgotten_on_disconnect(self, connected, pump):
        printer, port = connected
        printer.query_temperature()
        port.inject_line("okT:20.0 /0.0")
        assert pump(printer, lambda: printer.last_report(ReportKind.TEMPERATURE) is not None)
        printer.disconnect()
        assert printer.last_report(ReportKind.TEMPERATURE) is None

    def test_space_separated_payload_not_routed(self, connected, pump):
        printer, port = connected
        printer.query_temperature()
        port.inject_line("ok T:21.5 /0.0")
        assert pump(printer, lambda: printer.ack_state is AckState.IDLE)
        assert printer.last_report(ReportKind.TEMPERATURE) is None
        assert [e for e in drain(printer.ui_q) if e[0] == "report"] == []

    def test_removed_listener_not_called(self, connected, pump):
        printer, port = connected
        listener = Mock()
        printer.add_report_listener(listener)
        printer.remove_report_listener(listener)
        printer.remove_report_listener(listener)
        printer.query_position()
        port.inject_line("okX:1.00 Y:2.00")
        assert pump(printer, lambda: printer.last_report(ReportKind.POSITION) is not None)
        listener.assert_not_called()


class TestManualControl:
    def test_home_and_jog_sequence(self, connected, pump):
        printer, port = connected
        printer.home("XY")
        printer.jog("z", 5, 600)
        expected = [b"G28 X Y\n", b"G91\n", b"G1 Z5.000 F600\n", b"G90\n"]
        for i in range(len(expected)):
            assert wait_for_writes(port, i + 1)
            port.inject_line("ok")
            pump(printer, lambda: len(port.writes) > i + 1 or printer.ack_state is AckState.IDLE)
        assert port.writes == expected

    def test_invalid_jog_enqueues_nothing(self, connected):
        printer, port = connected
        with pytest.raises(InvalidParameterError):
            printer.jog("Q", 10)
        assert printer.pending_commands == ()
        assert printer.ack_state is AckState.IDLE
