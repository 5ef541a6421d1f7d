"""Tests for the tick-driven status poller."""

from unittest.mock import MagicMock

import pytest

from gcode_host.status_poller import StatusPoller
from gcode_host.utils.exceptions import InvalidParameterError


@pytest.fixture
def fake_printer():
    printer = MagicMock()
    printer.is_connected.return_value = True
    printer.pending_commands = ()
    return printer


class TestStatusPoller:
    def test_first_tick_polls_immediately(self, fake_printer):
        poller = StatusPoller(2.0)
        assert poller.tick(fake_printer, now=100.0) == ["M105", "M114"]
        assert [c.args for c in fake_printer.enqueue.call_args_list] == [("M105",), ("M114",)]

    def test_waits_for_interval(self, fake_printer):
        poller = StatusPoller(2.0)
        poller.tick(fake_printer, now=100.0)
        assert poller.tick(fake_printer, now=101.9) == []
        assert poller.tick(fake_printer, now=102.0) == ["M105", "M114"]

    def test_skips_command_still_pending(self, fake_printer):
        poller = StatusPoller(1.0)
        fake_printer.pending_commands = ("G28", "M105")
        assert poller.tick(fake_printer, now=0.0) == ["M114"]

    def test_idle_while_disconnected(self, fake_printer):
        fake_printer.is_connected.return_value = False
        poller = StatusPoller(1.0)
        assert poller.tick(fake_printer, now=0.0) == []
        fake_printer.enqueue.assert_not_called()

    def test_reconnect_polls_right_away(self, fake_printer):
        poller = StatusPoller(10.0)
        poller.tick(fake_printer, now=0.0)
        fake_printer.is_connected.return_value = False
        poller.tick(fake_printer, now=1.0)
        fake_printer.is_connected.return_value = True
        assert poller.tick(fake_printer, now=2.0) == ["M105", "M114"]

    def test_disabled(self, fake_printer):
        poller = StatusPoller(1.0)
        poller.enabled = False
        assert poller.tick(fake_printer, now=0.0) == []

    def test_custom_commands_and_clock(self, fake_printer):
        poller = StatusPoller(0.5, ("M105", ""), clock=lambda: 42.0)
        assert poller.commands == ("M105",)
        assert poller.tick(fake_printer) == ["M105"]

    def test_interval_validation(self):
        with pytest.raises(InvalidParameterError):
            StatusPoller(0.01)
        poller = StatusPoller()
        poller.set_interval("5")
        assert poller.interval == 5.0
        with pytest.raises(InvalidParameterError):
            poller.set_interval("fast")
