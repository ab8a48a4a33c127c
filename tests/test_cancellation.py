"""Tests for cancellation.py."""

from __future__ import annotations

import threading
import time

import pytest

from roo_plan_generator.cancellation import CancellationSignal, CancellationToken


class TestCancellationToken:
    def test_initially_clear(self):
        token = CancellationToken()
        assert not token.is_cancellation_requested
        token.raise_if_cancelled("anywhere")

    def test_cancel_is_sticky(self):
        token = CancellationToken()
        token.cancel()
        token.cancel()
        assert token.is_cancellation_requested
        with pytest.raises(CancellationSignal, match="Cancelled during Rules"):
            token.raise_if_cancelled("Rules")

    def test_wait_times_out_when_not_cancelled(self):
        assert CancellationToken().wait(0.01) is False

    def test_wait_wakes_on_cancel(self):
        token = CancellationToken()
        threading.Timer(0.05, token.cancel).start()
        start = time.monotonic()
        assert token.wait(10) is True
        assert time.monotonic() - start < 5

    def test_signal_where(self):
        assert CancellationSignal("Plan Assembly").where == "Plan Assembly"
        assert str(CancellationSignal()) == "Cancelled"
