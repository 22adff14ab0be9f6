"""Unit tests for uart_bridge._timeout_math."""

import time

import pytest

import uart_bridge
from uart_bridge import _timeout_math

TMAX = _timeout_math.TIMEOUT_MAX


@pytest.fixture
def clock(mocker):
    mocker.patch("time.monotonic")
    time.monotonic.return_value = 500.0
    return time.monotonic


@pytest.mark.parametrize(
    "timeout, deadline",
    [(-5, 0), (0, 0), (0.25, 500.25), (None, TMAX), (TMAX, TMAX)],
)
def test_to_deadline(clock, timeout, deadline):
    assert _timeout_math.to_deadline(timeout) == deadline


@pytest.mark.parametrize(
    "deadline, remaining",
    [(0, 0), (499.5, 0), (500, 0), (502, 2), (TMAX, TMAX)],
)
def test_from_deadline(clock, deadline, remaining):
    assert _timeout_math.from_deadline(deadline) == remaining


@pytest.mark.parametrize("millis", [0, 1, 200, 5000])
def test_read_wait_counts_down(clock, millis):
    config = uart_bridge.PortConfig(read_wait_millis=millis)
    deadline = _timeout_math.to_deadline(config.read_wait)
    assert _timeout_math.from_deadline(deadline) == pytest.approx(
        millis / 1000
    )

    # A wakeup partway through only leaves the rest of the wait
    clock.return_value += config.read_wait / 2
    assert _timeout_math.from_deadline(deadline) == pytest.approx(
        millis / 2000
    )

    clock.return_value += config.read_wait
    assert _timeout_math.from_deadline(deadline) == 0
