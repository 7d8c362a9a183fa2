"""Tests for math channels and measurement cursors."""

import math

import pytest

from circuit_playground.analysis.cursors import CursorPair
from circuit_playground.analysis.math_channels import (
    MathChannel,
    MathOperation,
    default_channels,
    update_all,
)
from circuit_playground.config import MAX_PROBES
from circuit_playground.simulation import ProbeHistory


class TestMathChannel:
    """Tests for single-channel operations."""

    @pytest.mark.parametrize(
        "operation, a, b, expected",
        [
            (MathOperation.NONE, 3.0, 2.0, 3.0),
            (MathOperation.ADD, 3.0, 2.0, 5.0),
            (MathOperation.SUBTRACT, 3.0, 2.0, 1.0),
            (MathOperation.MULTIPLY, 3.0, 2.0, 6.0),
            (MathOperation.DIVIDE, 3.0, 2.0, 1.5),
            (MathOperation.ABS, -3.0, 0.0, 3.0),
            (MathOperation.INVERT, 3.0, 0.0, -3.0),
            (MathOperation.LOG, -100.0, 0.0, 2.0),
            (MathOperation.SQRT, -16.0, 0.0, 4.0),
        ],
    )
    def test_operations(self, operation, a, b, expected):
        channel = MathChannel(enabled=True, operation=operation)
        assert channel.compute(a, b) == pytest.approx(expected)

    def test_divide_by_zero_reads_zero(self):
        channel = MathChannel(operation=MathOperation.DIVIDE)
        assert channel.compute(1.0, 1e-20) == 0.0

    def test_log_floor(self):
        channel = MathChannel(operation=MathOperation.LOG)
        assert channel.compute(0.0) == pytest.approx(-15.0)

    def test_scale_and_offset(self):
        channel = MathChannel(operation=MathOperation.ADD, scale=2.0, offset=-1.0)
        assert channel.compute(1.0, 2.0) == pytest.approx(5.0)
        assert channel.value == pytest.approx(5.0)

    def test_derivative(self):
        """First sample has no predecessor and reads 0."""
        channel = MathChannel(operation=MathOperation.DERIVATIVE)

        assert channel.compute(1.0, dt=1e-3) == 0.0
        assert channel.compute(3.0, dt=1e-3) == pytest.approx(2000.0)

    def test_integral_accumulates(self):
        channel = MathChannel(operation=MathOperation.INTEGRAL)
        for _ in range(10):
            channel.compute(2.0, dt=0.5)

        assert channel.value == pytest.approx(10.0)
        assert channel.integral_value == pytest.approx(10.0)

    def test_reset(self):
        channel = MathChannel(operation=MathOperation.INTEGRAL)
        channel.compute(1.0, dt=1.0)
        channel.reset()

        assert channel.integral_value == 0.0
        assert channel.value == 0.0
        derivative = MathChannel(operation=MathOperation.DERIVATIVE)
        derivative.compute(5.0, dt=1.0)
        derivative.reset()
        assert derivative.compute(7.0, dt=1.0) == 0.0


class TestUpdateAll:
    """Tests for evaluating a channel bank from probe values."""

    def test_default_bank(self):
        channels = default_channels()
        assert len(channels) == MAX_PROBES
        assert not any(c.enabled for c in channels)

    def test_only_enabled_channels(self):
        channels = default_channels()
        channels[0].enabled = True
        channels[0].operation = MathOperation.MULTIPLY
        channels[1].operation = MathOperation.ADD

        update_all(channels, [2.0, 4.0], dt=1e-6)

        assert channels[0].value == pytest.approx(8.0)
        assert channels[1].value == 0.0

    def test_missing_probe_reads_zero(self):
        channel = MathChannel(enabled=True, operation=MathOperation.ADD, source_a=0, source_b=5)
        update_all([channel], [3.0], dt=1e-6)
        assert channel.value == pytest.approx(3.0)

    def test_unary_ignores_b(self):
        channel = MathChannel(enabled=True, operation=MathOperation.INTEGRAL, source_a=1)
        update_all([channel], [100.0, 2.0], dt=0.5)
        assert channel.value == pytest.approx(1.0)


class TestCursors:
    """Tests for the measurement cursor pair."""

    @pytest.fixture
    def ramp(self):
        history = ProbeHistory()
        for i in range(11):
            history.append(i * 1e-3, float(i))
        return history

    def test_place_interpolates(self, ramp):
        cursors = CursorPair()
        cursor = cursors.place_cursor(1, ramp, 2.5e-3, channel=3)

        assert cursor.active
        assert cursor.value == pytest.approx(2.5)
        assert cursor.channel == 3

    def test_deltas(self, ramp):
        cursors = CursorPair()
        cursors.place_cursor(1, ramp, 2e-3)
        cursors.place_cursor(2, ramp, 6e-3)

        assert cursors.both_active
        assert cursors.delta_time() == pytest.approx(4e-3)
        assert cursors.delta_value() == pytest.approx(4.0)
        assert cursors.frequency() == pytest.approx(250.0)
        assert cursors.slew_rate() == pytest.approx(1000.0)

    def test_reversed_cursors(self, ramp):
        """Frequency uses |dt|; slew rate keeps the sign of dt."""
        cursors = CursorPair()
        cursors.place_cursor(1, ramp, 6e-3)
        cursors.place_cursor(2, ramp, 2e-3)

        assert cursors.frequency() == pytest.approx(250.0)
        assert cursors.slew_rate() == pytest.approx(1000.0)

    def test_single_cursor_reads_zero(self, ramp):
        cursors = CursorPair()
        cursors.place_cursor(1, ramp, 2e-3)

        assert cursors.delta_time() == 0.0
        assert cursors.delta_value() == 0.0
        assert cursors.frequency() == 0.0
        assert cursors.slew_rate() == 0.0

    def test_coincident_cursors(self, ramp):
        cursors = CursorPair()
        cursors.place_cursor(1, ramp, 2e-3)
        cursors.place_cursor(2, ramp, 2e-3)
        assert cursors.frequency() == 0.0
        assert not math.isinf(cursors.slew_rate())

    def test_invalid_cursor(self, ramp):
        with pytest.raises(ValueError):
            CursorPair().place_cursor(3, ramp, 0.0)

    def test_clear(self, ramp):
        cursors = CursorPair()
        cursors.place_cursor(1, ramp, 2e-3)
        cursors.clear()
        assert not cursors.cursor1.active
