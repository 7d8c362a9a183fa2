"""Tests for waveform measurements."""

import numpy as np
import pytest

from circuit_playground.analysis.measurements import (
    NOISE_FLOOR_MIN_DBV,
    estimate_noise_floor,
    measure_duty_cycle,
    measure_frequency,
    measure_phase,
    measure_probe,
    measure_rise_fall_time,
    measure_rms,
    measure_waveform,
    normalize_phase,
    snr_from_signal,
)
from circuit_playground.simulation import ProbeHistory

DT = 1e-5
TIMES = np.arange(1000) * DT  # 10 ms


def sine(frequency=1000.0, phase_deg=0.0, amplitude=1.0, offset=0.0):
    return offset + amplitude * np.sin(2.0 * np.pi * frequency * TIMES + np.radians(phase_deg))


def square(duty):
    """1 kHz square between 0 and 1, 100 samples per period."""
    # Integer sample counts keep the edges off floating-point boundaries
    index = np.arange(len(TIMES)) % 100
    return np.where(index < int(duty * 100), 1.0, 0.0)


class TestFrequency:
    """Tests for measure_frequency()."""

    def test_sine(self):
        assert measure_frequency(TIMES, sine(1000.0)) == pytest.approx(1000.0, rel=1e-3)

    def test_with_offset(self):
        """Crossings are taken at the mean, so a DC offset does not matter."""
        assert measure_frequency(TIMES, sine(500.0, offset=3.0)) == pytest.approx(500.0, rel=1e-3)

    def test_too_few_crossings(self):
        assert measure_frequency(TIMES, np.linspace(0.0, 1.0, len(TIMES))) == 0.0
        assert measure_frequency(TIMES[:3], np.zeros(3)) == 0.0


class TestAmplitude:
    """Tests for RMS and the combined measurements."""

    def test_rms_of_sine(self):
        assert measure_rms(sine()) == pytest.approx(1.0 / np.sqrt(2.0), rel=1e-3)

    def test_rms_empty(self):
        assert measure_rms([]) == 0.0

    def test_measure_waveform(self):
        m = measure_waveform(TIMES, sine(amplitude=2.0, offset=1.0))

        assert m.valid
        assert m.v_max == pytest.approx(3.0, abs=1e-3)
        assert m.v_min == pytest.approx(-1.0, abs=1e-3)
        assert m.v_pp == pytest.approx(4.0, abs=1e-3)
        assert m.v_avg == pytest.approx(1.0, abs=1e-2)
        assert m.v_dc_offset == m.v_avg
        assert m.period == pytest.approx(1e-3, rel=1e-3)

    def test_single_sample_invalid(self):
        assert not measure_waveform([0.0], [1.0]).valid


class TestEdges:
    """Tests for duty cycle and rise / fall times."""

    def test_duty_cycle(self):
        """25 % high square: 24 of every 100 sample intervals are fully high."""
        assert measure_duty_cycle(TIMES, square(0.25)) == pytest.approx(24.0, abs=0.1)

    def test_duty_cycle_degenerate(self):
        assert measure_duty_cycle([0.0], [1.0]) == 50.0
        assert measure_duty_cycle([1.0, 1.0], [0.0, 1.0]) == 50.0

    def test_rise_time(self):
        """Linear 1 ms ramp rises 10 % to 90 % in 0.8 ms."""
        times = np.arange(201) * DT
        values = np.clip(times / 1e-3, 0.0, 1.0)

        rise, fall = measure_rise_fall_time(times, values)

        assert rise == pytest.approx(0.8e-3, rel=1e-3)
        assert fall == 0.0

    def test_fall_time(self):
        times = np.arange(201) * DT
        values = 1.0 - np.clip(times / 1e-3, 0.0, 1.0)

        rise, fall = measure_rise_fall_time(times, values)

        assert rise == 0.0
        assert fall == pytest.approx(0.8e-3, rel=1e-3)

    def test_square_wave(self):
        """5 V, 1 kHz, 50 % duty square."""
        m = measure_waveform(TIMES, 5.0 * square(0.5))

        assert m.v_pp == pytest.approx(5.0)
        assert m.frequency == pytest.approx(1000.0, rel=1e-2)
        assert m.duty_cycle == pytest.approx(50.0, abs=2.0)

    def test_pulse_width(self):
        m = measure_waveform(TIMES, square(0.5))
        assert m.pulse_width == pytest.approx(m.duty_cycle / 100.0 * m.period)


class TestPhase:
    """Tests for two-channel phase."""

    def test_lagging_channel(self):
        """B lagging A by a quarter period reads +90 degrees."""
        phase = measure_phase(TIMES, sine(), sine(phase_deg=-90.0))
        assert phase == pytest.approx(90.0, abs=1.0)

    def test_in_phase(self):
        assert measure_phase(TIMES, sine(), sine(amplitude=3.0)) == pytest.approx(0.0, abs=1.0)

    def test_missing_crossing(self):
        assert measure_phase(TIMES, sine(), np.ones(len(TIMES))) == 0.0

    def test_single_channel_has_zero_phase(self):
        assert measure_waveform(TIMES, sine(phase_deg=-90.0)).phase == 0.0

    @pytest.mark.parametrize(
        "phase, expected",
        [(0.0, 0.0), (270.0, -90.0), (-180.0, 180.0), (180.0, 180.0), (-190.0, 170.0), (720.0, 0.0)],
    )
    def test_normalize(self, phase, expected):
        assert normalize_phase(phase) == pytest.approx(expected)


class TestNoise:
    """Tests for noise floor and SNR estimates."""

    def test_noise_floor_of_gaussian(self):
        """Median sample-to-sample difference recovers sigma."""
        rng = np.random.default_rng(1)
        values = rng.normal(scale=0.01, size=5000)
        assert estimate_noise_floor(values) == pytest.approx(-40.0, abs=1.0)

    def test_noise_floor_limits(self):
        assert estimate_noise_floor(np.zeros(5)) == 0.0
        assert estimate_noise_floor(np.ones(100)) == NOISE_FLOOR_MIN_DBV

    def test_snr_from_signal(self):
        signal = np.ones(100)
        noise = 0.1 * np.ones(100)
        assert snr_from_signal(signal, noise) == pytest.approx(20.0)
        assert snr_from_signal(signal, np.zeros(100)) == 100.0
        assert snr_from_signal([], noise) == 0.0


class TestProbe:
    """Tests for measuring a ProbeHistory directly."""

    def test_measure_probe(self):
        history = ProbeHistory()
        for t, v in zip(TIMES, sine()):
            history.append(t, v)

        m = measure_probe(history)

        assert m.frequency == pytest.approx(1000.0, rel=1e-3)

    def test_empty_probe(self):
        assert measure_probe(ProbeHistory()) is None
