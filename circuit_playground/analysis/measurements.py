"""Waveform measurements on probe histories.

All measurements take (times, values) arrays, oldest sample first, as
returned by ``ProbeHistory.arrays()``. Level crossings are linearly
interpolated between samples.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

NOISE_FLOOR_MIN_DBV = -240.0
SNR_CEILING_DB = 100.0
# Scale from median absolute difference of successive samples to Gaussian sigma
MAD_SCALE = 1.4826 / math.sqrt(2.0)


@dataclass
class WaveformMeasurements:
    """Measurements of one channel. ``valid`` is False for fewer than 2 samples.

    ``phase`` is in degrees relative to a reference channel; a single-channel
    measurement leaves it at 0.
    """

    v_min: float = 0.0
    v_max: float = 0.0
    v_pp: float = 0.0
    v_avg: float = 0.0
    v_rms: float = 0.0
    v_dc_offset: float = 0.0
    frequency: float = 0.0
    period: float = 0.0
    rise_time: float = 0.0
    fall_time: float = 0.0
    duty_cycle: float = 0.0
    pulse_width: float = 0.0
    phase: float = 0.0
    valid: bool = False


def _crossings(
    times: np.ndarray, values: np.ndarray, level: float, rising: bool = True
) -> np.ndarray:
    """Interpolated times where ``values`` crosses ``level``.

    Rising: v[i-1] < level <= v[i]. Falling: v[i-1] > level >= v[i].
    """
    prev, cur = values[:-1], values[1:]
    if rising:
        idx = np.nonzero((prev < level) & (cur >= level))[0]
    else:
        idx = np.nonzero((prev > level) & (cur <= level))[0]
    frac = (level - values[idx]) / (values[idx + 1] - values[idx])
    return times[idx] + frac * (times[idx + 1] - times[idx])


def measure_frequency(times, values) -> float:
    """Frequency from rising crossings of the mean: (crossings - 1) / span.

    Returns 0 for fewer than 4 samples or fewer than 2 crossings.
    """
    times = np.asarray(times, dtype=np.float64)
    values = np.asarray(values, dtype=np.float64)
    if len(values) < 4:
        return 0.0
    crossings = _crossings(times, values, float(np.mean(values)))
    if len(crossings) < 2:
        return 0.0
    span = crossings[-1] - crossings[0]
    if span <= 0:
        return 0.0
    return (len(crossings) - 1) / span


def measure_rms(values) -> float:
    values = np.asarray(values, dtype=np.float64)
    if values.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(values * values)))


def measure_rise_fall_time(times, values) -> Tuple[float, float]:
    """10%-90% rise time and 90%-10% fall time of the first edges.

    Either is 0 when no complete edge is found.
    """
    times = np.asarray(times, dtype=np.float64)
    values = np.asarray(values, dtype=np.float64)
    if len(values) < 4:
        return 0.0, 0.0
    v_min, v_max = float(np.min(values)), float(np.max(values))
    v_10 = v_min + 0.1 * (v_max - v_min)
    v_90 = v_min + 0.9 * (v_max - v_min)

    rise = 0.0
    t10 = _crossings(times, values, v_10, rising=True)
    if len(t10):
        t90 = _crossings(times, values, v_90, rising=True)
        t90 = t90[t90 >= t10[0]]
        if len(t90):
            rise = float(t90[0] - t10[0])

    fall = 0.0
    t90 = _crossings(times, values, v_90, rising=False)
    if len(t90):
        t10 = _crossings(times, values, v_10, rising=False)
        t10 = t10[t10 >= t90[0]]
        if len(t10):
            fall = float(t10[0] - t90[0])
    return rise, fall


def _high_time(times: np.ndarray, values: np.ndarray) -> float:
    midpoint = 0.5 * (float(np.max(values)) + float(np.min(values)))
    high = (values[1:] > midpoint) & (values[:-1] > midpoint)
    return float(np.sum(np.diff(times)[high]))


def measure_duty_cycle(times, values) -> float:
    """Percentage of time both ends of a sample interval are above the midpoint.

    50 when the recorded span is zero.
    """
    times = np.asarray(times, dtype=np.float64)
    values = np.asarray(values, dtype=np.float64)
    if len(values) < 2:
        return 50.0
    total = times[-1] - times[0]
    if total <= 0:
        return 50.0
    return 100.0 * _high_time(times, values) / total


def normalize_phase(phase: float) -> float:
    """Wrap degrees into (-180, 180]."""
    return -((-phase + 180.0) % 360.0 - 180.0)


def measure_phase(times, values_a, values_b, times_b=None) -> float:
    """Phase of channel B relative to channel A in degrees, in (-180, 180].

    Time offset between the first rising mean-crossings, as a fraction of
    channel A's period. 0 when either crossing or the period is missing.
    """
    times = np.asarray(times, dtype=np.float64)
    times_b = times if times_b is None else np.asarray(times_b, dtype=np.float64)
    a = np.asarray(values_a, dtype=np.float64)
    b = np.asarray(values_b, dtype=np.float64)
    if len(a) < 4 or len(b) < 4:
        return 0.0
    cross_a = _crossings(times, a, float(np.mean(a)))
    cross_b = _crossings(times_b, b, float(np.mean(b)))
    if len(cross_a) == 0 or len(cross_b) == 0:
        return 0.0
    freq = measure_frequency(times, a)
    if freq <= 0:
        return 0.0
    return normalize_phase(360.0 * (cross_b[0] - cross_a[0]) * freq)


def estimate_noise_floor(values) -> float:
    """Noise floor in dBV from the median absolute sample-to-sample difference.

    Returns 0 for fewer than 10 samples and -240 dBV below 1e-12 V RMS.
    """
    values = np.asarray(values, dtype=np.float64)
    if len(values) < 10:
        return 0.0
    diffs = np.sort(np.abs(np.diff(values)))
    noise_rms = float(diffs[len(diffs) // 2]) * MAD_SCALE
    if noise_rms < 1e-12:
        return NOISE_FLOOR_MIN_DBV
    return 20.0 * math.log10(noise_rms)


def snr_from_signal(signal, noise) -> float:
    """Power ratio of two sample arrays in dB (100 dB ceiling)."""
    signal = np.asarray(signal, dtype=np.float64)
    noise = np.asarray(noise, dtype=np.float64)
    if signal.size == 0:
        return 0.0
    signal_power = float(np.sum(signal * signal))
    noise_power = float(np.sum(noise * noise))
    if noise_power < 1e-20:
        return SNR_CEILING_DB
    if signal_power <= 0:
        return -SNR_CEILING_DB
    return min(10.0 * math.log10(signal_power / noise_power), SNR_CEILING_DB)


def measure_waveform(times, values) -> WaveformMeasurements:
    """All single-channel measurements at once."""
    times = np.asarray(times, dtype=np.float64)
    values = np.asarray(values, dtype=np.float64)
    if len(values) < 2:
        return WaveformMeasurements(valid=False)

    v_min = float(np.min(values))
    v_max = float(np.max(values))
    v_avg = float(np.mean(values))
    frequency = measure_frequency(times, values)
    period = 1.0 / frequency if frequency > 0 else 0.0
    rise, fall = measure_rise_fall_time(times, values)
    duty = measure_duty_cycle(times, values)

    return WaveformMeasurements(
        v_min=v_min,
        v_max=v_max,
        v_pp=v_max - v_min,
        v_avg=v_avg,
        v_rms=measure_rms(values),
        v_dc_offset=v_avg,
        frequency=frequency,
        period=period,
        rise_time=rise,
        fall_time=fall,
        duty_cycle=duty,
        pulse_width=duty / 100.0 * period,
        valid=True,
    )


def measure_probe(history) -> Optional[WaveformMeasurements]:
    """Measurements of a ``ProbeHistory`` (None when it is empty)."""
    if len(history) == 0:
        return None
    return measure_waveform(*history.arrays())
