"""Spectral analysis: windowed radix-2 FFT, THD and SNR.

Pipeline:
1. Take the most recent ``FFT_SIZE`` samples and apply a window
2. Zero-pad to the transform length (a power of two)
3. Bit-reversal permutation, then log2(N) butterfly stages using a
   precomputed twiddle table (``FFTWorkspace``)
4. Per-bin magnitude ``20*log10(|X|/N)`` (floored at -200 dB) and phase

The workspace is an explicit object owned by the caller, so concurrent
analyses never share scratch state. Butterfly stages are jax.numpy array
operations over all groups of a stage at once.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import jax.numpy as jnp
import numpy as np
from jax import Array
from jaxtyping import Float

from circuit_playground.config import FFT_SIZE

logger = logging.getLogger(__name__)

MAGNITUDE_FLOOR_DB = -200.0
SNR_CEILING_DB = 100.0
NUM_HARMONICS = 10
SNR_EXCLUDE_BINS = 3


class WindowType(Enum):
    RECTANGULAR = "rectangular"
    HANNING = "hanning"
    HAMMING = "hamming"
    BLACKMAN = "blackman"


def window_coefficients(window: WindowType, count: int) -> Float[Array, " count"]:
    """Periodic window of ``count`` points, w(i) = f(i / count).

    A tone centred on a bin leaks at most two bins either side, which stays
    inside the SNR exclusion band.
    """
    if count <= 1:
        return jnp.ones(count)
    n = jnp.arange(count) / count
    if window == WindowType.HANNING:
        return 0.5 * (1.0 - jnp.cos(2.0 * jnp.pi * n))
    if window == WindowType.HAMMING:
        return 0.54 - 0.46 * jnp.cos(2.0 * jnp.pi * n)
    if window == WindowType.BLACKMAN:
        return 0.42 - 0.5 * jnp.cos(2.0 * jnp.pi * n) + 0.08 * jnp.cos(4.0 * jnp.pi * n)
    return jnp.ones(count)


class FFTWorkspace:
    """Precomputed tables for a radix-2 FFT of one size

    Attributes:
        size: Transform length (power of two)
        bit_reverse: Bit-reversal permutation of range(size)
        twiddle: exp(-2j pi k / size) for k < size / 2
    """

    def __init__(self, size: int = FFT_SIZE):
        if size < 2 or size & (size - 1):
            raise ValueError(f"FFT size must be a power of two >= 2, got {size}")
        self.size = size
        bits = size.bit_length() - 1
        indices = np.arange(size)
        reversed_indices = np.zeros(size, dtype=np.int64)
        for bit in range(bits):
            reversed_indices |= ((indices >> bit) & 1) << (bits - 1 - bit)
        self.bit_reverse = jnp.asarray(reversed_indices)
        k = jnp.arange(size // 2)
        self.twiddle = jnp.exp(-2j * jnp.pi * k / size)


def fft_radix2(
    real: Float[Array, " n"], imag: Float[Array, " n"], workspace: FFTWorkspace
) -> Tuple[Float[Array, " n"], Float[Array, " n"]]:
    """Iterative decimation-in-time Cooley-Tukey FFT.

    Args:
        real, imag: Input of length ``workspace.size``
        workspace: Tables for this size

    Returns:
        (real, imag) of the transform
    """
    n = workspace.size
    x = (jnp.asarray(real) + 1j * jnp.asarray(imag))[workspace.bit_reverse]

    half = 1
    while half < n:
        # Group g holds x[g*2h : g*2h+h] (even) and x[g*2h+h : (g+1)*2h] (odd)
        tw = workspace.twiddle[:: n // (2 * half)][:half]
        groups = x.reshape(-1, 2, half)
        even = groups[:, 0, :]
        odd = groups[:, 1, :] * tw
        x = jnp.stack([even + odd, even - odd], axis=1).reshape(n)
        half *= 2

    return jnp.real(x), jnp.imag(x)


@dataclass
class FFTResult:
    """Spectrum of one channel.

    Attributes:
        frequency: Bin frequencies in Hz (num_bins)
        magnitude_db: Bin magnitudes in dB relative to 1 V
        phase_deg: Bin phases in degrees
        num_bins: N / 2
        fundamental_bin: Bin with the largest magnitude above DC
        fundamental_freq: Frequency of that bin
        thd: Total harmonic distortion in percent
        snr: Signal to noise ratio in dB
    """

    frequency: np.ndarray
    magnitude_db: np.ndarray
    phase_deg: np.ndarray
    num_bins: int
    fundamental_bin: int
    fundamental_freq: float
    thd: float
    snr: float
    window: WindowType = WindowType.HANNING

    @property
    def magnitude_linear(self) -> np.ndarray:
        return np.where(
            self.magnitude_db <= MAGNITUDE_FLOOR_DB, 0.0, 10.0 ** (self.magnitude_db / 20.0)
        )


def find_fundamental(magnitude: np.ndarray) -> int:
    """Largest bin above DC (1 if there is none)."""
    if len(magnitude) < 2:
        return 1
    return 1 + int(np.argmax(magnitude[1:]))


def compute_thd(magnitude: np.ndarray, fundamental_bin: int) -> float:
    """RMS of harmonics 2..10 over the fundamental, in percent."""
    fundamental = magnitude[fundamental_bin]
    if fundamental < 1e-10:
        return 0.0
    harmonic_sq = 0.0
    for h in range(2, NUM_HARMONICS + 1):
        k = fundamental_bin * h
        if k < len(magnitude):
            harmonic_sq += float(magnitude[k]) ** 2
    return 100.0 * math.sqrt(harmonic_sq) / float(fundamental)


def compute_snr(magnitude: np.ndarray, fundamental_bin: int) -> float:
    """Fundamental power over the power of all bins outside +-3 bins of it, in dB."""
    signal_power = float(magnitude[fundamental_bin]) ** 2
    k = np.arange(len(magnitude))
    noise_mask = (k >= 1) & (np.abs(k - fundamental_bin) > SNR_EXCLUDE_BINS)
    noise_power = float(np.sum(magnitude[noise_mask] ** 2))
    if noise_power < 1e-20:
        return SNR_CEILING_DB
    if signal_power <= 0:
        return -SNR_CEILING_DB
    return min(10.0 * math.log10(signal_power / noise_power), SNR_CEILING_DB)


def compute_fft(
    samples,
    sample_rate: float,
    window: WindowType = WindowType.HANNING,
    workspace: Optional[FFTWorkspace] = None,
) -> FFTResult:
    """Windowed spectrum of the most recent samples.

    Args:
        samples: Time-domain samples at a uniform rate, oldest first
        sample_rate: Samples per second
        window: Window applied before the transform
        workspace: FFT tables (a FFT_SIZE workspace is created if None)

    Returns:
        FFTResult with N/2 bins
    """
    if workspace is None:
        workspace = FFTWorkspace()
    if sample_rate <= 0:
        raise ValueError(f"sample_rate must be positive, got {sample_rate}")
    n = workspace.size

    data = np.asarray(samples, dtype=np.float64)
    if len(data) > n:
        data = data[-n:]
    count = len(data)

    real = jnp.zeros(n).at[:count].set(jnp.asarray(data) * window_coefficients(window, count))
    re, im = fft_radix2(real, jnp.zeros(n), workspace)

    num_bins = n // 2
    re = np.asarray(re[:num_bins])
    im = np.asarray(im[:num_bins])
    magnitude = np.hypot(re, im) / n
    with np.errstate(divide="ignore"):
        magnitude_db = np.where(
            magnitude > 1e-10, 20.0 * np.log10(np.maximum(magnitude, 1e-300)), MAGNITUDE_FLOOR_DB
        )
    phase_deg = np.degrees(np.arctan2(im, re))
    frequency = np.arange(num_bins) * sample_rate / n

    fundamental_bin = find_fundamental(magnitude)
    return FFTResult(
        frequency=frequency,
        magnitude_db=magnitude_db,
        phase_deg=phase_deg,
        num_bins=num_bins,
        fundamental_bin=fundamental_bin,
        fundamental_freq=float(frequency[fundamental_bin]),
        thd=compute_thd(magnitude, fundamental_bin),
        snr=compute_snr(magnitude, fundamental_bin),
        window=window,
    )
