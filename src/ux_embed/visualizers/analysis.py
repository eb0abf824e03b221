"""Live audio analysis feeding the renderers.

`Analyser` follows the behavior of a browser analyser node: a Blackman-windowed
FFT whose magnitudes are smoothed over time, converted to decibels and scaled
into bytes between ``min_decibels`` and ``max_decibels``. Time-domain data is
reported as bytes centred on 128.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from ..services.media_element import SampleTap

logger = logging.getLogger(__name__)

DEFAULT_FFT_SIZE = 2048
DEFAULT_SMOOTHING = 0.8
DEFAULT_MIN_DECIBELS = -100.0
DEFAULT_MAX_DECIBELS = -30.0


class Analyser:
    """Frequency and waveform analysis over the most recent ``fft_size`` samples."""

    def __init__(
        self,
        *,
        fft_size: int = DEFAULT_FFT_SIZE,
        smoothing_time_constant: float = DEFAULT_SMOOTHING,
        min_decibels: float = DEFAULT_MIN_DECIBELS,
        max_decibels: float = DEFAULT_MAX_DECIBELS,
    ) -> None:
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError("fft_size must be a power of two >= 32")
        if min_decibels >= max_decibels:
            raise ValueError("min_decibels must be lower than max_decibels")
        self.fft_size = fft_size
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self._smoothing = _clamp_unit(smoothing_time_constant)
        self._window = np.blackman(fft_size)
        self._samples = np.zeros(fft_size, dtype=np.float64)
        self._magnitudes = np.zeros(self.frequency_bin_count, dtype=np.float64)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    @property
    def smoothing_time_constant(self) -> float:
        return self._smoothing

    @smoothing_time_constant.setter
    def smoothing_time_constant(self, value: float) -> None:
        self._smoothing = _clamp_unit(value)

    def process(self, samples: np.ndarray) -> None:
        """Push new PCM samples (floats in [-1, 1]) and update the spectrum."""
        chunk = np.asarray(samples, dtype=np.float64).ravel()
        if chunk.size >= self.fft_size:
            self._samples = chunk[-self.fft_size :].copy()
        elif chunk.size:
            self._samples = np.concatenate((self._samples[chunk.size :], chunk))
        spectrum = np.fft.rfft(self._samples * self._window)[: self.frequency_bin_count]
        magnitudes = np.abs(spectrum) / self.fft_size
        self._magnitudes = (self._smoothing * self._magnitudes) + (
            (1.0 - self._smoothing) * magnitudes
        )

    def byte_frequency_data(self) -> np.ndarray:
        with np.errstate(divide="ignore"):
            decibels = 20.0 * np.log10(self._magnitudes)
        span = self.max_decibels - self.min_decibels
        scaled = 255.0 * (decibels - self.min_decibels) / span
        return np.clip(np.nan_to_num(scaled, neginf=0.0), 0, 255).astype(np.uint8)

    def byte_time_domain_data(self) -> np.ndarray:
        scaled = 128.0 * (1.0 + self._samples)
        return np.clip(np.floor(scaled), 0, 255).astype(np.uint8)


class AudioGraph:
    """Connects an element's sample tap to an analyser."""

    def __init__(self, tap: SampleTap, analyser: Analyser | None = None) -> None:
        self.tap = tap
        self.analyser = analyser or Analyser()
        self._closed = False

    def pull(self) -> tuple[np.ndarray, np.ndarray]:
        """Read fresh samples and return ``(frequency_bytes, waveform_bytes)``."""
        if not self._closed:
            self.analyser.process(self.tap.read(self.analyser.fft_size))
        return (
            self.analyser.byte_frequency_data(),
            self.analyser.byte_time_domain_data(),
        )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.tap.close()
        except Exception as exc:  # pragma: no cover - depends on tap implementation
            logger.debug("Failed to close sample tap: %s", exc)


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, float(value)))
