"""Synthetic audio generators shared by unit and integration tests."""

import numpy as np
from numpy.typing import NDArray


def silence(frames: int, channels: int = 1) -> NDArray[np.float32]:
    """Generate digital silence of shape (channels, frames)."""
    return np.zeros((channels, frames), dtype=np.float32)


def square_tone(
    frames: int,
    channels: int = 1,
    amplitude: float = 0.5,
    period: int = 40,
) -> NDArray[np.float32]:
    """Generate a square wave whose magnitude is `amplitude` on every frame.

    Unlike a sine, a square wave never crosses zero on a sample, so every
    frame is active for any threshold below `amplitude`.
    """
    half = max(1, period // 2)
    signs = np.where((np.arange(frames) // half) % 2 == 0, 1.0, -1.0)
    wave = (signs * amplitude).astype(np.float32)
    return np.tile(wave, (channels, 1))


def sine_wave(
    frames: int,
    sample_rate: int,
    freq: float = 1000.0,
    channels: int = 1,
    amplitude: float = 0.5,
) -> NDArray[np.float32]:
    """Generate a sine wave of shape (channels, frames)."""
    t = np.arange(frames) / sample_rate
    wave = (np.sin(2 * np.pi * freq * t) * amplitude).astype(np.float32)
    return np.tile(wave, (channels, 1))


def concat(*parts: NDArray[np.float32]) -> NDArray[np.float32]:
    """Concatenate (channels, n) segments along the frame axis."""
    return np.concatenate(parts, axis=1)


def dominant_frequency(samples: NDArray[np.floating], sample_rate: int) -> float:
    """Return the frequency (Hz) of the strongest FFT bin of a mono signal."""
    spectrum = np.abs(np.fft.rfft(samples))
    freqs = np.fft.rfftfreq(len(samples), d=1.0 / sample_rate)
    return float(freqs[int(np.argmax(spectrum))])
