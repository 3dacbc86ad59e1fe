"""Per-channel sample buffer feeding the block resampler.

This module provides the ChannelBuffer, a store of deinterleaved float32
samples with one row per channel. The pipeline appends decoded frame batches
to it and drains fixed-size chunks from the front for resampling.

Key features:
- Equal per-channel length enforced on every append
- Amortised appends (segments are concatenated lazily on read)
- Zero-copy drains from the front of the buffer
- Zero padding for the final partial chunk

Design:
    decoder batch → append → drain_front(chunk_size) → resampler → ...
    end of stream → pad_to(chunk_size) → drain_front(chunk_size) → tail policy
"""

import logging
from collections.abc import Sequence
from typing import Final

import numpy as np
from numpy.typing import ArrayLike, NDArray

from wavconvert.errors import InsufficientData, MalformedAudioError, ShapeError

logger = logging.getLogger(__name__)

SAMPLE_DTYPE: Final = np.float32


def deinterleave(samples: ArrayLike, channels: int) -> NDArray[np.float32]:
    """Split interleaved samples into a (channels, frames) array.

    Args:
        samples: Flattened interleaved samples (L R L R ... for stereo)
        channels: Number of channels in the stream

    Returns:
        Array of shape (channels, len(samples) // channels)

    Raises:
        ValueError: If channels is not positive
        MalformedAudioError: If the sample count is not divisible by channels

    Example:
        >>> deinterleave([0.1, 0.2, 0.3, 0.4], channels=2)
        array([[0.1, 0.3],
               [0.2, 0.4]], dtype=float32)
    """
    if channels <= 0:
        raise ValueError(f"Channels must be positive, got {channels}")

    flat = np.asarray(samples, dtype=SAMPLE_DTYPE).reshape(-1)
    if flat.size % channels != 0:
        err_msg = (
            "The number of samples is not divisible by the number of channels. "
            f"samples: {flat.size}, channels: {channels}"
        )
        logger.error(err_msg)
        raise MalformedAudioError(err_msg, stage="deinterleave")

    return flat.reshape(-1, channels).T.copy()


def interleave(frames: NDArray[np.generic]) -> NDArray[np.generic]:
    """Convert a (channels, frames) array to (frames, channels) order."""
    return np.ascontiguousarray(frames.T)


class ChannelBuffer:
    """Deinterleaved multichannel float sample store.

    Holds one row of float32 samples per channel. All rows always have the
    same length; that length is what len() reports.

    Thread-safety: NOT thread-safe. Owned by a single pipeline.

    Example:
        ```python
        buffer = ChannelBuffer(channels=2)
        buffer.append(np.zeros((2, 1152), dtype=np.float32))
        while len(buffer) >= 1024:
            chunk = buffer.drain_front(1024)  # shape (2, 1024)
        ```
    """

    def __init__(self, channels: int) -> None:
        """Initialize an empty buffer.

        Args:
            channels: Number of audio channels

        Raises:
            ValueError: If channels is not positive
        """
        if channels <= 0:
            raise ValueError(f"Channels must be positive, got {channels}")

        self._channels = channels
        self._segments: list[NDArray[np.float32]] = []
        self._length = 0

    @property
    def channels(self) -> int:
        """Get configured channel count."""
        return self._channels

    def __len__(self) -> int:
        return self._length

    def append(self, batch: NDArray[np.floating] | Sequence[Sequence[float]]) -> None:
        """Append a deinterleaved batch of frames.

        Args:
            batch: Per-channel samples, shape (channels, frames)

        Raises:
            ShapeError: If the channel count differs from the buffer's, or
                per-channel lengths differ
        """
        if isinstance(batch, np.ndarray):
            if batch.ndim != 2 or batch.shape[0] != self._channels:
                raise ShapeError(
                    f"Expected batch of shape ({self._channels}, n), got {batch.shape}",
                    stage="append",
                    frame_index=self._length,
                )
            data = batch.astype(SAMPLE_DTYPE, copy=False)
        else:
            if len(batch) != self._channels:
                raise ShapeError(
                    f"Expected {self._channels} channels, got {len(batch)}",
                    stage="append",
                    frame_index=self._length,
                )
            lengths = {len(channel) for channel in batch}
            if len(lengths) > 1:
                raise ShapeError(
                    f"Per-channel lengths differ: {sorted(lengths)}",
                    stage="append",
                    frame_index=self._length,
                )
            data = np.asarray(batch, dtype=SAMPLE_DTYPE).reshape(self._channels, -1)

        if data.shape[1] == 0:
            return

        self._segments.append(data)
        self._length += data.shape[1]

    def append_interleaved(self, samples: ArrayLike) -> None:
        """Append interleaved samples (frame-major order).

        Raises:
            MalformedAudioError: If the sample count is not divisible by channels
        """
        self.append(deinterleave(samples, self._channels))

    def view(self) -> NDArray[np.float32]:
        """Return all buffered frames as a single (channels, len) array.

        The returned array shares memory with the buffer; do not mutate it.
        """
        if not self._segments:
            return np.zeros((self._channels, 0), dtype=SAMPLE_DTYPE)
        if len(self._segments) > 1:
            self._segments = [np.concatenate(self._segments, axis=1)]
        return self._segments[0]

    def drain_front(self, n: int) -> NDArray[np.float32]:
        """Remove and return the first n frames of every channel.

        Args:
            n: Number of frames to drain

        Returns:
            Chunk of shape (channels, n)

        Raises:
            ValueError: If n is negative
            InsufficientData: If fewer than n frames are buffered
        """
        if n < 0:
            raise ValueError(f"Drain length must be non-negative, got {n}")
        if n > self._length:
            raise InsufficientData(
                f"Requested {n} frames, only {self._length} buffered",
                stage="drain",
            )

        data = self.view()
        chunk = data[:, :n].copy()
        remainder = data[:, n:]
        self._segments = [remainder] if remainder.shape[1] else []
        self._length -= n
        return chunk

    def pad_to(self, n: int) -> None:
        """Append zero samples until the buffer holds at least n frames."""
        missing = n - self._length
        if missing <= 0:
            return
        self._segments.append(np.zeros((self._channels, missing), dtype=SAMPLE_DTYPE))
        self._length += missing

    def truncate(self, start: int, end: int) -> None:
        """Keep only frames in [start, end).

        Raises:
            ValueError: If the range is inverted or out of bounds
        """
        if not 0 <= start <= end <= self._length:
            raise ValueError(
                f"Invalid truncate range [{start}, {end}) for buffer of {self._length} frames"
            )
        data = self.view()[:, start:end]
        self._segments = [data] if data.shape[1] else []
        self._length = end - start

    def clear(self) -> None:
        """Drop all buffered frames."""
        self._segments = []
        self._length = 0

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return (
            f"ChannelBuffer(channels={self._channels}, "
            f"frames={self._length}, "
            f"segments={len(self._segments)})"
        )
