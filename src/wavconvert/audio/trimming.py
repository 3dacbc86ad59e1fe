"""Silence detection and trimming for multichannel audio.

Two trimming strategies are supported, selected by TrimMode:

- HYSTERESIS: leading and trailing trim. A boundary is only accepted once a
  run of at least `min_active_run` consecutive active frames is found, so
  brief clicks or blips do not count as the start of real audio.
- TRAILING: trailing trim only. The last frame with any sample above the
  threshold marks the end of audio; no run-length gate.

Both extend the end boundary by a trailing guard (a duration at the rate of
the buffer being trimmed, or a fixed frame count).

Threshold reference points (linear amplitude):
    -20 dB ≈ 0.1
    -30 dB ≈ 0.0316
    -40 dB ≈ 0.01
    -50 dB ≈ 0.0032
    -60 dB ≈ 0.001
"""

import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np
from numpy.typing import ArrayLike, NDArray

from wavconvert.audio.buffer import deinterleave

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.01  # -40 dB
DEFAULT_MIN_ACTIVE_RUN = 1024
DEFAULT_GUARD_SECONDS = 0.5


class TrimMode(str, Enum):
    """Silence trimming strategy."""

    NONE = "none"
    TRAILING = "trailing"
    HYSTERESIS = "hysteresis"


class TrimOrder(str, Enum):
    """Where trimming runs relative to resampling."""

    BEFORE_RESAMPLE = "before_resample"
    AFTER_RESAMPLE = "after_resample"


@dataclass(frozen=True)
class TrimBounds:
    """Half-open frame range [start, end) of active audio.

    Attributes:
        start: First kept frame index
        end: One past the last kept frame index
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if not 0 <= self.start <= self.end:
            raise ValueError(f"Invalid trim bounds: start={self.start}, end={self.end}")

    @property
    def length(self) -> int:
        """Number of frames kept."""
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.start == self.end


def active_frames(frames: NDArray[np.floating], threshold: float) -> NDArray[np.bool_]:
    """Mark frames where any channel's magnitude exceeds threshold.

    Args:
        frames: Samples of shape (channels, n)
        threshold: Linear amplitude threshold

    Returns:
        Boolean mask of length n
    """
    if frames.shape[1] == 0:
        return np.zeros(0, dtype=np.bool_)
    result: NDArray[np.bool_] = np.any(np.abs(frames) > threshold, axis=0)
    return result


def _active_runs(mask: NDArray[np.bool_]) -> tuple[NDArray[np.intp], NDArray[np.intp]]:
    """Return (starts, ends) of consecutive True runs, ends exclusive."""
    padded = np.concatenate(([False], mask, [False])).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)
    return starts, ends


class SilenceTrimmer:
    """Locate active-audio boundaries in a deinterleaved buffer.

    Example:
        ```python
        trimmer = SilenceTrimmer(
            mode=TrimMode.HYSTERESIS,
            threshold=0.01,
            min_active_run=1024,
            guard_frames=8000,  # 0.5s at 16kHz
        )
        bounds = trimmer.find_bounds(frames)  # frames: (channels, n)
        trimmed = frames[:, bounds.start:bounds.end]
        ```
    """

    def __init__(
        self,
        mode: TrimMode = TrimMode.TRAILING,
        threshold: float = DEFAULT_THRESHOLD,
        min_active_run: int = DEFAULT_MIN_ACTIVE_RUN,
        guard_frames: int = 0,
    ) -> None:
        """Initialize trimmer.

        Args:
            mode: Trimming strategy
            threshold: Linear amplitude in (0, 1) above which a sample is active
            min_active_run: Consecutive active frames required (HYSTERESIS only)
            guard_frames: Frames kept after the last active frame

        Raises:
            ValueError: If parameters are invalid
        """
        if not 0.0 < threshold < 1.0:
            raise ValueError(f"Threshold must be in (0, 1), got {threshold}")
        if min_active_run <= 0:
            raise ValueError(f"Minimum active run must be positive, got {min_active_run}")
        if guard_frames < 0:
            raise ValueError(f"Guard frames must be non-negative, got {guard_frames}")

        self.mode = TrimMode(mode)
        self.threshold = threshold
        self.min_active_run = min_active_run
        self.guard_frames = guard_frames

    @classmethod
    def with_guard_duration(
        cls,
        sample_rate: int,
        guard_seconds: float = DEFAULT_GUARD_SECONDS,
        mode: TrimMode = TrimMode.TRAILING,
        threshold: float = DEFAULT_THRESHOLD,
        min_active_run: int = DEFAULT_MIN_ACTIVE_RUN,
    ) -> "SilenceTrimmer":
        """Create a trimmer whose guard is a duration at sample_rate."""
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")
        if guard_seconds < 0:
            raise ValueError(f"Guard duration must be non-negative, got {guard_seconds}")
        return cls(
            mode=mode,
            threshold=threshold,
            min_active_run=min_active_run,
            guard_frames=int(guard_seconds * sample_rate),
        )

    def find_bounds(self, frames: NDArray[np.floating]) -> TrimBounds:
        """Find the range of frames to keep.

        Args:
            frames: Samples of shape (channels, n)

        Returns:
            TrimBounds with 0 <= start <= end <= n
        """
        length = frames.shape[1]
        if self.mode is TrimMode.NONE or length == 0:
            return TrimBounds(0, length)

        mask = active_frames(frames, self.threshold)
        if self.mode is TrimMode.TRAILING:
            bounds = self._trailing_bounds(mask)
        else:
            bounds = self._hysteresis_bounds(mask)

        logger.debug(
            f"Trim bounds ({self.mode.value}): [{bounds.start}, {bounds.end}) of {length} frames"
        )
        return bounds

    def find_bounds_interleaved(self, samples: ArrayLike, channels: int) -> TrimBounds:
        """Find bounds for flattened interleaved samples.

        Raises:
            MalformedAudioError: If the sample count is not divisible by channels
        """
        return self.find_bounds(deinterleave(samples, channels))

    def trim(self, frames: NDArray[np.floating]) -> NDArray[np.floating]:
        """Return the kept slice of frames."""
        bounds = self.find_bounds(frames)
        return frames[:, bounds.start : bounds.end]

    def _trailing_bounds(self, mask: NDArray[np.bool_]) -> TrimBounds:
        length = len(mask)
        active = np.flatnonzero(mask)
        if active.size == 0:
            # Nothing audible; keep only the guard window from the start
            return TrimBounds(0, min(self.guard_frames, length))

        last_active = int(active[-1])
        return TrimBounds(0, min(last_active + 1 + self.guard_frames, length))

    def _hysteresis_bounds(self, mask: NDArray[np.bool_]) -> TrimBounds:
        length = len(mask)
        starts, ends = _active_runs(mask)
        qualifying = np.flatnonzero(ends - starts >= self.min_active_run)
        if qualifying.size == 0:
            logger.debug(f"No active run of {self.min_active_run} frames, keeping all audio")
            return TrimBounds(0, length)

        start = int(starts[qualifying[0]])
        last_active = int(ends[qualifying[-1]]) - 1
        end = min(last_active + 1 + self.min_active_run + self.guard_frames, length)
        return TrimBounds(start, max(start, end))

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return (
            f"SilenceTrimmer(mode={self.mode.value}, threshold={self.threshold}, "
            f"min_active_run={self.min_active_run}, guard_frames={self.guard_frames})"
        )
