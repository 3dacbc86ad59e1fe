"""Float to 16-bit integer PCM quantization.

Samples are scaled by 32768.0 (the magnitude of the most negative int16) and
truncated toward zero. No clamping is performed by default: values outside
the int16 range wrap with two's-complement semantics, so quantize(1.0) is
-32768. OverflowPolicy.CLIP saturates instead.
"""

from enum import Enum
from typing import Final

import numpy as np
from numpy.typing import ArrayLike, NDArray

SCALE: Final[float] = 32768.0
INT16_MIN: Final[int] = -32768
INT16_MAX: Final[int] = 32767


class OverflowPolicy(str, Enum):
    """Handling of scaled values outside the int16 range."""

    WRAP = "wrap"
    CLIP = "clip"


def quantize_array(
    samples: ArrayLike,
    overflow: OverflowPolicy = OverflowPolicy.WRAP,
) -> NDArray[np.int16]:
    """Quantize float samples to int16.

    Args:
        samples: Float samples, nominally in [-1.0, 1.0]
        overflow: WRAP (two's-complement wraparound) or CLIP (saturate)

    Returns:
        int16 array of the same shape. NaN maps to 0.

    Example:
        >>> quantize_array(np.array([0.5, -0.5, 1.0], dtype=np.float32))
        array([ 16384, -16384, -32768], dtype=int16)
    """
    scaled = np.trunc(np.asarray(samples, dtype=np.float64) * SCALE)

    if overflow is OverflowPolicy.CLIP:
        scaled = np.clip(scaled, INT16_MIN, INT16_MAX)
    else:
        # Reduce modulo 2**16 first so the integer cast below is always defined
        with np.errstate(invalid="ignore"):
            scaled = np.fmod(scaled, 65536.0)

    scaled = np.nan_to_num(scaled, nan=0.0, posinf=0.0, neginf=0.0)
    # int32 → int16 narrowing wraps modulo 2**16
    return scaled.astype(np.int32).astype(np.int16)


def quantize(sample: float, overflow: OverflowPolicy = OverflowPolicy.WRAP) -> int:
    """Quantize a single float sample to an int16 value."""
    return int(quantize_array(np.array([sample], dtype=np.float64), overflow)[0])
