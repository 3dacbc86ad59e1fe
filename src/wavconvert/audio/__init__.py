"""Audio primitives for buffering, resampling, trimming and quantization.

This module provides the building blocks of the conversion pipeline:
per-channel sample buffering, block-oriented resampling with the tail policy,
silence trimming, and float to int16 quantization.
"""

from .buffer import ChannelBuffer, deinterleave, interleave
from .quantize import OverflowPolicy, quantize, quantize_array
from .resampler import BlockConverter, BlockResampler, PolyphaseBlockConverter
from .trimming import SilenceTrimmer, TrimBounds, TrimMode, TrimOrder

__all__ = [
    "ChannelBuffer",
    "deinterleave",
    "interleave",
    "OverflowPolicy",
    "quantize",
    "quantize_array",
    "BlockConverter",
    "BlockResampler",
    "PolyphaseBlockConverter",
    "SilenceTrimmer",
    "TrimBounds",
    "TrimMode",
    "TrimOrder",
]
