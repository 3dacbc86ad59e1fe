"""Convert decoded audio to fixed-rate 16-bit PCM with silence trimming.

Example:
    >>> from wavconvert import AudioConverter, ConverterConfig
    >>> AudioConverter(ConverterConfig(target_sample_rate=16000)).convert_file(
    ...     "speech.ogg", "speech.wav"
    ... )
"""

from .config import ConverterConfig, TrimConfig
from .converter import AudioConverter
from .errors import (
    ConversionError,
    DecodeError,
    InsufficientData,
    MalformedAudioError,
    PipelineClosedError,
    ResamplerError,
    ShapeError,
    UnsupportedFormatError,
)
from .pipeline import ConversionPipeline, ConversionSummary, PipelineState
from .types import AudioSpec

__version__ = "0.1.0"

__all__ = [
    "AudioConverter",
    "AudioSpec",
    "ConversionPipeline",
    "ConversionSummary",
    "ConverterConfig",
    "PipelineState",
    "TrimConfig",
    "ConversionError",
    "DecodeError",
    "InsufficientData",
    "MalformedAudioError",
    "PipelineClosedError",
    "ResamplerError",
    "ShapeError",
    "UnsupportedFormatError",
]
