"""Unit tests for the conversion error hierarchy."""

import pytest

from wavconvert.errors import (
    ConversionError,
    DecodeError,
    InsufficientData,
    MalformedAudioError,
    PipelineClosedError,
    ResamplerError,
    ShapeError,
    UnsupportedFormatError,
)


@pytest.mark.parametrize(
    "error_cls",
    [
        DecodeError,
        UnsupportedFormatError,
        ShapeError,
        InsufficientData,
        ResamplerError,
        MalformedAudioError,
        PipelineClosedError,
    ],
)
def test_all_errors_are_conversion_errors(error_cls: type[ConversionError]) -> None:
    """Test every error kind can be caught as ConversionError."""
    with pytest.raises(ConversionError):
        raise error_cls("boom")


def test_str_without_context() -> None:
    """Test plain message formatting."""
    assert str(ConversionError("boom")) == "boom"


def test_str_with_context() -> None:
    """Test stage and frame index are appended."""
    error = ResamplerError("Converter failed", stage="resample", frame_index=8192)
    assert error.stage == "resample"
    assert error.frame_index == 8192
    assert error.message == "Converter failed"
    assert str(error) == "Converter failed (stage=resample, frame=8192)"


def test_str_with_stage_only() -> None:
    """Test stage-only formatting."""
    assert str(DecodeError("bad packet", stage="decode")) == "bad packet (stage=decode)"
