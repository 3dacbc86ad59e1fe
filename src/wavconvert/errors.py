"""Exception hierarchy for audio conversion.

Every failure raised by the conversion pipeline derives from ConversionError,
which carries the pipeline stage and (where meaningful) the frame index at
which the failure was detected.

Fatal kinds abort the whole conversion and propagate to the caller:
- DecodeError / UnsupportedFormatError: input could not be decoded
- ShapeError: channel-count or length mismatch between buffers
- ResamplerError: block converter rejected a block
- MalformedAudioError: sample count not divisible by channel count
- PipelineClosedError: use of a pipeline after finalize or failure

InsufficientData is an internal signal used by the chunk loop and is never
surfaced to callers.
"""


class ConversionError(Exception):
    """Base exception for audio conversion errors."""

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        frame_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.frame_index = frame_index

    def __str__(self) -> str:
        context = []
        if self.stage is not None:
            context.append(f"stage={self.stage}")
        if self.frame_index is not None:
            context.append(f"frame={self.frame_index}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class DecodeError(ConversionError):
    """Raised when the decoder fails to produce frames."""

    pass


class UnsupportedFormatError(ConversionError):
    """Raised when the input container or codec cannot be opened."""

    pass


class ShapeError(ConversionError):
    """Raised when channel counts or per-channel lengths disagree."""

    pass


class InsufficientData(ConversionError):
    """Raised when fewer frames are buffered than a drain requested."""

    pass


class ResamplerError(ConversionError):
    """Raised when the block converter rejects a block."""

    pass


class MalformedAudioError(ConversionError):
    """Raised when a flattened sample count is not divisible by channels."""

    pass


class PipelineClosedError(ConversionError):
    """Raised when a finalized or failed pipeline is used again."""

    pass
