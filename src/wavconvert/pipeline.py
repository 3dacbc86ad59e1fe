"""Streaming resample-and-trim conversion pipeline.

Orchestrates one conversion: decoded float frames are accumulated into a
ChannelBuffer, optionally trimmed of silence, resampled in fixed-size chunks,
quantized to int16, and written to a sink.

State machine:
    IDLE → ACCUMULATING → (TRIMMING) → (RESAMPLING) → EMITTING → FINALIZED

finish() walks the stages in order (TRIMMING comes after RESAMPLING when
trimming the resampled buffer). EMITTING is entered before the remaining
output is quantized and written, and lasts until the sink is finalized.
Any fatal error moves the pipeline to FAILED and aborts the sink. FINALIZED
and FAILED are terminal; further pushes raise PipelineClosedError.

Cadence:
    Frames may be pushed one decoded packet at a time (streaming) or all at
    once (batch); both produce identical output. Without trimming, complete
    resampler chunks are processed and written as soon as they are buffered,
    while the pipeline is still ACCUMULATING. With trimming, boundaries
    depend on the whole track, so all output is written during EMITTING.
"""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum

import numpy as np
from numpy.typing import ArrayLike, NDArray

from wavconvert.audio.buffer import ChannelBuffer, interleave
from wavconvert.audio.quantize import OverflowPolicy, quantize_array
from wavconvert.audio.resampler import BlockConverter, BlockResampler, PolyphaseBlockConverter
from wavconvert.audio.trimming import SilenceTrimmer, TrimBounds, TrimMode, TrimOrder
from wavconvert.config import ConverterConfig, TrimConfig
from wavconvert.decoder import AudioDecoder
from wavconvert.errors import PipelineClosedError
from wavconvert.sink import AudioSink
from wavconvert.types import AudioSpec

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Conversion pipeline states."""

    IDLE = "idle"
    ACCUMULATING = "accumulating"
    TRIMMING = "trimming"
    RESAMPLING = "resampling"
    EMITTING = "emitting"
    FINALIZED = "finalized"
    FAILED = "failed"


@dataclass(frozen=True)
class ConversionSummary:
    """Result of a completed conversion.

    Attributes:
        frames_in: Source-rate frames accepted
        frames_out: Target-rate frames written to the sink
        trim_bounds: Kept range in the trimmed buffer (None if not trimmed)
    """

    frames_in: int
    frames_out: int
    trim_bounds: TrimBounds | None


class ConversionPipeline:
    """Single-use pipeline converting float frames to 16-bit PCM.

    Thread-safety: NOT thread-safe. One pipeline per conversion.

    Example:
        ```python
        spec = AudioSpec(channel_count=2, source_sample_rate=44100,
                         target_sample_rate=16000)
        pipeline = ConversionPipeline(spec, WavFileSink("out.wav"))
        for block in decoder.blocks():
            pipeline.push(block)
        summary = pipeline.finish()
        ```
    """

    def __init__(
        self,
        spec: AudioSpec,
        sink: AudioSink,
        trim: TrimConfig | None = None,
        block_size: int = 4096,
        overflow: OverflowPolicy = OverflowPolicy.WRAP,
        converter: BlockConverter | None = None,
    ) -> None:
        """Initialize pipeline.

        Args:
            spec: Channel count and source/target sample rates
            sink: Destination for quantized frames
            trim: Trimming configuration (None disables trimming)
            block_size: Nominal resampler block size in frames
            overflow: Quantizer overflow policy
            converter: Block converter override (default: PolyphaseBlockConverter)

        Raises:
            ResamplerError: If the sample rate ratio is unsupported
        """
        self.spec = spec
        self._sink = sink
        self._trim = trim if trim is not None else TrimConfig(mode=TrimMode.NONE)
        self._overflow = OverflowPolicy(overflow)
        self._state = PipelineState.IDLE

        self._buffer = ChannelBuffer(spec.channel_count)
        self._resampled: ChannelBuffer | None = None
        self._resampler: BlockResampler | None = None
        if spec.needs_resampling:
            block_converter = converter or PolyphaseBlockConverter(
                spec.source_sample_rate,
                spec.target_sample_rate,
                block_size,
                spec.channel_count,
            )
            self._resampler = BlockResampler(
                block_converter, spec.source_sample_rate, spec.target_sample_rate
            )

        self._frames_in = 0
        self._frames_out = 0
        self._trim_bounds: TrimBounds | None = None

        # Observer callback (set to receive state transitions)
        self.on_state_change: Callable[[PipelineState, PipelineState], None] | None = None

        logger.debug(
            f"Pipeline initialized: {spec.channel_count}ch, "
            f"{spec.source_sample_rate}Hz → {spec.target_sample_rate}Hz, "
            f"trim={self._trim.mode.value}/{self._trim.order.value}"
        )

    @classmethod
    def from_config(
        cls,
        spec: AudioSpec,
        sink: AudioSink,
        config: ConverterConfig,
    ) -> "ConversionPipeline":
        """Create a pipeline from a validated converter configuration."""
        return cls(
            spec,
            sink,
            trim=config.trim,
            block_size=config.resample.block_size,
            overflow=config.quantize.overflow,
        )

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def trimming(self) -> bool:
        """True when a trimming variant is configured."""
        return self._trim.mode is not TrimMode.NONE

    @property
    def frames_in(self) -> int:
        return self._frames_in

    @property
    def frames_out(self) -> int:
        return self._frames_out

    def push(self, frames: NDArray[np.floating]) -> None:
        """Accept a batch of decoded frames of shape (channels, n).

        Raises:
            PipelineClosedError: If the pipeline is finalized or failed
            ShapeError: If the batch shape does not match the channel count
        """
        self._ensure_open("push")
        self._guarded(self._accept, frames)

    def push_interleaved(self, samples: ArrayLike) -> None:
        """Accept a batch of interleaved decoded samples.

        Raises:
            PipelineClosedError: If the pipeline is finalized or failed
            MalformedAudioError: If the sample count is not divisible by channels
        """
        self._ensure_open("push")
        self._guarded(self._accept_interleaved, samples)

    def finish(self) -> ConversionSummary:
        """Flush remaining frames, finalize the sink, and close the pipeline.

        Returns:
            ConversionSummary for the completed conversion

        Raises:
            PipelineClosedError: If the pipeline is already finalized or failed
        """
        self._ensure_open("finish")
        self._guarded(self._finish)

        summary = ConversionSummary(
            frames_in=self._frames_in,
            frames_out=self._frames_out,
            trim_bounds=self._trim_bounds,
        )
        logger.info(
            f"Conversion finished: {summary.frames_in} frames in, "
            f"{summary.frames_out} frames out"
        )
        return summary

    def run(self, decoder: AudioDecoder, streaming: bool = True) -> ConversionSummary:
        """Drive a decoder to exhaustion and finish the conversion.

        Args:
            decoder: Source of decoded frame batches
            streaming: Push each decoded batch as it arrives; otherwise decode
                the whole stream first and push it as one batch

        Returns:
            ConversionSummary for the completed conversion
        """
        if streaming:
            for block in self._guarded_iter(decoder):
                self.push(block)
        else:
            blocks = list(self._guarded_iter(decoder))
            if blocks:
                self.push(np.concatenate(blocks, axis=1))
        return self.finish()

    def _guarded_iter(self, decoder: AudioDecoder) -> Iterator[NDArray[np.float32]]:
        self._ensure_open("decode")
        try:
            yield from decoder.blocks()
        except Exception as e:
            self._fail(e)
            raise

    def _ensure_open(self, operation: str) -> None:
        if self._state in (PipelineState.FINALIZED, PipelineState.FAILED):
            raise PipelineClosedError(
                f"Cannot {operation}: pipeline is {self._state.value}",
                stage=operation,
            )

    def _guarded(self, func: Callable[..., None], *args: object) -> None:
        try:
            func(*args)
        except Exception as e:
            self._fail(e)
            raise

    def _fail(self, error: Exception) -> None:
        if self._state is PipelineState.FAILED:
            return
        logger.error(f"Conversion failed in state {self._state.value}: {error}")
        self._set_state(PipelineState.FAILED)
        self._buffer.clear()
        self._sink.abort()

    def _set_state(self, state: PipelineState) -> None:
        previous = self._state
        if previous is state:
            return
        self._state = state
        logger.debug(f"Pipeline state: {previous.value} → {state.value}")
        if self.on_state_change:
            self.on_state_change(previous, state)

    def _open(self) -> None:
        if self._state is PipelineState.IDLE:
            self._sink.open(self.spec)
            self._set_state(PipelineState.ACCUMULATING)

    def _accept(self, frames: NDArray[np.floating]) -> None:
        self._open()
        before = len(self._buffer)
        self._buffer.append(frames)
        self._frames_in += len(self._buffer) - before
        self._process_available()

    def _accept_interleaved(self, samples: ArrayLike) -> None:
        self._open()
        before = len(self._buffer)
        self._buffer.append_interleaved(samples)
        self._frames_in += len(self._buffer) - before
        self._process_available()

    def _process_available(self) -> None:
        """Consume whatever can be consumed without end-of-stream knowledge."""
        if not self.trimming:
            if self._resampler is None:
                self._emit(self._buffer.drain_front(len(self._buffer)))
            else:
                for chunk in self._resampler.drain(self._buffer):
                    self._emit(chunk)
        elif self._resampler is not None and self._trim.order is TrimOrder.AFTER_RESAMPLE:
            self._resample_into_target(final=False)

    def _resample_into_target(self, final: bool) -> None:
        assert self._resampler is not None
        if self._resampled is None:
            self._resampled = ChannelBuffer(self.spec.channel_count)
        for chunk in self._resampler.drain(self._buffer, final=final):
            self._resampled.append(chunk)

    def _finish(self) -> None:
        self._open()

        if self.trimming and self._trim.order is TrimOrder.BEFORE_RESAMPLE:
            self._apply_trim(self._buffer, self.spec.source_sample_rate)

        if self._resampler is not None:
            self._set_state(PipelineState.RESAMPLING)
            self._resample_into_target(final=True)
            output = self._resampled
        else:
            output = self._buffer
        assert output is not None

        if self.trimming and self._trim.order is TrimOrder.AFTER_RESAMPLE:
            self._apply_trim(output, self.spec.target_sample_rate)

        self._set_state(PipelineState.EMITTING)
        self._emit(output.drain_front(len(output)))
        self._sink.finalize()
        self._set_state(PipelineState.FINALIZED)

    def _apply_trim(self, buffer: ChannelBuffer, sample_rate: int) -> None:
        self._set_state(PipelineState.TRIMMING)
        trimmer: SilenceTrimmer = self._trim.build_trimmer(sample_rate)
        bounds = trimmer.find_bounds(buffer.view())
        buffer.truncate(bounds.start, bounds.end)
        self._trim_bounds = bounds
        logger.info(
            f"Trimmed silence ({trimmer.mode.value}): kept frames "
            f"[{bounds.start}, {bounds.end}) at {sample_rate}Hz"
        )

    def _emit(self, chunk: NDArray[np.floating]) -> None:
        if chunk.shape[1] == 0:
            return
        pcm = quantize_array(interleave(chunk), self._overflow)
        self._sink.write(pcm)
        self._frames_out += pcm.shape[0]

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return (
            f"ConversionPipeline(state={self._state.value}, "
            f"frames_in={self._frames_in}, frames_out={self._frames_out}, "
            f"buffered={len(self._buffer)})"
        )
