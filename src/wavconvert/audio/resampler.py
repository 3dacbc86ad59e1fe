"""Block-oriented sample rate conversion.

Provides the BlockResampler, which feeds an opaque fixed-ratio block
converter with exactly-sized chunks drained from a ChannelBuffer, and
applies the tail policy to the final partial chunk.

Key features:
- Chunk size discovery before every converter call
- Zero padding plus output truncation for the final partial chunk
- Converter latency compensation (output stays time-aligned with input)
- Stateful polyphase default converter using scipy's resample_poly
- Pluggable converter via the BlockConverter protocol
"""

import logging
from collections.abc import Iterator
from math import ceil, gcd
from typing import Any, Protocol, cast

import numpy as np
from numpy.typing import NDArray
from scipy import signal

from wavconvert.audio.buffer import ChannelBuffer
from wavconvert.errors import InsufficientData, ResamplerError

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_SIZE = 4096

# Same anti-aliasing filter resample_poly designs by default
FILTER_HALF_LENGTH_FACTOR = 10
FILTER_WINDOW = ("kaiser", 5.0)


class BlockConverter(Protocol):
    """Protocol for fixed-ratio block sample rate converters.

    A converter consumes blocks of exactly input_frames_next() frames per
    channel and returns a block whose length it alone determines. Stateful
    converters may delay their output; output_delay() reports by how many
    output frames.
    """

    def input_frames_next(self) -> int:
        """Number of input frames required by the next process() call."""
        ...

    def output_delay(self) -> int:
        """Output frames emitted before the first frame of real signal."""
        ...

    def process(self, block: NDArray[np.float32]) -> NDArray[np.float32]:
        """Convert a (channels, input_frames_next()) block.

        Raises:
            ResamplerError: If the block is malformed or conversion fails
        """
        ...


class PolyphaseBlockConverter:
    """Fixed input/output block converter using polyphase filtering.

    Block sizes are whole multiples of the reduced rate ratio, so each block
    maps to an exact integer number of output frames and the ratio never
    drifts across blocks.

    Blocks are not filtered in isolation. The converter keeps a history of
    past input frames and filters history + block with resample_poly, then
    returns the window of output whose filter support is fully covered by
    real input. The result is continuous across block boundaries and equals
    resample_poly over the whole stream, delayed by output_delay() frames.

    Example:
        ```python
        converter = PolyphaseBlockConverter(44100, 16000, block_size=4096, channels=2)
        converter.input_frames_next()   # 4410
        converter.output_frames_next()  # 1600
        converter.output_delay()        # 160
        ```
    """

    def __init__(
        self,
        source_rate: int,
        target_rate: int,
        block_size: int = DEFAULT_BLOCK_SIZE,
        channels: int = 1,
    ) -> None:
        """Initialize converter.

        Args:
            source_rate: Source sample rate in Hz
            target_rate: Target sample rate in Hz
            block_size: Nominal input block size in frames
            channels: Number of channels per block

        Raises:
            ResamplerError: If the rate ratio is unsupported
            ValueError: If block_size or channels is not positive
        """
        if source_rate <= 0 or target_rate <= 0:
            raise ResamplerError(
                f"Unsupported ratio: source={source_rate}, target={target_rate}",
                stage="configure",
            )
        if block_size <= 0:
            raise ValueError(f"Block size must be positive, got {block_size}")
        if channels <= 0:
            raise ValueError(f"Channels must be positive, got {channels}")

        divisor = gcd(source_rate, target_rate)
        self._up = target_rate // divisor
        self._down = source_rate // divisor
        wanted_out = block_size * target_rate // source_rate
        sub_chunks = max(1, ceil(wanted_out / self._up))

        self._channels = channels
        self._input_frames = sub_chunks * self._down
        self._output_frames = sub_chunks * self._up

        max_rate = max(self._up, self._down)
        self._taps: NDArray[np.float64] | None = None
        self._delay_in = 0
        if max_rate > 1:
            half_len = FILTER_HALF_LENGTH_FACTOR * max_rate
            self._taps = signal.firwin(2 * half_len + 1, 1.0 / max_rate, window=FILTER_WINDOW)

            # Input frames on either side of an output frame that the filter reaches,
            # rounded up to whole ratio periods so the delay maps to whole output frames
            reach = ceil(half_len / self._up) + 1
            self._delay_in = ceil(reach / self._down) * self._down
        self._history = np.zeros((channels, 2 * self._delay_in), dtype=np.float32)

        logger.debug(
            f"PolyphaseBlockConverter: {source_rate}Hz → {target_rate}Hz, "
            f"block {self._input_frames} → {self._output_frames} frames, "
            f"delay {self.output_delay()} frames"
        )

    def input_frames_next(self) -> int:
        return self._input_frames

    def output_frames_next(self) -> int:
        return self._output_frames

    def output_delay(self) -> int:
        return self._delay_in * self._up // self._down

    def process(self, block: NDArray[np.float32]) -> NDArray[np.float32]:
        if block.shape != (self._channels, self._input_frames):
            raise ResamplerError(
                f"Malformed block: expected shape ({self._channels}, {self._input_frames}), "
                f"got {block.shape}",
                stage="resample",
            )
        if self._taps is None:
            return block.astype(np.float32, copy=True)

        history_len = self._history.shape[1]
        window = np.concatenate([self._history, block.astype(np.float32, copy=False)], axis=1)

        # scipy.signal.resample_poly returns ndarray with Any dtype, so we cast it
        resampled: NDArray[Any] = cast(
            NDArray[Any],
            signal.resample_poly(window, self._up, self._down, axis=1, window=self._taps),
        )

        start = (history_len - self._delay_in) * self._up // self._down
        self._history = window[:, -history_len:].copy()
        return resampled[:, start : start + self._output_frames].astype(np.float32)


class BlockResampler:
    """Adapter feeding a BlockConverter from a ChannelBuffer.

    Owns chunk-size discovery, the chunk loop, and the tail policy: the final
    partial chunk is zero-padded to the required length, converted, and the
    output truncated to floor(remaining * target_rate / source_rate) frames.

    Converter latency is removed here: the first output_delay() frames are
    dropped, and at end of stream zero chunks are fed until the delayed
    frames have been emitted. Total output therefore stays
    full_chunks * chunk_output + floor(remaining * target_rate / source_rate).

    Thread-safety: NOT thread-safe. Owned by a single pipeline.

    Example:
        ```python
        resampler = BlockResampler.create(44100, 16000, channels=2)
        for out_chunk in resampler.drain(buffer, final=False):
            emit(out_chunk)
        for out_chunk in resampler.drain(buffer, final=True):
            emit(out_chunk)
        ```
    """

    def __init__(
        self,
        converter: BlockConverter,
        source_rate: int,
        target_rate: int,
    ) -> None:
        """Initialize resampler.

        Args:
            converter: Opaque block converter configured for this conversion
            source_rate: Source sample rate in Hz
            target_rate: Target sample rate in Hz

        Raises:
            ResamplerError: If sample rates are not positive or the converter
                reports an invalid chunk size or delay
        """
        if source_rate <= 0 or target_rate <= 0:
            raise ResamplerError(
                f"Unsupported ratio: source={source_rate}, target={target_rate}",
                stage="configure",
            )

        self._converter = converter
        self._source_rate = source_rate
        self._target_rate = target_rate
        self._flushed = False
        self._chunks_processed = 0
        self._frames_in = 0

        delay = converter.output_delay()
        if delay < 0:
            raise ResamplerError(
                f"Converter output delay must be non-negative, got {delay}", stage="configure"
            )
        self._skip = delay
        self._converted = 0
        self._emitted = 0

        logger.info(
            f"Resampler initialized: {source_rate}Hz → {target_rate}Hz "
            f"(chunk={self.required_input_length()} frames, delay={delay} frames)"
        )

    @classmethod
    def create(
        cls,
        source_rate: int,
        target_rate: int,
        channels: int,
        block_size: int = DEFAULT_BLOCK_SIZE,
    ) -> "BlockResampler":
        """Create a resampler backed by the default polyphase block converter."""
        converter = PolyphaseBlockConverter(source_rate, target_rate, block_size, channels)
        return cls(converter, source_rate, target_rate)

    @property
    def source_rate(self) -> int:
        """Get source sample rate."""
        return self._source_rate

    @property
    def target_rate(self) -> int:
        """Get target sample rate."""
        return self._target_rate

    @property
    def flushed(self) -> bool:
        """True once the tail policy has been applied."""
        return self._flushed

    def required_input_length(self) -> int:
        """Frames the converter needs for the next call.

        Raises:
            ResamplerError: If the converter reports a non-positive size
        """
        required = self._converter.input_frames_next()
        if required <= 0:
            raise ResamplerError(
                f"Converter requested {required} input frames; chunk size must be positive",
                stage="configure",
                frame_index=self._frames_in,
            )
        return required

    def tail_output_length(self, remaining: int) -> int:
        """Output frames kept for a final chunk holding `remaining` real frames."""
        return remaining * self._target_rate // self._source_rate

    def process(self, chunk: NDArray[np.float32]) -> NDArray[np.float32]:
        """Convert one exactly-sized chunk.

        Args:
            chunk: Input of shape (channels, required_input_length())

        Returns:
            Converted chunk of shape (channels, converter-defined length),
            before latency compensation

        Raises:
            ResamplerError: If the chunk length is wrong or the converter fails
        """
        if self._flushed:
            raise ResamplerError("Resampler already flushed", stage="resample")

        required = self.required_input_length()
        if chunk.ndim != 2 or chunk.shape[1] != required:
            raise ResamplerError(
                f"Chunk must have exactly {required} frames per channel, got shape {chunk.shape}",
                stage="resample",
                frame_index=self._frames_in,
            )

        try:
            output = self._converter.process(chunk)
        except ResamplerError as e:
            if e.frame_index is None:
                e.frame_index = self._frames_in
            logger.error(f"Converter rejected block at frame {self._frames_in}: {e.message}")
            raise
        except (ValueError, FloatingPointError) as e:
            logger.error(f"Converter failed at frame {self._frames_in}: {e}")
            raise ResamplerError(
                f"Converter failed: {e}", stage="resample", frame_index=self._frames_in
            ) from e

        if output.ndim != 2 or output.shape[0] != chunk.shape[0]:
            raise ResamplerError(
                f"Converter returned shape {output.shape} for {chunk.shape[0]} channels",
                stage="resample",
                frame_index=self._frames_in,
            )

        self._chunks_processed += 1
        self._frames_in += required
        return output

    def drain(self, buffer: ChannelBuffer, final: bool = False) -> Iterator[NDArray[np.float32]]:
        """Process complete chunks from buffer, then the tail if final.

        Args:
            buffer: Source-rate frames to consume
            final: No more input will arrive; apply the tail policy

        Yields:
            Converted, latency-compensated chunks in order
        """
        while True:
            try:
                chunk = buffer.drain_front(self.required_input_length())
            except InsufficientData:
                break
            output = self.process(chunk)
            self._converted += output.shape[1]
            aligned = self._align(output)
            if aligned.shape[1]:
                yield aligned

        if final:
            yield from self._flush_tail(buffer)

    def _align(self, output: NDArray[np.float32], limit: int | None = None) -> NDArray[np.float32]:
        """Drop pending delay frames, cap at limit, and count what is kept."""
        skipped = min(self._skip, output.shape[1])
        self._skip -= skipped
        aligned = output[:, skipped:]
        if limit is not None:
            aligned = aligned[:, : max(0, limit - self._emitted)]
        self._emitted += aligned.shape[1]
        return aligned

    def _flush_tail(self, buffer: ChannelBuffer) -> Iterator[NDArray[np.float32]]:
        if self._flushed:
            raise ResamplerError("Tail policy already applied", stage="resample")

        remaining = len(buffer)
        channels = buffer.channels
        required = self.required_input_length()
        total = self._converted + self.tail_output_length(remaining)

        if remaining > 0:
            buffer.pad_to(required)
            output = self.process(buffer.drain_front(required))
            logger.debug(
                f"Final chunk: {remaining} real frames padded to {required}, "
                f"keeping {self.tail_output_length(remaining)}/{output.shape[1]} output frames"
            )
            aligned = self._align(output, limit=total)
            if aligned.shape[1]:
                yield aligned

        # Push the converter's delayed frames out with silence
        while self._emitted < total:
            output = self.process(np.zeros((channels, required), dtype=np.float32))
            if output.shape[1] == 0:
                raise ResamplerError(
                    "Converter produced no output while flushing delayed frames",
                    stage="resample",
                    frame_index=self._frames_in,
                )
            aligned = self._align(output, limit=total)
            if aligned.shape[1]:
                yield aligned

        self._flushed = True
        logger.debug(f"Resampler flushed after {self._chunks_processed} chunks")
