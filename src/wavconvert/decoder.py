"""Decoded audio sources.

A decoder exposes the stream's channel count and sample rate before the
first frame and yields decoded float32 frame batches of shape
(channels, n) until the stream is exhausted.

SoundFileDecoder reads any container/codec libsndfile supports (WAV, FLAC,
Ogg Vorbis, Opus, MP3 on recent builds) from a path, raw bytes, or a binary
file object. ArrayDecoder serves samples already held in memory.
"""

import io
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO, Protocol

import numpy as np
import soundfile as sf
from numpy.typing import ArrayLike, NDArray

from wavconvert.audio.buffer import deinterleave
from wavconvert.errors import DecodeError, UnsupportedFormatError

logger = logging.getLogger(__name__)

DEFAULT_DECODE_BLOCK = 4096


class AudioDecoder(Protocol):
    """Protocol for decoded float frame sources."""

    @property
    def channels(self) -> int:
        """Number of channels in the stream."""
        ...

    @property
    def sample_rate(self) -> int:
        """Source sample rate in Hz."""
        ...

    def blocks(self) -> Iterator[NDArray[np.float32]]:
        """Yield decoded batches of shape (channels, n).

        Raises:
            DecodeError: If decoding fails part-way through the stream
        """
        ...


class SoundFileDecoder:
    """Decoder backed by libsndfile via soundfile.

    Example:
        ```python
        with SoundFileDecoder("speech.flac") as decoder:
            print(decoder.channels, decoder.sample_rate)
            for block in decoder.blocks():
                pipeline.push(block)
        ```
    """

    def __init__(
        self,
        source: str | Path | bytes | BinaryIO,
        block_frames: int = DEFAULT_DECODE_BLOCK,
    ) -> None:
        """Open and probe the input.

        Args:
            source: File path, encoded bytes, or binary file object
            block_frames: Frames per decoded batch

        Raises:
            UnsupportedFormatError: If the input cannot be opened or probed
            ValueError: If block_frames is not positive
        """
        if block_frames <= 0:
            raise ValueError(f"Block size must be positive, got {block_frames}")

        self._block_frames = block_frames
        self._name = str(source) if isinstance(source, (str, Path)) else "<stream>"
        file_source: str | Path | BinaryIO = (
            io.BytesIO(source) if isinstance(source, bytes) else source
        )

        try:
            self._file = sf.SoundFile(file_source, mode="r")
        except sf.LibsndfileError as e:
            logger.error(f"Failed to probe audio input {self._name}: {e}")
            raise UnsupportedFormatError(
                f"Cannot open audio input {self._name}: {e}", stage="probe"
            ) from e

        logger.info(
            f"Input audio: format={self._file.format} ({self._file.subtype}), "
            f"channels={self._file.channels}, sample_rate={self._file.samplerate}Hz"
        )

    @property
    def channels(self) -> int:
        return int(self._file.channels)

    @property
    def sample_rate(self) -> int:
        return int(self._file.samplerate)

    @property
    def format_info(self) -> str:
        """Human-readable container and codec description."""
        return f"{self._file.format_info} / {self._file.subtype_info}"

    def blocks(self) -> Iterator[NDArray[np.float32]]:
        frames_read = 0
        while True:
            try:
                block = self._file.read(self._block_frames, dtype="float32", always_2d=True)
            except sf.LibsndfileError as e:
                logger.error(f"Decode failed at frame {frames_read}: {e}")
                raise DecodeError(
                    f"Failed to decode {self._name}: {e}",
                    stage="decode",
                    frame_index=frames_read,
                ) from e

            if block.shape[0] == 0:
                break
            frames_read += block.shape[0]
            yield np.ascontiguousarray(block.T)

        logger.debug(f"Decoded {frames_read} frames from {self._name}")

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> "SoundFileDecoder":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ArrayDecoder:
    """Decoder over samples already in memory.

    Accepts either per-channel samples of shape (channels, n) or flattened
    interleaved samples together with a channel count.

    Example:
        ```python
        decoder = ArrayDecoder.from_interleaved(pcm_float, channels=2, sample_rate=44100)
        ```
    """

    def __init__(
        self,
        frames: NDArray[np.floating],
        sample_rate: int,
        block_frames: int | None = None,
    ) -> None:
        """Initialize decoder.

        Args:
            frames: Samples of shape (channels, n)
            sample_rate: Sample rate in Hz
            block_frames: Frames per yielded batch (None yields one batch)

        Raises:
            ValueError: If parameters are invalid
        """
        if frames.ndim != 2 or frames.shape[0] == 0:
            raise ValueError(f"Expected frames of shape (channels, n), got {frames.shape}")
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")
        if block_frames is not None and block_frames <= 0:
            raise ValueError(f"Block size must be positive, got {block_frames}")

        self._frames = frames.astype(np.float32, copy=False)
        self._sample_rate = sample_rate
        self._block_frames = block_frames

    @classmethod
    def from_interleaved(
        cls,
        samples: ArrayLike,
        channels: int,
        sample_rate: int,
        block_frames: int | None = None,
    ) -> "ArrayDecoder":
        """Create a decoder from flattened interleaved samples.

        Raises:
            MalformedAudioError: If the sample count is not divisible by channels
        """
        return cls(deinterleave(samples, channels), sample_rate, block_frames)

    @property
    def channels(self) -> int:
        return int(self._frames.shape[0])

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def blocks(self) -> Iterator[NDArray[np.float32]]:
        total = self._frames.shape[1]
        step = self._block_frames or max(total, 1)
        for start in range(0, total, step):
            yield self._frames[:, start : start + step]
