"""Output sinks for quantized 16-bit PCM.

A sink is opened once with the conversion's AudioSpec, receives interleaved
int16 frames, and must be finalized exactly once. On failure the pipeline
calls abort() instead, and the sink discards whatever it wrote.

WavFileSink writes to a temporary file next to the target and renames it
into place only on finalize(), so a failed conversion never leaves a partial
file at the output path.
"""

import logging
import os
from pathlib import Path
from typing import BinaryIO, Protocol

import numpy as np
import soundfile as sf
from numpy.typing import NDArray

from wavconvert.types import AudioSpec

logger = logging.getLogger(__name__)


class AudioSink(Protocol):
    """Protocol for 16-bit integer PCM sinks."""

    def open(self, spec: AudioSpec) -> None:
        """Prepare the sink for spec.channel_count channels at the target rate."""
        ...

    def write(self, frames: NDArray[np.int16]) -> None:
        """Write interleaved frames of shape (n, channels)."""
        ...

    def finalize(self) -> None:
        """Flush headers and close. Must be called exactly once."""
        ...

    def abort(self) -> None:
        """Discard all output written so far."""
        ...


class SinkStateError(RuntimeError):
    """Raised when a sink is used out of order."""

    pass


def _check_frames(frames: NDArray[np.int16], channels: int) -> None:
    if frames.dtype != np.int16:
        raise TypeError(f"Sink expects int16 samples, got {frames.dtype}")
    if frames.ndim != 2 or frames.shape[1] != channels:
        raise ValueError(f"Expected frames of shape (n, {channels}), got {frames.shape}")


class MemorySink:
    """Sink that keeps written frames in memory.

    Example:
        ```python
        sink = MemorySink()
        pipeline = ConversionPipeline(spec, sink)
        ...
        pipeline.finish()
        pcm = sink.samples  # interleaved int16
        ```
    """

    def __init__(self) -> None:
        self.spec: AudioSpec | None = None
        self.open_count = 0
        self.finalized = False
        self.aborted = False
        self._chunks: list[NDArray[np.int16]] = []

    def open(self, spec: AudioSpec) -> None:
        if self.spec is not None:
            raise SinkStateError("Sink already opened")
        self.spec = spec
        self.open_count += 1

    def write(self, frames: NDArray[np.int16]) -> None:
        if self.spec is None or self.finalized or self.aborted:
            raise SinkStateError("Sink is not open")
        _check_frames(frames, self.spec.channel_count)
        if frames.shape[0]:
            self._chunks.append(frames.copy())

    def finalize(self) -> None:
        if self.spec is None or self.finalized or self.aborted:
            raise SinkStateError("Sink is not open")
        self.finalized = True

    def abort(self) -> None:
        self._chunks.clear()
        self.aborted = True

    @property
    def frames(self) -> NDArray[np.int16]:
        """All written frames, shape (n, channels)."""
        channels = self.spec.channel_count if self.spec else 1
        if not self._chunks:
            return np.zeros((0, channels), dtype=np.int16)
        return np.concatenate(self._chunks, axis=0)

    @property
    def samples(self) -> NDArray[np.int16]:
        """All written samples, interleaved and flattened."""
        return self.frames.reshape(-1)

    @property
    def frame_count(self) -> int:
        return sum(chunk.shape[0] for chunk in self._chunks)


class WavFileSink:
    """16-bit PCM WAV file sink using soundfile.

    Output goes to a hidden temporary file in the target directory and is
    moved over the target path by finalize(). abort() deletes it.

    Example:
        ```python
        sink = WavFileSink("output.wav")
        sink.open(AudioSpec(channel_count=2, source_sample_rate=44100,
                            target_sample_rate=16000))
        sink.write(np.zeros((1600, 2), dtype=np.int16))
        sink.finalize()
        ```
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._tmp_path = self.path.with_name(f".{self.path.name}.part")
        self._file: sf.SoundFile | None = None
        self._spec: AudioSpec | None = None
        self._frames_written = 0
        self._closed = False

    @property
    def frames_written(self) -> int:
        return self._frames_written

    def open(self, spec: AudioSpec) -> None:
        if self._file is not None or self._closed:
            raise SinkStateError(f"Sink for {self.path} already opened")

        logger.info(
            f"Opening WAV sink: {self.path} "
            f"({spec.channel_count}ch, {spec.target_sample_rate}Hz, "
            f"{spec.bits_per_sample}-bit PCM)"
        )
        self._file = sf.SoundFile(
            self._tmp_path,
            mode="w",
            samplerate=spec.target_sample_rate,
            channels=spec.channel_count,
            subtype="PCM_16",
            format="WAV",
        )
        self._spec = spec

    def write(self, frames: NDArray[np.int16]) -> None:
        if self._file is None or self._spec is None:
            raise SinkStateError(f"Sink for {self.path} is not open")
        _check_frames(frames, self._spec.channel_count)
        self._file.write(frames)
        self._frames_written += frames.shape[0]

    def finalize(self) -> None:
        if self._file is None:
            raise SinkStateError(f"Sink for {self.path} is not open")

        self._file.close()
        self._file = None
        self._closed = True
        os.replace(self._tmp_path, self.path)
        logger.info(f"Finalized WAV file: {self.path} ({self._frames_written} frames)")

    def abort(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
        self._closed = True
        if self._tmp_path.exists():
            self._tmp_path.unlink()
            logger.warning(f"Discarded partial output for {self.path}")


class StreamWavSink:
    """16-bit PCM WAV sink writing to a seekable binary stream.

    Used to produce WAV bytes in memory (e.g., io.BytesIO). abort() leaves
    the stream contents undefined; callers should drop the stream.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream
        self._file: sf.SoundFile | None = None
        self._spec: AudioSpec | None = None

    def open(self, spec: AudioSpec) -> None:
        if self._file is not None:
            raise SinkStateError("Stream sink already opened")
        self._file = sf.SoundFile(
            self.stream,
            mode="w",
            samplerate=spec.target_sample_rate,
            channels=spec.channel_count,
            subtype="PCM_16",
            format="WAV",
        )
        self._spec = spec

    def write(self, frames: NDArray[np.int16]) -> None:
        if self._file is None or self._spec is None:
            raise SinkStateError("Stream sink is not open")
        _check_frames(frames, self._spec.channel_count)
        self._file.write(frames)

    def finalize(self) -> None:
        if self._file is None:
            raise SinkStateError("Stream sink is not open")
        self._file.close()
        self._file = None

    def abort(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
