"""Unit tests for PCM sinks.

Tests in-memory and WAV file sinks, including discard-on-abort semantics.
"""

import io
from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from wavconvert.errors import MalformedAudioError
from wavconvert.pipeline import ConversionPipeline
from wavconvert.sink import MemorySink, SinkStateError, StreamWavSink, WavFileSink
from wavconvert.types import AudioSpec

SPEC = AudioSpec(channel_count=2, source_sample_rate=44100, target_sample_rate=16000)


@pytest.fixture
def pcm() -> np.ndarray:
    """Stereo int16 ramp of shape (1000, 2)."""
    left = np.arange(-500, 500, dtype=np.int16)
    return np.stack([left, -left], axis=1)


class TestMemorySink:
    """Test MemorySink."""

    def test_collects_frames(self, pcm: np.ndarray) -> None:
        """Test written frames are concatenated."""
        sink = MemorySink()
        sink.open(SPEC)
        sink.write(pcm[:400])
        sink.write(pcm[400:])
        sink.finalize()

        np.testing.assert_array_equal(sink.frames, pcm)
        assert sink.samples.tolist()[:4] == [-500, 500, -499, 499]
        assert sink.frame_count == 1000

    def test_write_before_open(self, pcm: np.ndarray) -> None:
        """Test writing to an unopened sink raises SinkStateError."""
        with pytest.raises(SinkStateError):
            MemorySink().write(pcm)

    def test_open_twice(self) -> None:
        """Test a sink cannot be reopened."""
        sink = MemorySink()
        sink.open(SPEC)
        with pytest.raises(SinkStateError, match="already opened"):
            sink.open(SPEC)

    def test_wrong_dtype(self) -> None:
        """Test float frames are rejected."""
        sink = MemorySink()
        sink.open(SPEC)
        with pytest.raises(TypeError, match="int16"):
            sink.write(np.zeros((10, 2), dtype=np.float32))

    def test_wrong_channels(self) -> None:
        """Test frames with the wrong channel count are rejected."""
        sink = MemorySink()
        sink.open(SPEC)
        with pytest.raises(ValueError, match="Expected frames of shape"):
            sink.write(np.zeros((10, 3), dtype=np.int16))

    def test_abort_discards(self, pcm: np.ndarray) -> None:
        """Test abort drops everything written."""
        sink = MemorySink()
        sink.open(SPEC)
        sink.write(pcm)
        sink.abort()
        assert sink.frame_count == 0
        with pytest.raises(SinkStateError):
            sink.finalize()


class TestWavFileSink:
    """Test WavFileSink."""

    def test_writes_pcm16_wav(self, tmp_path: Path, pcm: np.ndarray) -> None:
        """Test a finalized file has the target spec and exact samples."""
        path = tmp_path / "out.wav"
        sink = WavFileSink(path)
        sink.open(SPEC)
        sink.write(pcm)
        sink.finalize()

        info = sf.info(path)
        assert info.samplerate == 16000
        assert info.channels == 2
        assert info.subtype == "PCM_16"
        data, _ = sf.read(path, dtype="int16")
        np.testing.assert_array_equal(data, pcm)
        assert sink.frames_written == 1000

    def test_no_output_until_finalize(self, tmp_path: Path, pcm: np.ndarray) -> None:
        """Test the target path only appears on finalize."""
        path = tmp_path / "out.wav"
        sink = WavFileSink(path)
        sink.open(SPEC)
        sink.write(pcm)
        assert not path.exists()
        sink.finalize()
        assert path.exists()
        assert list(tmp_path.iterdir()) == [path]

    def test_abort_removes_partial_file(self, tmp_path: Path, pcm: np.ndarray) -> None:
        """Test abort leaves nothing behind."""
        path = tmp_path / "out.wav"
        sink = WavFileSink(path)
        sink.open(SPEC)
        sink.write(pcm)
        sink.abort()
        assert list(tmp_path.iterdir()) == []

    def test_abort_keeps_existing_target(self, tmp_path: Path, pcm: np.ndarray) -> None:
        """Test a failed conversion does not clobber an existing output file."""
        path = tmp_path / "out.wav"
        path.write_bytes(b"previous")
        sink = WavFileSink(path)
        sink.open(SPEC)
        sink.write(pcm)
        sink.abort()
        assert path.read_bytes() == b"previous"

    def test_cannot_reopen(self, tmp_path: Path) -> None:
        """Test a finalized sink cannot be opened again."""
        sink = WavFileSink(tmp_path / "out.wav")
        sink.open(SPEC)
        sink.finalize()
        with pytest.raises(SinkStateError, match="already opened"):
            sink.open(SPEC)

    def test_finalize_before_open(self, tmp_path: Path) -> None:
        """Test finalize requires an open sink."""
        with pytest.raises(SinkStateError, match="not open"):
            WavFileSink(tmp_path / "out.wav").finalize()

    def test_failed_pipeline_leaves_no_file(self, tmp_path: Path) -> None:
        """Test a pipeline failure leaves no file at the output path."""
        path = tmp_path / "out.wav"
        pipeline = ConversionPipeline(
            AudioSpec(channel_count=2, source_sample_rate=16000, target_sample_rate=16000),
            WavFileSink(path),
        )
        pipeline.push(np.full((2, 1000), 0.25, dtype=np.float32))

        with pytest.raises(MalformedAudioError):
            pipeline.push_interleaved(np.zeros(3, dtype=np.float32))

        assert list(tmp_path.iterdir()) == []


class TestStreamWavSink:
    """Test StreamWavSink."""

    def test_writes_wav_bytes(self, pcm: np.ndarray) -> None:
        """Test WAV bytes are readable back with the same samples."""
        stream = io.BytesIO()
        sink = StreamWavSink(stream)
        sink.open(SPEC)
        sink.write(pcm)
        sink.finalize()

        data, rate = sf.read(io.BytesIO(stream.getvalue()), dtype="int16")
        assert rate == 16000
        np.testing.assert_array_equal(data, pcm)
        assert stream.getvalue()[:4] == b"RIFF"
