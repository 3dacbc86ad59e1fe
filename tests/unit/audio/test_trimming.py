"""Unit tests for silence trimming.

Tests both trimming variants (hysteresis and trailing-only), guard handling,
degenerate inputs, and trimming idempotence.
"""

import numpy as np
import pytest

from tests.helpers.audio_utils import concat, silence, square_tone
from wavconvert.audio.trimming import SilenceTrimmer, TrimBounds, TrimMode, active_frames
from wavconvert.errors import MalformedAudioError


@pytest.fixture
def blip_then_tone() -> np.ndarray:
    """[silence(500), tone(200), silence(50), tone(2000), silence(1000)]."""
    return concat(
        silence(500),
        square_tone(200),
        silence(50),
        square_tone(2000),
        silence(1000),
    )


@pytest.fixture
def hysteresis() -> SilenceTrimmer:
    return SilenceTrimmer(mode=TrimMode.HYSTERESIS, threshold=0.01, min_active_run=1024)


class TestTrimmerInit:
    """Test SilenceTrimmer validation."""

    @pytest.mark.parametrize("threshold", [0.0, 1.0, -0.1, 1.5])
    def test_invalid_threshold(self, threshold: float) -> None:
        """Test thresholds outside (0, 1) raise ValueError."""
        with pytest.raises(ValueError, match="Threshold must be in"):
            SilenceTrimmer(threshold=threshold)

    def test_invalid_min_run(self) -> None:
        """Test a non-positive minimum run raises ValueError."""
        with pytest.raises(ValueError, match="Minimum active run"):
            SilenceTrimmer(min_active_run=0)

    def test_invalid_guard(self) -> None:
        """Test a negative guard raises ValueError."""
        with pytest.raises(ValueError, match="Guard frames"):
            SilenceTrimmer(guard_frames=-1)

    def test_guard_from_duration(self) -> None:
        """Test guard duration is converted at the buffer's sample rate."""
        trimmer = SilenceTrimmer.with_guard_duration(16000, guard_seconds=0.5)
        assert trimmer.guard_frames == 8000
        assert trimmer.mode is TrimMode.TRAILING

    def test_mode_from_string(self) -> None:
        """Test mode accepts its string value."""
        trimmer = SilenceTrimmer(mode="hysteresis")  # type: ignore[arg-type]
        assert trimmer.mode is TrimMode.HYSTERESIS


class TestActiveFrames:
    """Test the active frame mask."""

    def test_any_channel_counts(self) -> None:
        """Test a frame is active when any channel exceeds the threshold."""
        frames = np.array([[0.0, 0.5, 0.0], [0.0, 0.0, -0.5]], dtype=np.float32)
        np.testing.assert_array_equal(active_frames(frames, 0.01), [False, True, True])

    def test_threshold_is_strict(self) -> None:
        """Test a sample exactly at the threshold is not active."""
        frames = np.array([[0.25, -0.25, 0.2501]], dtype=np.float32)
        np.testing.assert_array_equal(active_frames(frames, 0.25), [False, False, True])


class TestHysteresisTrim:
    """Test leading+trailing trimming with a minimum active run."""

    def test_short_blip_ignored(
        self, hysteresis: SilenceTrimmer, blip_then_tone: np.ndarray
    ) -> None:
        """Test the 200-frame blip is not the start; the 2000-frame tone is."""
        bounds = hysteresis.find_bounds(blip_then_tone)
        assert bounds.start == 750

    def test_end_margin_clamped(
        self, hysteresis: SilenceTrimmer, blip_then_tone: np.ndarray
    ) -> None:
        """Test the end margin is clamped to the buffer length."""
        bounds = hysteresis.find_bounds(blip_then_tone)
        # Tone ends at 2750; 2750 + 1024 margin exceeds the 3750-frame buffer
        assert bounds.end == 3750

    def test_end_margin(self, hysteresis: SilenceTrimmer) -> None:
        """Test the end is the last active frame plus min_active_run margin."""
        frames = concat(silence(100), square_tone(2000), silence(5000))
        bounds = hysteresis.find_bounds(frames)
        assert bounds == TrimBounds(100, 2100 + 1024)

    def test_end_margin_plus_guard(self) -> None:
        """Test the trailing guard extends the end beyond the margin."""
        trimmer = SilenceTrimmer(
            mode=TrimMode.HYSTERESIS, threshold=0.01, min_active_run=1024, guard_frames=500
        )
        frames = concat(silence(100), square_tone(2000), silence(5000))
        assert trimmer.find_bounds(frames) == TrimBounds(100, 2100 + 1024 + 500)

    def test_trailing_blip_ignored(self, hysteresis: SilenceTrimmer) -> None:
        """Test a short trailing blip does not move the end boundary."""
        frames = concat(square_tone(2000), silence(3000), square_tone(100), silence(3000))
        bounds = hysteresis.find_bounds(frames)
        assert bounds == TrimBounds(0, 2000 + 1024)

    def test_no_qualifying_run_keeps_all(self, hysteresis: SilenceTrimmer) -> None:
        """Test the whole buffer is kept when no run reaches min_active_run."""
        frames = concat(silence(500), square_tone(1000), silence(500))
        assert hysteresis.find_bounds(frames) == TrimBounds(0, 2000)

    def test_all_silent_keeps_all(self, hysteresis: SilenceTrimmer) -> None:
        """Test an all-silent buffer is not collapsed."""
        assert hysteresis.find_bounds(silence(4000, channels=2)) == TrimBounds(0, 4000)

    def test_empty_buffer(self, hysteresis: SilenceTrimmer) -> None:
        """Test an empty buffer yields an empty range."""
        bounds = hysteresis.find_bounds(silence(0))
        assert bounds == TrimBounds(0, 0)
        assert bounds.is_empty

    def test_run_broken_by_single_silent_frame(self, hysteresis: SilenceTrimmer) -> None:
        """Test the run counter resets on any inactive frame."""
        frames = concat(square_tone(1000), silence(1), square_tone(1023), silence(10))
        assert hysteresis.find_bounds(frames) == TrimBounds(0, 2034)

    def test_multichannel(self, hysteresis: SilenceTrimmer) -> None:
        """Test activity on one channel is enough."""
        left = concat(silence(300), silence(2000), silence(3000))
        right = concat(silence(300), square_tone(2000), silence(3000))
        frames = np.concatenate([left, right], axis=0)
        assert hysteresis.find_bounds(frames) == TrimBounds(300, 2300 + 1024)

    def test_idempotent(self, hysteresis: SilenceTrimmer) -> None:
        """Test trimming its own output removes nothing further."""
        frames = concat(
            silence(700), square_tone(1500), silence(200), square_tone(1200), silence(4000)
        )
        first = hysteresis.trim(frames)
        bounds = hysteresis.find_bounds(first)
        assert bounds == TrimBounds(0, first.shape[1])
        np.testing.assert_array_equal(hysteresis.trim(first), first)


class TestTrailingTrim:
    """Test trailing-only trimming."""

    def test_trailing_guard(self) -> None:
        """Test end is the last active frame plus the guard."""
        trimmer = SilenceTrimmer(mode=TrimMode.TRAILING, threshold=0.01, guard_frames=800)
        frames = concat(silence(300), square_tone(1000), silence(5000))
        assert trimmer.find_bounds(frames) == TrimBounds(0, 1300 + 800)

    def test_no_leading_trim(self) -> None:
        """Test leading silence is kept."""
        trimmer = SilenceTrimmer(mode=TrimMode.TRAILING, guard_frames=0)
        frames = concat(silence(300), square_tone(1000))
        assert trimmer.find_bounds(frames).start == 0

    def test_single_sample_counts(self) -> None:
        """Test any single sample above threshold counts (no run gate)."""
        trimmer = SilenceTrimmer(mode=TrimMode.TRAILING, guard_frames=10)
        frames = silence(1000)
        frames[0, 400] = 0.2
        assert trimmer.find_bounds(frames) == TrimBounds(0, 411)

    def test_guard_clamped(self) -> None:
        """Test the guard is clamped to the buffer length."""
        trimmer = SilenceTrimmer(mode=TrimMode.TRAILING, guard_frames=8000)
        frames = concat(square_tone(1000), silence(100))
        assert trimmer.find_bounds(frames) == TrimBounds(0, 1100)

    def test_all_silent_keeps_guard_window(self) -> None:
        """Test an all-silent buffer collapses to the guard window from the start."""
        trimmer = SilenceTrimmer(mode=TrimMode.TRAILING, guard_frames=800)
        assert trimmer.find_bounds(silence(5000)) == TrimBounds(0, 800)

    def test_idempotent(self) -> None:
        """Test trimming its own output removes nothing further."""
        trimmer = SilenceTrimmer(mode=TrimMode.TRAILING, guard_frames=800)
        first = trimmer.trim(concat(square_tone(1000), silence(5000)))
        assert trimmer.find_bounds(first) == TrimBounds(0, first.shape[1])


class TestInterleavedInput:
    """Test trimming flattened interleaved samples."""

    def test_interleaved_bounds(self) -> None:
        """Test interleaved input is deinterleaved before detection."""
        trimmer = SilenceTrimmer(mode=TrimMode.TRAILING, guard_frames=0)
        frames = concat(square_tone(100, channels=2), silence(50, channels=2))
        samples = frames.T.reshape(-1)
        assert trimmer.find_bounds_interleaved(samples, channels=2) == TrimBounds(0, 100)

    def test_not_divisible(self) -> None:
        """Test a sample count not divisible by channels raises MalformedAudioError."""
        trimmer = SilenceTrimmer()
        with pytest.raises(MalformedAudioError, match="not divisible"):
            trimmer.find_bounds_interleaved(np.zeros(1001, dtype=np.float32), channels=2)


class TestTrimModeNone:
    """Test the no-op trimming mode."""

    def test_keeps_everything(self) -> None:
        trimmer = SilenceTrimmer(mode=TrimMode.NONE)
        assert trimmer.find_bounds(silence(1234)) == TrimBounds(0, 1234)


class TestTrimBounds:
    """Test TrimBounds invariants."""

    def test_inverted_bounds_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid trim bounds"):
            TrimBounds(10, 5)

    def test_length(self) -> None:
        assert TrimBounds(10, 25).length == 15
