"""Shared test fixtures.

Provides:
- Root logger restoration for tests that call setup_logging()
- WAV file writer for synthetic input audio
"""

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import numpy as np
import pytest
import soundfile as sf
from numpy.typing import NDArray


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    """Drop handlers installed by setup_logging() and restore the root level."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def write_wav(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper writing (channels, n) float frames to a WAV file."""

    def _write(
        frames: NDArray[np.float32],
        sample_rate: int,
        name: str = "input.wav",
        subtype: str = "FLOAT",
    ) -> Path:
        path = tmp_path / name
        sf.write(path, frames.T, sample_rate, subtype=subtype)
        return path

    return _write
