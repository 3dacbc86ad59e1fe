"""Shared value types for a single conversion."""

from dataclasses import dataclass
from typing import Final

BITS_PER_SAMPLE: Final[int] = 16


@dataclass(frozen=True)
class AudioSpec:
    """Stream parameters fixed for the lifetime of one conversion.

    Attributes:
        channel_count: Number of channels (source and target)
        source_sample_rate: Decoded stream sample rate in Hz
        target_sample_rate: Output sample rate in Hz
    """

    channel_count: int
    source_sample_rate: int
    target_sample_rate: int

    def __post_init__(self) -> None:
        if self.channel_count <= 0:
            raise ValueError(f"Channel count must be positive, got {self.channel_count}")
        if self.source_sample_rate <= 0:
            raise ValueError(
                f"Source sample rate must be positive, got {self.source_sample_rate}"
            )
        if self.target_sample_rate <= 0:
            raise ValueError(
                f"Target sample rate must be positive, got {self.target_sample_rate}"
            )

    @property
    def bits_per_sample(self) -> int:
        return BITS_PER_SAMPLE

    @property
    def needs_resampling(self) -> bool:
        """True when source and target sample rates differ."""
        return self.source_sample_rate != self.target_sample_rate
