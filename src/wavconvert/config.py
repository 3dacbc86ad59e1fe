"""Converter Configuration Models.

Pydantic models for validating converter configuration loaded from YAML
files or built from command-line arguments. Invalid settings are rejected at
load time rather than part-way through a conversion.
"""

from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, Field, field_validator

from wavconvert.audio.quantize import OverflowPolicy
from wavconvert.audio.trimming import (
    DEFAULT_GUARD_SECONDS,
    DEFAULT_MIN_ACTIVE_RUN,
    DEFAULT_THRESHOLD,
    SilenceTrimmer,
    TrimMode,
    TrimOrder,
)


class TrimConfig(BaseModel):
    """Silence trimming configuration.

    Attributes:
        mode: Trimming strategy (none, trailing, hysteresis)
        order: Trim the source-rate buffer or the resampled buffer
        threshold: Linear amplitude above which a sample is active
        min_active_run: Consecutive active frames required (hysteresis)
        min_active_run_seconds: Same as a duration; overrides min_active_run
        trailing_guard_seconds: Audio kept after the last active frame
        trailing_guard_frames: Same as a frame count; overrides the duration
    """

    mode: TrimMode = Field(
        default=TrimMode.TRAILING,
        description="Trimming strategy",
    )
    order: TrimOrder = Field(
        default=TrimOrder.BEFORE_RESAMPLE,
        description="Trim before or after resampling",
    )
    threshold: float = Field(
        default=DEFAULT_THRESHOLD,
        description="Silence threshold (linear amplitude, 0.01 = -40 dB)",
        gt=0.0,
        lt=1.0,
    )
    min_active_run: int = Field(
        default=DEFAULT_MIN_ACTIVE_RUN,
        description="Consecutive active frames required for a boundary",
        gt=0,
    )
    min_active_run_seconds: float | None = Field(
        default=None,
        description="Minimum active run as a duration (overrides frame count)",
        gt=0.0,
    )
    trailing_guard_seconds: float = Field(
        default=DEFAULT_GUARD_SECONDS,
        description="Audio kept after the last active frame",
        ge=0.0,
    )
    trailing_guard_frames: int | None = Field(
        default=None,
        description="Trailing guard as a frame count (overrides duration)",
        ge=0,
    )

    def guard_frames(self, sample_rate: int) -> int:
        """Resolve the trailing guard in frames at sample_rate."""
        if self.trailing_guard_frames is not None:
            return self.trailing_guard_frames
        return int(self.trailing_guard_seconds * sample_rate)

    def min_run_frames(self, sample_rate: int) -> int:
        """Resolve the minimum active run in frames at sample_rate."""
        if self.min_active_run_seconds is not None:
            return max(1, int(self.min_active_run_seconds * sample_rate))
        return self.min_active_run

    def build_trimmer(self, sample_rate: int) -> SilenceTrimmer:
        """Create a trimmer for a buffer at sample_rate."""
        return SilenceTrimmer(
            mode=self.mode,
            threshold=self.threshold,
            min_active_run=self.min_run_frames(sample_rate),
            guard_frames=self.guard_frames(sample_rate),
        )


class ResampleConfig(BaseModel):
    """Resampling configuration.

    Attributes:
        block_size: Nominal input block size for the block converter
    """

    block_size: int = Field(
        default=4096,
        description="Nominal resampler input block size in frames",
        gt=0,
    )


class QuantizeConfig(BaseModel):
    """Quantization configuration.

    Attributes:
        overflow: wrap (two's complement) or clip (saturate)
    """

    overflow: OverflowPolicy = Field(
        default=OverflowPolicy.WRAP,
        description="Overflow handling for samples outside [-1.0, 1.0)",
    )


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format (json or text)
    """

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    format: str = Field(
        default="text",
        description="Log format (json or text)",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Ensure log format is valid."""
        valid_formats = {"json", "text"}
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Invalid log format: {v}. Must be one of {valid_formats}")
        return v_lower


class ConverterConfig(BaseModel):
    """Complete converter configuration.

    Example:
        >>> config = ConverterConfig.from_yaml("configs/converter.yaml")
        >>> config.target_sample_rate
        16000
        >>> config.trim.mode
        <TrimMode.TRAILING: 'trailing'>
    """

    target_sample_rate: int = Field(
        default=16000,
        description="Output sample rate in Hz",
        gt=0,
    )
    streaming: bool = Field(
        default=True,
        description="Feed decoded packets incrementally instead of as one batch",
    )
    resample: ResampleConfig = Field(default_factory=ResampleConfig)
    trim: TrimConfig = Field(default_factory=TrimConfig)
    quantize: QuantizeConfig = Field(default_factory=QuantizeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ConverterConfig":
        """Load and validate configuration from YAML file.

        Args:
            path: Path to configuration file

        Returns:
            Validated ConverterConfig instance

        Raises:
            ValidationError: If configuration is invalid
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML syntax is invalid
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
