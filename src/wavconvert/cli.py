"""Command-line entry point for wavconvert."""

import argparse
import logging
import sys

from pydantic import ValidationError

from wavconvert.audio.trimming import TrimMode, TrimOrder
from wavconvert.config import ConverterConfig
from wavconvert.converter import AudioConverter
from wavconvert.errors import ConversionError
from wavconvert.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="wavconvert",
        description="Convert audio files to 16-bit PCM WAV at a fixed sample rate",
    )
    parser.add_argument(
        "-i",
        "--input",
        type=str,
        required=True,
        help="Input audio file path",
    )
    parser.add_argument(
        "-o",
        "--out-file",
        type=str,
        default="output.wav",
        help="Output WAV file path (default: output.wav)",
    )
    parser.add_argument(
        "-r",
        "--sample-rate",
        type=int,
        default=None,
        help="Output sample rate in Hz (default: 44100, or the config file value)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML configuration file",
    )
    parser.add_argument(
        "--trim",
        choices=[mode.value for mode in TrimMode],
        default=None,
        help="Silence trimming strategy",
    )
    parser.add_argument(
        "--trim-order",
        choices=[order.value for order in TrimOrder],
        default=None,
        help="Trim before or after resampling",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Silence threshold as linear amplitude in (0, 1)",
    )
    parser.add_argument(
        "--batch",
        action="store_true",
        help="Decode the whole input before processing",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def load_config(args: argparse.Namespace) -> ConverterConfig:
    """Merge the optional config file with command-line overrides."""
    base = ConverterConfig.from_yaml(args.config) if args.config else ConverterConfig(
        target_sample_rate=44100
    )
    data = base.model_dump()

    if args.sample_rate is not None:
        data["target_sample_rate"] = args.sample_rate
    if args.trim is not None:
        data["trim"]["mode"] = args.trim
    if args.trim_order is not None:
        data["trim"]["order"] = args.trim_order
    if args.threshold is not None:
        data["trim"]["threshold"] = args.threshold
    if args.batch:
        data["streaming"] = False
    if args.verbose:
        data["logging"]["level"] = "DEBUG"

    return ConverterConfig(**data)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the converter CLI."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except (ValidationError, FileNotFoundError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    setup_logging(config.logging.level, json_format=config.logging.format == "json")

    try:
        summary = AudioConverter(config).convert_file(args.input, args.out_file)
    except ConversionError as e:
        logger.error(f"Conversion failed: {e}")
        return 1

    print(
        f"Converted {args.input} to {args.out_file} "
        f"(sample rate: {config.target_sample_rate} Hz, {summary.frames_out} frames)"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
