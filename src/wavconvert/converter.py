"""High-level file and bytes conversion.

AudioConverter wires a SoundFileDecoder, a ConversionPipeline and a WAV sink
together for one input → one 16-bit PCM WAV output.
"""

import io
import logging
import time
from pathlib import Path

from wavconvert.config import ConverterConfig
from wavconvert.decoder import SoundFileDecoder
from wavconvert.pipeline import ConversionPipeline, ConversionSummary
from wavconvert.sink import AudioSink, StreamWavSink, WavFileSink
from wavconvert.types import AudioSpec
from wavconvert.utils.logging import log_event

logger = logging.getLogger(__name__)


class AudioConverter:
    """Convert audio files to 16-bit PCM WAV at a fixed sample rate.

    Example:
        ```python
        converter = AudioConverter(ConverterConfig(target_sample_rate=16000))
        converter.convert_file("speech.ogg", "speech.wav")

        with open("speech.flac", "rb") as f:
            converter.convert_bytes(f.read(), "speech.wav")
        ```
    """

    def __init__(self, config: ConverterConfig | None = None) -> None:
        self.config = config or ConverterConfig()

    def convert_file(self, input_path: str | Path, output_path: str | Path) -> ConversionSummary:
        """Convert an audio file to a WAV file.

        Raises:
            UnsupportedFormatError: If the input cannot be opened
            ConversionError: If any pipeline stage fails (no output is left)
        """
        logger.info(f"Converting {input_path} → {output_path}")
        with SoundFileDecoder(input_path) as decoder:
            return self._convert(decoder, WavFileSink(output_path))

    def convert_bytes(self, data: bytes, output_path: str | Path) -> ConversionSummary:
        """Convert encoded audio bytes to a WAV file."""
        logger.info(f"Converting {len(data)} bytes → {output_path}")
        with SoundFileDecoder(data) as decoder:
            return self._convert(decoder, WavFileSink(output_path))

    def convert_to_bytes(self, data: bytes) -> bytes:
        """Convert encoded audio bytes to WAV bytes held in memory."""
        stream = io.BytesIO()
        with SoundFileDecoder(data) as decoder:
            self._convert(decoder, StreamWavSink(stream))
        return stream.getvalue()

    def _convert(self, decoder: SoundFileDecoder, sink: AudioSink) -> ConversionSummary:
        spec = AudioSpec(
            channel_count=decoder.channels,
            source_sample_rate=decoder.sample_rate,
            target_sample_rate=self.config.target_sample_rate,
        )
        if spec.needs_resampling:
            logger.info(
                f"Resampling from {spec.source_sample_rate}Hz to {spec.target_sample_rate}Hz"
            )

        start = time.perf_counter()
        pipeline = ConversionPipeline.from_config(spec, sink, self.config)
        summary = pipeline.run(decoder, streaming=self.config.streaming)

        log_event(
            "conversion_complete",
            {
                "channels": spec.channel_count,
                "source_sample_rate": spec.source_sample_rate,
                "target_sample_rate": spec.target_sample_rate,
                "frames_in": summary.frames_in,
                "frames_out": summary.frames_out,
                "elapsed_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return summary
