from __future__ import annotations

"""Sine tone synthesis packaged as self-describing 16-bit PCM WAV clips.

The sample rate comes from the host audio subsystem through an injected
provider; when the provider reports no device the synthesizer returns ``None``
and callers skip the audio channel for that repeat.
"""

from dataclasses import dataclass
import logging
import math
import struct
from typing import Callable, List, Optional, Sequence

from .models import AlertSettings

logger = logging.getLogger(__name__)

TONE_DURATION_SECONDS = 0.5
TICK_FREQUENCY_HZ = 800
TICK_DURATION_SECONDS = 0.05

WAV_HEADER_SIZE = 44
_PCM_FORMAT = 1
_CHANNELS = 1
_BITS_PER_SAMPLE = 16

SampleRateProvider = Callable[[], Optional[int]]


@dataclass(slots=True, frozen=True)
class ToneClip:
    data: bytes  # complete RIFF/WAVE file
    sample_rate: int
    frequency_hz: int
    volume: float  # 0.0 - 1.0

    @property
    def frame_count(self) -> int:
        return (len(self.data) - WAV_HEADER_SIZE) // (_BITS_PER_SAMPLE // 8)

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / self.sample_rate


def synthesize_samples(frequency_hz: float, volume: float, sample_rate: int, duration_seconds: float) -> List[float]:
    count = int(sample_rate * duration_seconds)
    step = 2 * math.pi * frequency_hz / sample_rate
    return [math.sin(step * i) * volume for i in range(count)]


def quantize(sample: float) -> int:
    s = max(-1.0, min(1.0, sample))
    # Asymmetric scale keeps -1.0 and 1.0 inside the int16 range.
    return int(s * 0x8000) if s < 0 else int(s * 0x7FFF)


def encode_wav(samples: Sequence[float], sample_rate: int) -> bytes:
    block_align = _CHANNELS * (_BITS_PER_SAMPLE // 8)
    data_length = len(samples) * block_align
    header = struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + data_length,
        b"WAVE",
        b"fmt ",
        16,
        _PCM_FORMAT,
        _CHANNELS,
        sample_rate,
        sample_rate * block_align,
        block_align,
        _BITS_PER_SAMPLE,
        b"data",
        data_length,
    )
    pcm = struct.pack(f"<{len(samples)}h", *(quantize(s) for s in samples))
    return header + pcm


class ToneSynthesizer:
    def __init__(
        self,
        sample_rate_provider: SampleRateProvider,
        duration_seconds: float = TONE_DURATION_SECONDS,
    ) -> None:
        self._sample_rate_provider = sample_rate_provider
        self._duration = duration_seconds

    def synthesize(self, settings: AlertSettings) -> Optional[ToneClip]:
        """Return a playable clip for ``settings`` or ``None`` without audio."""
        s = settings.clamped()
        return self._build(s.tone_frequency_hz, s.volume_level, self._duration)

    def tick_click(self, volume_level: int) -> Optional[ToneClip]:
        volume = AlertSettings(volume_level=volume_level).clamped().volume_level
        return self._build(TICK_FREQUENCY_HZ, volume, TICK_DURATION_SECONDS)

    def _build(self, frequency_hz: int, volume_level: int, duration: float) -> Optional[ToneClip]:
        try:
            sample_rate = self._sample_rate_provider()
        except Exception as exc:
            logger.warning("audio subsystem query failed: %s", exc)
            return None
        if not sample_rate or sample_rate <= 0:
            logger.debug("no audio output available; tone skipped")
            return None
        volume = volume_level / 100
        samples = synthesize_samples(frequency_hz, volume, sample_rate, duration)
        return ToneClip(
            data=encode_wav(samples, sample_rate),
            sample_rate=sample_rate,
            frequency_hz=frequency_hz,
            volume=volume,
        )


__all__ = [
    "ToneClip",
    "ToneSynthesizer",
    "SampleRateProvider",
    "encode_wav",
    "quantize",
    "synthesize_samples",
    "TONE_DURATION_SECONDS",
    "TICK_FREQUENCY_HZ",
]
