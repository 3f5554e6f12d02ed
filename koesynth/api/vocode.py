"""
Waveform decoding API.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import soxr

from koesynth.audio_query import AccentPhrase, AudioQuery, Mora, flatten_moras
from koesynth.errors import InvalidAudioQuery
from koesynth.logging_utils import get_logger, summarize_payload
from koesynth.registry import ModelRegistry
from koesynth.text.phonemes import NUM_PHONEMES, is_unvoiced, phoneme_id
from koesynth.vocoder.model import FRAME_RATE, MODEL_SAMPLING_RATE

logger = get_logger(__name__)

UPSPEAK_LENGTH = 0.15
UPSPEAK_PITCH_ADD = 0.3
UPSPEAK_PITCH_MAX = 6.5


@dataclass
class _Unit:
    """One phoneme on the synthesis timeline."""
    phoneme: str
    length: float
    pitch: float


def validate_query(query: AudioQuery) -> None:
    if query.speed_scale <= 0:
        raise InvalidAudioQuery("speedScale", f"must be > 0 (got {query.speed_scale})")
    if query.output_sampling_rate <= 0:
        raise InvalidAudioQuery("outputSamplingRate", f"must be > 0 (got {query.output_sampling_rate})")
    if query.pre_phoneme_length < 0:
        raise InvalidAudioQuery("prePhonemeLength", f"must be >= 0 (got {query.pre_phoneme_length})")
    if query.post_phoneme_length < 0:
        raise InvalidAudioQuery("postPhonemeLength", f"must be >= 0 (got {query.post_phoneme_length})")


def _scaled_pitches(moras: Sequence[Mora], pitch_scale: float, intonation_scale: float) -> List[float]:
    pitches = [mora.pitch * (2.0 ** pitch_scale) if mora.pitch > 0 else 0.0 for mora in moras]
    voiced = [pitch for pitch in pitches if pitch > 0]
    if not voiced:
        return pitches
    mean = float(np.mean(voiced))
    return [(pitch - mean) * intonation_scale + mean if pitch > 0 else 0.0 for pitch in pitches]


def _upspeak_mora(accent_phrases: Sequence[AccentPhrase], last_pitch: float) -> Optional[Mora]:
    """Extra rising mora for an interrogative final phrase, or None when not applicable."""
    if not accent_phrases:
        return None
    final = accent_phrases[-1]
    if not final.is_interrogative or not final.moras:
        return None
    last = final.moras[-1]
    if last_pitch <= 0 or is_unvoiced(last.vowel):
        return None
    return Mora(
        text=last.text,
        vowel=last.vowel,
        vowel_length=UPSPEAK_LENGTH,
        pitch=min(last_pitch + UPSPEAK_PITCH_ADD, UPSPEAK_PITCH_MAX),
    )


def build_timeline(query: AudioQuery, enable_interrogative_upspeak: bool = True) -> List[_Unit]:
    """
    Flatten a query into phoneme units with scaled pitches.

    Pitch: ``p * 2**pitch_scale`` for voiced moras, then spread by the
    intonation scale around their mean. The upspeak mora is appended after
    scaling, right after the final phrase's last mora.
    """
    moras = flatten_moras(query.accent_phrases)
    pitches = _scaled_pitches(moras, query.pitch_scale, query.intonation_scale)

    upspeak: Optional[Mora] = None
    upspeak_after: Optional[int] = None
    if enable_interrogative_upspeak and query.accent_phrases and query.accent_phrases[-1].moras:
        final = query.accent_phrases[-1]
        last_index = len(moras) - 1 - (1 if final.pause_mora is not None else 0)
        upspeak = _upspeak_mora(query.accent_phrases, pitches[last_index])
        upspeak_after = last_index

    units = [_Unit("pau", query.pre_phoneme_length, 0.0)]
    for index, (mora, pitch) in enumerate(zip(moras, pitches)):
        if mora.consonant is not None:
            units.append(_Unit(mora.consonant, mora.consonant_length or 0.0, pitch))
        units.append(_Unit(mora.vowel, mora.vowel_length, pitch))
        if upspeak is not None and index == upspeak_after:
            units.append(_Unit(upspeak.vowel, upspeak.vowel_length, upspeak.pitch))
    units.append(_Unit("pau", query.post_phoneme_length, 0.0))
    return units


def timeline_to_frames(units: Sequence[_Unit], speed_scale: float) -> Tuple[np.ndarray, np.ndarray]:
    """Per-frame F0 [frames] and one-hot phonemes [frames, 45]."""
    counts = [int(round(round(unit.length * FRAME_RATE) / speed_scale)) for unit in units]
    total = sum(counts)
    f0 = np.zeros(total, dtype=np.float32)
    phoneme = np.zeros((total, NUM_PHONEMES), dtype=np.float32)
    offset = 0
    for unit, count in zip(units, counts):
        f0[offset:offset + count] = unit.pitch
        phoneme[offset:offset + count, phoneme_id(unit.phoneme)] = 1.0
        offset += count
    return f0, phoneme


def postprocess(wave: np.ndarray, query: AudioQuery) -> np.ndarray:
    """Resample, duplicate to stereo and apply volume; samples are clipped to [-1, 1]."""
    wave = np.asarray(wave, dtype=np.float32).reshape(-1)
    if query.output_sampling_rate != MODEL_SAMPLING_RATE and wave.size:
        wave = soxr.resample(wave, MODEL_SAMPLING_RATE, query.output_sampling_rate).astype(np.float32)
    if query.output_stereo:
        wave = np.stack([wave, wave], axis=1)
    wave = wave * np.float32(query.volume_scale)
    return np.clip(wave, -1.0, 1.0)


class WaveformDecoder:
    """Turns an AudioQuery into float samples using a style's decode session."""

    def __init__(self, registry: ModelRegistry):
        self.registry = registry

    def decode(
        self,
        query: AudioQuery,
        style_id: int,
        enable_interrogative_upspeak: bool = True,
    ) -> np.ndarray:
        """
        Args:
            query: Audio query to render
            style_id: Style whose decoder to run
            enable_interrogative_upspeak: Raise the ending of interrogative utterances

        Returns:
            waveform: float32 [n] (mono) or [n, 2] (stereo) at ``query.output_sampling_rate``
        """
        validate_query(query)
        with self.registry.resolve_style(style_id) as handle:
            units = build_timeline(query, enable_interrogative_upspeak)
            f0, phoneme = timeline_to_frames(units, query.speed_scale)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "decode input=%s",
                    summarize_payload({"style_id": style_id, "frames": f0.shape[0], "f0": f0}),
                )
            wave = handle.sessions.decode(f0, phoneme, handle.inner_style_id)
        samples = postprocess(wave, query)
        logger.info(
            "decode_done style_id=%s frames=%s samples=%s sample_rate=%s stereo=%s",
            style_id,
            f0.shape[0],
            samples.shape[0],
            query.output_sampling_rate,
            query.output_stereo,
        )
        return samples
