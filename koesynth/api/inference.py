"""
Acoustic prediction: phoneme lengths and mora pitches for accent phrases.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from koesynth.audio_query import AccentPhrase, Mora, copy_accent_phrases, flatten_moras
from koesynth.errors import InvalidAudioQuery
from koesynth.logging_utils import get_logger, summarize_payload
from koesynth.registry import ModelRegistry
from koesynth.text.phonemes import consonant_id, is_unvoiced, phoneme_id

logger = get_logger(__name__)


@dataclass
class _PhonemeSequence:
    """Flattened ``pau + (consonant? vowel)* + pau`` with each mora's vowel position."""
    phoneme_ids: np.ndarray
    vowel_positions: List[int]


def _phoneme_sequence(moras: Sequence[Mora]) -> _PhonemeSequence:
    ids = [phoneme_id("pau")]
    vowel_positions: List[int] = []
    for mora in moras:
        if mora.consonant is not None:
            ids.append(phoneme_id(mora.consonant))
        vowel_positions.append(len(ids))
        ids.append(phoneme_id(mora.vowel))
    ids.append(phoneme_id("pau"))
    return _PhonemeSequence(np.array(ids, dtype=np.int64), vowel_positions)


def _indicator(size: int, point: int) -> List[int]:
    """One-hot over ``size`` moras; a negative point counts from the end."""
    index = point if point >= 0 else size + point
    return [1 if i == index else 0 for i in range(size)]


def _intonation_inputs(accent_phrases: Sequence[AccentPhrase]) -> Tuple[np.ndarray, ...]:
    """Per-mora model inputs, padded with a pau mora on both ends."""
    vowels = [phoneme_id("pau")]
    consonants = [-1]
    start_accent = [0]
    end_accent = [0]
    start_phrase = [0]
    end_phrase = [0]
    for phrase in accent_phrases:
        size = len(phrase.moras)
        if not 1 <= phrase.accent <= size:
            raise InvalidAudioQuery("accent", f"must be in 1..{size} (got {phrase.accent})")
        vowels.extend(phoneme_id(mora.vowel) for mora in phrase.moras)
        consonants.extend(consonant_id(mora.consonant) for mora in phrase.moras)
        start_accent.extend(_indicator(size, 0 if phrase.accent == 1 else 1))
        end_accent.extend(_indicator(size, phrase.accent - 1))
        start_phrase.extend(_indicator(size, 0))
        end_phrase.extend(_indicator(size, -1))
        if phrase.pause_mora is not None:
            vowels.append(phoneme_id("pau"))
            consonants.append(-1)
            for values in (start_accent, end_accent, start_phrase, end_phrase):
                values.append(0)
    vowels.append(phoneme_id("pau"))
    consonants.append(-1)
    for values in (start_accent, end_accent, start_phrase, end_phrase):
        values.append(0)
    return tuple(
        np.array(values, dtype=np.int64)
        for values in (vowels, consonants, start_accent, end_accent, start_phrase, end_phrase)
    )


def _apply_lengths(accent_phrases: List[AccentPhrase], lengths: np.ndarray, sequence: _PhonemeSequence) -> None:
    for mora, position in zip(flatten_moras(accent_phrases), sequence.vowel_positions):
        if mora.consonant is not None:
            mora.consonant_length = float(lengths[position - 1])
        mora.vowel_length = float(lengths[position])


def _apply_pitches(accent_phrases: List[AccentPhrase], f0: np.ndarray) -> None:
    for index, mora in enumerate(flatten_moras(accent_phrases), start=1):
        mora.pitch = 0.0 if is_unvoiced(mora.vowel) else float(f0[index])


class AcousticPredictor:
    """
    Fills phoneme lengths and mora pitches using the sessions of a loaded style.

    Inputs are never modified; each call returns a fresh copy with only the
    predicted fields changed. Calls are blocking and meant for a worker thread.
    """

    def __init__(self, registry: ModelRegistry):
        self.registry = registry

    def _debug(self, event: str, style_id: int, phrases: Sequence[AccentPhrase]) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "%s output=%s",
                event,
                summarize_payload({"style_id": style_id, "accent_phrases": [p.to_dict() for p in phrases]}),
            )

    def predict_duration(self, accent_phrases: Sequence[AccentPhrase], style_id: int) -> List[AccentPhrase]:
        """
        Args:
            accent_phrases: Phrases to fill
            style_id: Style whose duration model to run
        Returns:
            Copies with consonant and vowel lengths replaced
        """
        with self.registry.resolve_style(style_id) as handle:
            phrases = copy_accent_phrases(accent_phrases)
            if not phrases:
                return phrases
            sequence = _phoneme_sequence(flatten_moras(phrases))
            lengths = handle.sessions.predict_duration(sequence.phoneme_ids, handle.inner_style_id)
            _apply_lengths(phrases, lengths, sequence)
            self._debug("predict_duration", style_id, phrases)
            return phrases

    def predict_pitch(self, accent_phrases: Sequence[AccentPhrase], style_id: int) -> List[AccentPhrase]:
        """Copies with mora pitches replaced; unvoiced vowels get 0."""
        with self.registry.resolve_style(style_id) as handle:
            phrases = copy_accent_phrases(accent_phrases)
            if not phrases:
                return phrases
            f0 = handle.sessions.predict_intonation(*_intonation_inputs(phrases), handle.inner_style_id)
            _apply_pitches(phrases, f0)
            self._debug("predict_pitch", style_id, phrases)
            return phrases

    def predict_duration_and_pitch(
        self,
        accent_phrases: Sequence[AccentPhrase],
        style_id: int,
    ) -> List[AccentPhrase]:
        """Both predictions through one session handle and one worker call."""
        with self.registry.resolve_style(style_id) as handle:
            phrases = copy_accent_phrases(accent_phrases)
            if not phrases:
                return phrases
            sequence = _phoneme_sequence(flatten_moras(phrases))
            lengths, f0 = handle.sessions.predict_prosody(
                sequence.phoneme_ids,
                _intonation_inputs(phrases),
                handle.inner_style_id,
            )
            _apply_lengths(phrases, lengths, sequence)
            _apply_pitches(phrases, f0)
            self._debug("predict_duration_and_pitch", style_id, phrases)
            return phrases
