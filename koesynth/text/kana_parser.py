"""
Phonetic notation ("AquesTalk-like" kana) parsing and rendering.

Notation rules:
- accent phrases are separated by "/" (no pause) or "、" (pause)
- "'" follows the accent-nucleus mora; exactly one per phrase
- "_" before a mora marks its vowel as unvoiced
- a trailing "？" marks the phrase as interrogative
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from koesynth.audio_query import AccentPhrase, Mora
from koesynth.errors import InvalidPhoneticNotation
from koesynth.text.mora_list import TEXT_TO_MORA, UNVOICE_SYMBOL

ACCENT_SYMBOL = "'"
NOPAUSE_DELIMITER = "/"
PAUSE_DELIMITER = "、"
WIDE_INTERROGATION_MARK = "？"

_MAX_MORA_TEXT = max(len(text) for text in TEXT_TO_MORA)


def _match_mora(phrase: str, start: int) -> Optional[str]:
    """Longest mora spelling in the table starting at ``start``."""
    for size in range(min(_MAX_MORA_TEXT, len(phrase) - start), 0, -1):
        candidate = phrase[start:start + size]
        if candidate in TEXT_TO_MORA:
            return candidate
    return None


def _text_to_accent_phrase(phrase: str, source: str) -> AccentPhrase:
    moras: List[Mora] = []
    accent: Optional[int] = None
    is_interrogative = False
    index = 0
    while index < len(phrase):
        char = phrase[index]
        if char == ACCENT_SYMBOL:
            if not moras:
                raise InvalidPhoneticNotation(source, f"accent cannot be set at the beginning of phrase {phrase!r}")
            if accent is not None:
                raise InvalidPhoneticNotation(source, f"second accent cannot be set in phrase {phrase!r}")
            accent = len(moras)
            index += 1
            continue
        if char == WIDE_INTERROGATION_MARK:
            if index != len(phrase) - 1:
                raise InvalidPhoneticNotation(
                    source, f"interrogative mark must be at the end of phrase {phrase!r}"
                )
            is_interrogative = True
            index += 1
            continue
        matched = _match_mora(phrase, index)
        if matched is None:
            raise InvalidPhoneticNotation(source, f"unknown text in phrase {phrase!r}: {phrase[index:]!r}")
        consonant, vowel = TEXT_TO_MORA[matched]
        moras.append(
            Mora(
                text=matched.lstrip(UNVOICE_SYMBOL),
                vowel=vowel,
                vowel_length=0.0,
                pitch=0.0,
                consonant=consonant,
                consonant_length=0.0 if consonant is not None else None,
            )
        )
        index += len(matched)
    if not moras:
        raise InvalidPhoneticNotation(source, f"phrase {phrase!r} has no moras")
    if accent is None:
        raise InvalidPhoneticNotation(source, f"accent not found in phrase {phrase!r}")
    return AccentPhrase(moras=moras, accent=accent, is_interrogative=is_interrogative)


def parse_kana(text: str) -> List[AccentPhrase]:
    """
    Parse phonetic notation into accent phrases with zero lengths and pitches.

    Raises:
        InvalidPhoneticNotation: on any syntax error
    """
    if not text:
        raise InvalidPhoneticNotation(text, "input is empty")
    phrases: List[AccentPhrase] = []
    phrase_start = 0
    for index in range(len(text) + 1):
        if index < len(text) and text[index] not in (PAUSE_DELIMITER, NOPAUSE_DELIMITER):
            continue
        phrase = text[phrase_start:index]
        if not phrase:
            raise InvalidPhoneticNotation(text, f"empty accent phrase at position {index}")
        accent_phrase = _text_to_accent_phrase(phrase, text)
        if index < len(text) and text[index] == PAUSE_DELIMITER:
            accent_phrase.pause_mora = Mora.pause()
        phrases.append(accent_phrase)
        phrase_start = index + 1
    return phrases


def create_kana(accent_phrases: Sequence[AccentPhrase]) -> str:
    """Render accent phrases back into phonetic notation."""
    text = ""
    for index, phrase in enumerate(accent_phrases):
        for position, mora in enumerate(phrase.moras, start=1):
            if mora.vowel in ("A", "E", "I", "O", "U"):
                text += UNVOICE_SYMBOL
            text += mora.text
            if position == phrase.accent:
                text += ACCENT_SYMBOL
        if phrase.is_interrogative:
            text += WIDE_INTERROGATION_MARK
        if index < len(accent_phrases) - 1:
            text += PAUSE_DELIMITER if phrase.pause_mora is not None else NOPAUSE_DELIMITER
    return text
