from __future__ import annotations

from typing import Dict, List, Optional

from koesynth.errors import InvalidAudioQuery

# Order defines the phoneme ids the acoustic models were trained with.
PHONEME_LIST: List[str] = [
    "pau", "A", "E", "I", "N", "O", "U", "a", "b", "by",
    "ch", "cl", "d", "dy", "e", "f", "g", "gw", "gy", "h",
    "hy", "i", "j", "k", "kw", "ky", "m", "my", "n", "ny",
    "o", "p", "py", "r", "ry", "s", "sh", "t", "ts", "ty",
    "u", "v", "w", "y", "z",
]
NUM_PHONEMES = len(PHONEME_LIST)

_PHONEME_TO_ID: Dict[str, int] = {phoneme: index for index, phoneme in enumerate(PHONEME_LIST)}

UNVOICED_MORA_PHONEMES = frozenset(["A", "I", "U", "E", "O", "cl", "pau"])


def phoneme_id(phoneme: str) -> int:
    """Return the model id for a phoneme; silence markers map to pau."""
    if phoneme in ("sil", "pau"):
        return 0
    try:
        return _PHONEME_TO_ID[phoneme]
    except KeyError:
        raise InvalidAudioQuery("phoneme", f"unknown phoneme {phoneme!r}") from None


def consonant_id(phoneme: Optional[str]) -> int:
    """Consonant slot id used by the intonation model; -1 when the mora has none."""
    if phoneme is None:
        return -1
    return phoneme_id(phoneme)


def is_unvoiced(phoneme: str) -> bool:
    return phoneme in UNVOICED_MORA_PHONEMES
