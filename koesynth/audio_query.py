"""
Synthesis data model: moras, accent phrases and audio queries.

Lengths are in seconds and pitches in log-F0 units; a pitch of 0 marks an
unvoiced mora.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

DEFAULT_SAMPLING_RATE = 24000
PAUSE_TEXT = "、"
PAUSE_PHONEME = "pau"


@dataclass
class Mora:
    text: str
    vowel: str
    vowel_length: float = 0.0
    pitch: float = 0.0
    consonant: Optional[str] = None
    consonant_length: Optional[float] = None

    def phonemes(self) -> List[str]:
        if self.consonant is not None:
            return [self.consonant, self.vowel]
        return [self.vowel]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "consonant": self.consonant,
            "consonant_length": self.consonant_length,
            "vowel": self.vowel,
            "vowel_length": self.vowel_length,
            "pitch": self.pitch,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Mora":
        consonant_length = data.get("consonant_length")
        return cls(
            text=str(data["text"]),
            vowel=str(data["vowel"]),
            vowel_length=float(data.get("vowel_length", 0.0)),
            pitch=float(data.get("pitch", 0.0)),
            consonant=data.get("consonant"),
            consonant_length=float(consonant_length) if consonant_length is not None else None,
        )

    @classmethod
    def pause(cls, length: float = 0.0) -> "Mora":
        return cls(text=PAUSE_TEXT, vowel=PAUSE_PHONEME, vowel_length=length, pitch=0.0)


@dataclass
class AccentPhrase:
    moras: List[Mora]
    accent: int
    pause_mora: Optional[Mora] = None
    is_interrogative: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "moras": [mora.to_dict() for mora in self.moras],
            "accent": self.accent,
            "pause_mora": self.pause_mora.to_dict() if self.pause_mora else None,
            "is_interrogative": self.is_interrogative,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccentPhrase":
        pause = data.get("pause_mora")
        return cls(
            moras=[Mora.from_dict(item) for item in data.get("moras", [])],
            accent=int(data["accent"]),
            pause_mora=Mora.from_dict(pause) if pause else None,
            is_interrogative=bool(data.get("is_interrogative", False)),
        )


@dataclass
class AudioQuery:
    accent_phrases: List[AccentPhrase]
    speed_scale: float = 1.0
    pitch_scale: float = 0.0
    intonation_scale: float = 1.0
    volume_scale: float = 1.0
    pre_phoneme_length: float = 0.1
    post_phoneme_length: float = 0.1
    output_sampling_rate: int = DEFAULT_SAMPLING_RATE
    output_stereo: bool = False
    kana: Optional[str] = field(default=None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accent_phrases": [phrase.to_dict() for phrase in self.accent_phrases],
            "speedScale": self.speed_scale,
            "pitchScale": self.pitch_scale,
            "intonationScale": self.intonation_scale,
            "volumeScale": self.volume_scale,
            "prePhonemeLength": self.pre_phoneme_length,
            "postPhonemeLength": self.post_phoneme_length,
            "outputSamplingRate": self.output_sampling_rate,
            "outputStereo": self.output_stereo,
            "kana": self.kana,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AudioQuery":
        return cls(
            accent_phrases=[AccentPhrase.from_dict(item) for item in data.get("accent_phrases", [])],
            speed_scale=float(data.get("speedScale", 1.0)),
            pitch_scale=float(data.get("pitchScale", 0.0)),
            intonation_scale=float(data.get("intonationScale", 1.0)),
            volume_scale=float(data.get("volumeScale", 1.0)),
            pre_phoneme_length=float(data.get("prePhonemeLength", 0.1)),
            post_phoneme_length=float(data.get("postPhonemeLength", 0.1)),
            output_sampling_rate=int(data.get("outputSamplingRate", DEFAULT_SAMPLING_RATE)),
            output_stereo=bool(data.get("outputStereo", False)),
            kana=data.get("kana"),
        )


def copy_accent_phrases(accent_phrases: Sequence[AccentPhrase]) -> List[AccentPhrase]:
    """Return an independent deep copy of an accent phrase sequence."""
    return [copy.deepcopy(phrase) for phrase in accent_phrases]


def flatten_moras(accent_phrases: Sequence[AccentPhrase]) -> List[Mora]:
    """Moras of every phrase in order, each phrase followed by its pause mora if any."""
    moras: List[Mora] = []
    for phrase in accent_phrases:
        moras.extend(phrase.moras)
        if phrase.pause_mora is not None:
            moras.append(phrase.pause_mora)
    return moras
