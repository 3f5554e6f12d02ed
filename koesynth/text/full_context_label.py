"""
Conversion of OpenJTalk full-context labels into accent phrases.

Only a handful of label contexts matter here:
- p3: the phoneme itself
- a2: mora position inside the accent phrase (mora boundaries)
- f1/f2/f3/f5: mora count, accent position, interrogative flag and phrase position
- i3: accent phrase position inside the breath group
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence
import re

from koesynth.audio_query import AccentPhrase, Mora
from koesynth.errors import TextAnalysisFailure
from koesynth.text.mora_list import mora_to_text

_LABEL_PATTERN = re.compile(
    r"^(?P<p1>.+?)\^(?P<p2>.+?)\-(?P<p3>.+?)\+(?P<p4>.+?)\=(?P<p5>.+?)"
    r"/A\:(?P<a1>.+?)\+(?P<a2>.+?)\+(?P<a3>.+?)"
    r"/B\:(?P<b1>.+?)\-(?P<b2>.+?)\_(?P<b3>.+?)"
    r"/C\:(?P<c1>.+?)\_(?P<c2>.+?)\+(?P<c3>.+?)"
    r"/D\:(?P<d1>.+?)\+(?P<d2>.+?)\_(?P<d3>.+?)"
    r"/E\:(?P<e1>.+?)\_(?P<e2>.+?)\!(?P<e3>.+?)\_(?P<e4>.+?)\-(?P<e5>.+?)"
    r"/F\:(?P<f1>.+?)\_(?P<f2>.+?)\#(?P<f3>.+?)\_(?P<f4>.+?)\@(?P<f5>.+?)\_(?P<f6>.+?)\|(?P<f7>.+?)\_(?P<f8>.+?)"
    r"/G\:(?P<g1>.+?)\_(?P<g2>.+?)\%(?P<g3>.+?)\_(?P<g4>.+?)\_(?P<g5>.+?)"
    r"/H\:(?P<h1>.+?)\_(?P<h2>.+?)"
    r"/I\:(?P<i1>.+?)\-(?P<i2>.+?)\@(?P<i3>.+?)\+(?P<i4>.+?)\&(?P<i5>.+?)\-(?P<i6>.+?)\|(?P<i7>.+?)\+(?P<i8>.+?)"
    r"/J\:(?P<j1>.+?)\_(?P<j2>.+?)"
    r"/K\:(?P<k1>.+?)\+(?P<k2>.+?)\-(?P<k3>.+?)$"
)


@dataclass(frozen=True)
class Label:
    """One parsed full-context label."""
    contexts: Dict[str, str]

    @classmethod
    def parse(cls, label: str) -> "Label":
        match = _LABEL_PATTERN.match(label)
        if match is None:
            raise ValueError(f"Malformed full-context label: {label!r}")
        return cls(contexts=match.groupdict())

    @property
    def phoneme(self) -> str:
        return self.contexts["p3"]

    def is_pause(self) -> bool:
        return self.contexts["f1"] == "xx"

    def same_mora(self, other: "Label") -> bool:
        return self.contexts["a2"] == other.contexts["a2"]

    def same_accent_phrase(self, other: "Label") -> bool:
        return self.contexts["i3"] == other.contexts["i3"] and self.contexts["f5"] == other.contexts["f5"]


def _split(labels: Sequence[Label], same_group) -> List[List[Label]]:
    groups: List[List[Label]] = []
    current: List[Label] = []
    for index, label in enumerate(labels):
        current.append(label)
        if index == len(labels) - 1 or not same_group(label, labels[index + 1]):
            groups.append(current)
            current = []
    return groups


def _to_mora(labels: Sequence[Label]) -> Mora:
    if len(labels) == 1:
        consonant, vowel = None, labels[0].phoneme
    elif len(labels) == 2:
        consonant, vowel = labels[0].phoneme, labels[1].phoneme
    else:
        raise ValueError(f"Unexpected mora of {len(labels)} phonemes: {[label.phoneme for label in labels]}")
    return Mora(
        text=mora_to_text((consonant or "") + vowel),
        vowel=vowel,
        vowel_length=0.0,
        pitch=0.0,
        consonant=consonant,
        consonant_length=0.0 if consonant is not None else None,
    )


def _to_accent_phrase(labels: Sequence[Label]) -> AccentPhrase:
    moras = [_to_mora(group) for group in _split(labels, Label.same_mora)]
    head = labels[0].contexts
    accent = int(head["f2"])
    # OpenJTalk occasionally reports an accent past the final mora.
    accent = max(1, min(accent, len(moras)))
    return AccentPhrase(moras=moras, accent=accent, is_interrogative=head["f3"] == "1")


def _breath_groups(labels: Iterable[Label]) -> List[List[Label]]:
    groups: List[List[Label]] = []
    current: List[Label] = []
    for label in labels:
        if label.is_pause():
            if current:
                groups.append(current)
                current = []
            continue
        current.append(label)
    if current:
        groups.append(current)
    return groups


def accent_phrases_from_labels(text: str, features: Sequence[str]) -> List[AccentPhrase]:
    """
    Build accent phrases from a full-context label stream.

    Every breath group but the last ends with a pause mora on its final phrase.

    Raises:
        TextAnalysisFailure: when the labels cannot be parsed
    """
    try:
        labels = [Label.parse(feature) for feature in features]
        groups = _breath_groups(labels)
        accent_phrases: List[AccentPhrase] = []
        for group_index, group in enumerate(groups):
            phrases = [_to_accent_phrase(chunk) for chunk in _split(group, Label.same_accent_phrase)]
            if group_index < len(groups) - 1:
                phrases[-1].pause_mora = Mora.pause()
            accent_phrases.extend(phrases)
    except ValueError as exc:
        raise TextAnalysisFailure(text, str(exc)) from exc
    return accent_phrases
