"""
Text analysis: natural text or phonetic notation into accent phrases.
"""

from __future__ import annotations

from typing import List, Protocol, Sequence
import logging

from koesynth.audio_query import AccentPhrase
from koesynth.errors import TextAnalysisFailure
from koesynth.logging_utils import get_logger, summarize_payload
from koesynth.text.full_context_label import accent_phrases_from_labels
from koesynth.text.kana_parser import parse_kana

logger = get_logger(__name__)


class TextAnalyzer(Protocol):
    def extract_fullcontext(self, text: str) -> Sequence[str]:
        ...


class TextAnalysisAdapter:
    """Wraps a TextAnalyzer; outputs have every length and pitch set to 0."""

    def __init__(self, analyzer: TextAnalyzer):
        self.analyzer = analyzer

    def analyze(self, text: str, kana: bool = False) -> List[AccentPhrase]:
        """
        Args:
            text: Japanese text, or phonetic notation when ``kana`` is set
            kana: Interpret ``text`` as phonetic notation

        Returns:
            Accent phrases; ``[]`` for empty natural text
        """
        if kana:
            phrases = parse_kana(text)
        elif not text:
            phrases = []
        else:
            try:
                features = list(self.analyzer.extract_fullcontext(text))
            except (RuntimeError, ValueError) as exc:
                raise TextAnalysisFailure(text, str(exc)) from exc
            phrases = accent_phrases_from_labels(text, features)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "analyze_text output=%s",
                summarize_payload({"kana": kana, "text": text, "accent_phrases": [p.to_dict() for p in phrases]}),
            )
        return phrases
