"""
Text analysis: OpenJTalk labels, phonetic notation and the user dictionary.
"""

from koesynth.text.analysis import TextAnalysisAdapter, TextAnalyzer
from koesynth.text.kana_parser import create_kana, parse_kana
from koesynth.text.user_dict import UserDict, UserDictWord, WordType

__all__ = [
    "TextAnalysisAdapter",
    "TextAnalyzer",
    "UserDict",
    "UserDictWord",
    "WordType",
    "create_kana",
    "parse_kana",
]
