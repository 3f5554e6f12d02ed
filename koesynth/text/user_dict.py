"""
Pronunciation dictionary: user words compiled into a MeCab dictionary for OpenJTalk.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union
import copy
import json
import re
import uuid

import jaconv

from koesynth.errors import InvalidPronunciation, UserDictFailure, WordNotFound
from koesynth.logging_utils import get_logger

logger = get_logger(__name__)

MIN_PRIORITY = 0
MAX_PRIORITY = 10
DEFAULT_PRIORITY = 5

_PRONUNCIATION_PATTERN = re.compile(r"^[ァ-ヴー]+$")
_SUTEGANA = ("ァ", "ィ", "ゥ", "ェ", "ォ", "ャ", "ュ", "ョ", "ヮ", "ッ")
_MORA_PATTERN = re.compile(
    "(?:"
    "[イ][ェ]|[ヴ][ャュョ]|[トド][ゥ]|[テデ][ィャュョ]|[デ][ェ]|[クグ][ヮ]|"
    "[キシチニヒミリギジビピ][ェャュョ]|[ツフヴ][ァ]|[ウスツフヴズ][ィ]|[ウツフヴ][ェォ]|"
    "[ァ-ヴー]"
    ")"
)


@dataclass(frozen=True)
class _WordTypeInfo:
    context_id: int
    part_of_speech: Tuple[str, str, str, str]
    # Indexed by MAX_PRIORITY - priority.
    cost_candidates: Tuple[int, ...]


class WordType(str, Enum):
    PROPER_NOUN = "PROPER_NOUN"
    COMMON_NOUN = "COMMON_NOUN"
    VERB = "VERB"
    ADJECTIVE = "ADJECTIVE"
    SUFFIX = "SUFFIX"

    @property
    def info(self) -> _WordTypeInfo:
        return _WORD_TYPE_INFO[self]


_WORD_TYPE_INFO: Dict[WordType, _WordTypeInfo] = {
    WordType.PROPER_NOUN: _WordTypeInfo(
        1348,
        ("名詞", "固有名詞", "一般", "*"),
        (-988, 3488, 4768, 6048, 7328, 8609, 8734, 8859, 8984, 9110, 14176),
    ),
    WordType.COMMON_NOUN: _WordTypeInfo(
        1345,
        ("名詞", "一般", "*", "*"),
        (-4445, 49, 1473, 2897, 4321, 5746, 6554, 7362, 8170, 8979, 15001),
    ),
    WordType.VERB: _WordTypeInfo(
        642,
        ("動詞", "自立", "*", "*"),
        (3100, 6160, 6360, 6561, 6761, 6962, 7414, 7866, 8318, 8771, 13433),
    ),
    WordType.ADJECTIVE: _WordTypeInfo(
        20,
        ("形容詞", "自立", "*", "*"),
        (1527, 3266, 3561, 3857, 4153, 4449, 5149, 5849, 6549, 7250, 10001),
    ),
    WordType.SUFFIX: _WordTypeInfo(
        1358,
        ("名詞", "接尾", "一般", "*"),
        (4399, 5373, 6041, 6710, 7378, 8047, 9440, 10829, 12222, 13616, 15753),
    ),
}


def to_zenkaku(text: str) -> str:
    """Convert half-width ASCII, digits and kana to full-width."""
    return jaconv.h2z(text, kana=True, ascii=True, digit=True)


def validate_pronunciation(pronunciation: str) -> None:
    """
    Raises:
        InvalidPronunciation: if the reading is not well-formed katakana
    """
    if not _PRONUNCIATION_PATTERN.match(pronunciation):
        raise InvalidPronunciation(pronunciation, "pronunciation must be katakana")
    for index, char in enumerate(pronunciation):
        if char in _SUTEGANA and index < len(pronunciation) - 1:
            following = pronunciation[index + 1]
            if following in _SUTEGANA[:-1] or (char == "ッ" and following == "ッ"):
                raise InvalidPronunciation(pronunciation, "small kana cannot be used consecutively")
        if char == "ヮ" and (index == 0 or pronunciation[index - 1] not in ("ク", "グ")):
            raise InvalidPronunciation(pronunciation, "ヮ may only follow ク or グ")


def count_moras(pronunciation: str) -> int:
    return len(_MORA_PATTERN.findall(pronunciation))


@dataclass(frozen=True)
class UserDictWord:
    """
    A dictionary entry, validated on construction.

    ``surface`` is stored full-width and ``mora_count`` is derived from the
    pronunciation.
    """
    surface: str
    pronunciation: str
    accent_type: int
    word_type: WordType = WordType.COMMON_NOUN
    priority: int = DEFAULT_PRIORITY
    mora_count: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        if not self.surface:
            raise InvalidPronunciation(self.pronunciation, "surface must not be empty")
        if not isinstance(self.priority, int) or not MIN_PRIORITY <= self.priority <= MAX_PRIORITY:
            raise InvalidPronunciation(
                self.pronunciation, f"priority must be in {MIN_PRIORITY}..{MAX_PRIORITY} (got {self.priority})"
            )
        try:
            word_type = WordType(self.word_type)
        except ValueError:
            raise InvalidPronunciation(self.pronunciation, f"unknown word type {self.word_type!r}") from None
        validate_pronunciation(self.pronunciation)
        mora_count = count_moras(self.pronunciation)
        if not isinstance(self.accent_type, int) or not 0 <= self.accent_type <= mora_count:
            raise InvalidPronunciation(
                self.pronunciation, f"accent_type must be in 0..{mora_count} (got {self.accent_type})"
            )
        object.__setattr__(self, "surface", to_zenkaku(self.surface))
        object.__setattr__(self, "word_type", word_type)
        object.__setattr__(self, "mora_count", mora_count)

    @classmethod
    def create(
        cls,
        surface: str,
        pronunciation: str,
        accent_type: int,
        word_type: Union[WordType, str] = WordType.COMMON_NOUN,
        priority: int = DEFAULT_PRIORITY,
    ) -> "UserDictWord":
        return cls(surface, pronunciation, accent_type, word_type, priority)

    @property
    def cost(self) -> int:
        return self.word_type.info.cost_candidates[MAX_PRIORITY - self.priority]

    def to_mecab_line(self) -> str:
        info = self.word_type.info
        return ",".join(
            [
                self.surface,
                str(info.context_id),
                str(info.context_id),
                str(self.cost),
                *info.part_of_speech,
                "*",
                "*",
                "*",
                self.pronunciation,
                self.pronunciation,
                f"{self.accent_type}/{self.mora_count}",
                "*",
            ]
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "surface": self.surface,
            "pronunciation": self.pronunciation,
            "accent_type": self.accent_type,
            "word_type": self.word_type.value,
            "priority": self.priority,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserDictWord":
        return cls.create(
            surface=str(data["surface"]),
            pronunciation=str(data["pronunciation"]),
            accent_type=int(data["accent_type"]),
            word_type=data.get("word_type", WordType.COMMON_NOUN.value),
            priority=int(data.get("priority", DEFAULT_PRIORITY)),
        )


class UserDict:
    """Mutable collection of user words keyed by UUID."""

    def __init__(self, words: Optional[Dict[uuid.UUID, UserDictWord]] = None):
        self._words: Dict[uuid.UUID, UserDictWord] = dict(words or {})

    @property
    def words(self) -> Dict[uuid.UUID, UserDictWord]:
        return copy.copy(self._words)

    def __len__(self) -> int:
        return len(self._words)

    def add_word(self, word: UserDictWord) -> uuid.UUID:
        word_uuid = uuid.uuid4()
        self._words[word_uuid] = word
        logger.info("user_dict_word_added uuid=%s surface=%s", word_uuid, word.surface)
        return word_uuid

    def update_word(self, word_uuid: uuid.UUID, word: UserDictWord) -> None:
        if word_uuid not in self._words:
            raise WordNotFound(str(word_uuid))
        self._words[word_uuid] = word

    def remove_word(self, word_uuid: uuid.UUID) -> UserDictWord:
        if word_uuid not in self._words:
            raise WordNotFound(str(word_uuid))
        return self._words.pop(word_uuid)

    def import_dict(self, other: "UserDict") -> None:
        """Merge another dictionary; entries with the same UUID are overwritten."""
        self._words.update(other.words)

    def to_mecab_csv(self) -> str:
        return "".join(f"{word.to_mecab_line()}\n" for word in self._words.values())

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {str(word_uuid): word.to_dict() for word_uuid, word in self._words.items()}

    def save(self, path: Union[str, Path]) -> None:
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(self.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as exc:
            raise UserDictFailure(str(path), f"failed to write dictionary: {exc}") from exc
        logger.info("user_dict_saved path=%s words=%s", path, len(self._words))

    def load(self, path: Union[str, Path]) -> None:
        """Merge the words stored at ``path`` into this dictionary."""
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise UserDictFailure(str(path), f"failed to read dictionary: {exc}") from exc
        if not isinstance(raw, dict):
            raise UserDictFailure(str(path), "expected a mapping of uuid to word")
        loaded: Dict[uuid.UUID, UserDictWord] = {}
        for key, value in raw.items():
            try:
                loaded[uuid.UUID(key)] = UserDictWord.from_dict(value)
            except (KeyError, TypeError, ValueError, InvalidPronunciation) as exc:
                raise UserDictFailure(str(path), f"invalid entry {key}: {exc}") from exc
        self._words.update(loaded)
        logger.info("user_dict_loaded path=%s words=%s", path, len(loaded))
