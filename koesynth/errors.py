"""Error types raised by the synthesis engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


class KoeSynthError(Exception):
    """Base class for every error the engine reports to callers."""

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error_type": type(self).__name__, "message": str(self)}
        if hasattr(self, "__dataclass_fields__"):
            for key, value in asdict(self).items():
                payload[key] = str(value) if isinstance(value, Path) else value
        return payload


@dataclass(eq=False)
class AccelerationUnavailable(KoeSynthError):
    """Raised when the requested execution device is not present on this host."""

    requested: str
    available: Tuple[str, ...] = ()

    def __str__(self) -> str:
        return f"acceleration_unavailable: requested={self.requested} available={list(self.available)}"


@dataclass(eq=False)
class StyleAlreadyLoaded(KoeSynthError):
    style_id: int
    model_id: str
    owner_model_id: str

    def __str__(self) -> str:
        return (
            f"style_already_loaded: style_id={self.style_id} model={self.model_id} "
            f"owner={self.owner_model_id}"
        )


@dataclass(eq=False)
class StyleNotFound(KoeSynthError):
    style_id: int

    def __str__(self) -> str:
        return f"style_not_found: style_id={self.style_id}"


@dataclass(eq=False)
class ModelNotFound(KoeSynthError):
    model_id: str

    def __str__(self) -> str:
        return f"model_not_found: model={self.model_id}"


@dataclass(eq=False)
class ModelBusy(KoeSynthError):
    """Raised when unloading a model whose sessions are still held by callers."""

    model_id: str
    in_flight: int

    def __str__(self) -> str:
        return f"model_busy: model={self.model_id} in_flight={self.in_flight}"


@dataclass(eq=False)
class InvalidPhoneticNotation(KoeSynthError):
    text: str
    detail: str

    def __str__(self) -> str:
        return f"invalid_phonetic_notation: {self.detail} (text={self.text!r})"


@dataclass(eq=False)
class InvalidPronunciation(KoeSynthError):
    pronunciation: str
    detail: str

    def __str__(self) -> str:
        return f"invalid_pronunciation: {self.detail} (pronunciation={self.pronunciation!r})"


@dataclass(eq=False)
class WordNotFound(KoeSynthError):
    word_uuid: str

    def __str__(self) -> str:
        return f"word_not_found: uuid={self.word_uuid}"


@dataclass(eq=False)
class UserDictFailure(KoeSynthError):
    path: str
    detail: str

    def __str__(self) -> str:
        return f"user_dict_failure: {self.detail} (path={self.path})"


@dataclass(eq=False)
class TextAnalysisFailure(KoeSynthError):
    text: str
    detail: str

    def __str__(self) -> str:
        return f"text_analysis_failure: {self.detail} (text={self.text!r})"


@dataclass(eq=False)
class InferenceFailure(KoeSynthError):
    """Raised when an inference session call errors or returns malformed output."""

    stage: str
    detail: str
    model_id: Optional[str] = None

    def __str__(self) -> str:
        return f"inference_failure: stage={self.stage} model={self.model_id or '-'} {self.detail}"


@dataclass(eq=False)
class ModelLoadFailure(KoeSynthError):
    path: str
    detail: str

    def __str__(self) -> str:
        return f"model_load_failure: {self.detail} (path={self.path})"


@dataclass(eq=False)
class InvalidAudioQuery(KoeSynthError):
    field: str
    detail: str

    def __str__(self) -> str:
        return f"invalid_audio_query: {self.field} {self.detail}"
