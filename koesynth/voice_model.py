"""
Voice model files (.vvm) and speaker metadata.
"""

from __future__ import annotations

import asyncio
import json
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

from koesynth.errors import ModelLoadFailure
from koesynth.logging_utils import get_logger
from koesynth.vocoder.model import InferenceModels

logger = get_logger(__name__)

VOICE_MODEL_SUFFIX = ".vvm"
MANIFEST_FILENAME = "manifest.json"
SUPPORTED_MANIFEST_MAJOR = 0


@dataclass(frozen=True)
class StyleMeta:
    name: str
    id: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "id": self.id}


@dataclass
class SpeakerMeta:
    name: str
    speaker_uuid: str
    version: str
    styles: List[StyleMeta] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "speaker_uuid": self.speaker_uuid,
            "version": self.version,
            "styles": [style.to_dict() for style in self.styles],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpeakerMeta":
        return cls(
            name=str(data["name"]),
            speaker_uuid=str(data["speaker_uuid"]),
            version=str(data.get("version", "")),
            styles=[StyleMeta(name=str(style["name"]), id=int(style["id"])) for style in data.get("styles", [])],
        )


@dataclass(frozen=True)
class Manifest:
    manifest_version: str
    metas_filename: str
    predict_duration_filename: str
    predict_intonation_filename: str
    decode_filename: str
    style_id_to_model_inner_id: Dict[int, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Manifest":
        mapping = data.get("style_id_to_model_inner_id") or {}
        return cls(
            manifest_version=str(data["manifest_version"]),
            metas_filename=str(data["metas_filename"]),
            predict_duration_filename=str(data["predict_duration_filename"]),
            predict_intonation_filename=str(data["predict_intonation_filename"]),
            decode_filename=str(data["decode_filename"]),
            style_id_to_model_inner_id={int(key): int(value) for key, value in mapping.items()},
        )


def _read_entry(archive: zipfile.ZipFile, name: str, path: Path) -> bytes:
    try:
        return archive.read(name)
    except KeyError:
        raise ModelLoadFailure(str(path), f"missing entry {name!r}") from None


def _read_json(archive: zipfile.ZipFile, name: str, path: Path) -> Any:
    try:
        return json.loads(_read_entry(archive, name, path).decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise ModelLoadFailure(str(path), f"malformed JSON in {name!r}: {exc}") from exc


def _open_archive(path: Path) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(path)
    except FileNotFoundError:
        raise ModelLoadFailure(str(path), "file not found") from None
    except (OSError, zipfile.BadZipFile) as exc:
        raise ModelLoadFailure(str(path), f"not a voice model archive: {exc}") from exc


class VoiceModel:
    """
    A voice model file: manifest, speaker metas and three ONNX networks.

    Construct with ``await VoiceModel.from_path(path)``; the ONNX payloads are
    read lazily by ``read_inference_models``.
    """

    def __init__(self, path: Path, manifest: Manifest, metas: List[SpeakerMeta]):
        self.path = path
        self.manifest = manifest
        self.metas = metas

    @property
    def id(self) -> str:
        return self.path.stem

    def __repr__(self) -> str:
        return f"VoiceModel(id={self.id!r}, styles={self.style_ids()})"

    @classmethod
    async def from_path(cls, path: Union[str, Path]) -> "VoiceModel":
        return await asyncio.to_thread(cls._from_path_sync, Path(path))

    @classmethod
    def _from_path_sync(cls, path: Path) -> "VoiceModel":
        with _open_archive(path) as archive:
            manifest_raw = _read_json(archive, MANIFEST_FILENAME, path)
            try:
                manifest = Manifest.from_dict(manifest_raw)
            except (KeyError, TypeError, ValueError) as exc:
                raise ModelLoadFailure(str(path), f"invalid manifest: {exc}") from exc
            major = manifest.manifest_version.split(".", 1)[0]
            if major != str(SUPPORTED_MANIFEST_MAJOR):
                raise ModelLoadFailure(
                    str(path), f"unsupported manifest version {manifest.manifest_version}"
                )
            metas_raw = _read_json(archive, manifest.metas_filename, path)
        try:
            metas = [SpeakerMeta.from_dict(item) for item in metas_raw]
        except (KeyError, TypeError, ValueError) as exc:
            raise ModelLoadFailure(str(path), f"invalid metas: {exc}") from exc

        model = cls(path, manifest, metas)
        style_ids = model.style_ids()
        if len(style_ids) != len(set(style_ids)):
            raise ModelLoadFailure(str(path), f"duplicate style ids {style_ids}")
        logger.info("voice_model_opened model=%s styles=%s", model.id, style_ids)
        return model

    def style_ids(self) -> List[int]:
        return [style.id for speaker in self.metas for style in speaker.styles]

    def inner_style_id(self, style_id: int) -> int:
        """Model-internal speaker id for a public style id (identity when unmapped)."""
        return self.manifest.style_id_to_model_inner_id.get(style_id, style_id)

    async def read_inference_models(self) -> InferenceModels:
        return await asyncio.to_thread(self.read_inference_models_blocking)

    def read_inference_models_blocking(self) -> InferenceModels:
        with _open_archive(self.path) as archive:
            return InferenceModels(
                predict_duration=_read_entry(archive, self.manifest.predict_duration_filename, self.path),
                predict_intonation=_read_entry(archive, self.manifest.predict_intonation_filename, self.path),
                decode=_read_entry(archive, self.manifest.decode_filename, self.path),
            )


def list_voice_model_paths(model_dir: Union[str, Path]) -> List[Path]:
    """Return the .vvm files directly under ``model_dir``, sorted by name."""
    root = Path(model_dir)
    if not root.exists():
        raise FileNotFoundError(f"Model directory not found at {root}")
    return sorted(item for item in root.iterdir() if item.is_file() and item.suffix == VOICE_MODEL_SUFFIX)


def merge_metas(metas: List[SpeakerMeta]) -> List[SpeakerMeta]:
    """Merge speakers by ``speaker_uuid``; styles are sorted by id."""
    merged: Dict[str, SpeakerMeta] = {}
    for speaker in metas:
        existing = merged.get(speaker.speaker_uuid)
        if existing is None:
            merged[speaker.speaker_uuid] = SpeakerMeta(
                name=speaker.name,
                speaker_uuid=speaker.speaker_uuid,
                version=speaker.version,
                styles=list(speaker.styles),
            )
        else:
            existing.styles.extend(speaker.styles)
    for speaker in merged.values():
        speaker.styles.sort(key=lambda style: style.id)
    return list(merged.values())
