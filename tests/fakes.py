"""Fake sessions, analyzers and voice model archives shared by the tests."""

import json
import zipfile
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np


DURATION_BYTES = b"fake-duration"
INTONATION_BYTES = b"fake-intonation"
DECODE_BYTES = b"fake-decode"

FAKE_PHONEME_LENGTH = 0.1
FAKE_PITCH_BASE = 5.0
FAKE_AMPLITUDE = 0.5

_INPUTS = {
    DURATION_BYTES: ["phoneme_list", "speaker_id"],
    INTONATION_BYTES: [
        "length",
        "vowel_phoneme_list",
        "consonant_phoneme_list",
        "start_accent_list",
        "end_accent_list",
        "start_accent_phrase_list",
        "end_accent_phrase_list",
        "speaker_id",
    ],
    DECODE_BYTES: ["f0", "phoneme", "speaker_id"],
}
_OUTPUTS = {
    DURATION_BYTES: ["phoneme_length"],
    INTONATION_BYTES: ["f0_list"],
    DECODE_BYTES: ["wave"],
}


class FakeSession:
    """Deterministic stand-in for an onnxruntime session."""

    def __init__(self, kind: bytes, calls: List[Tuple[bytes, Dict[str, np.ndarray]]]):
        self.kind = kind
        self.calls = calls

    def get_inputs(self):
        return [SimpleNamespace(name=name) for name in _INPUTS[self.kind]]

    def get_outputs(self):
        return [SimpleNamespace(name=name) for name in _OUTPUTS[self.kind]]

    def run(self, output_names, feeds):
        self.calls.append((self.kind, feeds))
        if self.kind == DURATION_BYTES:
            return [np.full(feeds["phoneme_list"].shape[0], FAKE_PHONEME_LENGTH, dtype=np.float32)]
        if self.kind == INTONATION_BYTES:
            length = int(feeds["length"])
            return [FAKE_PITCH_BASE + 0.1 * np.arange(length, dtype=np.float32)]
        f0 = feeds["f0"][:, 0]
        return [np.repeat(np.where(f0 > 0, FAKE_AMPLITUDE, 0.0).astype(np.float32), 256)]


class FakeSessionFactory:
    def __init__(self):
        self.calls: List[Tuple[bytes, Dict[str, np.ndarray]]] = []
        self.created: List[bytes] = []

    def __call__(self, model_bytes, context):
        self.created.append(model_bytes)
        return FakeSession(model_bytes, self.calls)

    def count(self, kind: bytes) -> int:
        return sum(1 for called, _ in self.calls if called == kind)


def make_label(phoneme: str, a2: str = "xx", f1: str = "xx", f2: str = "xx", f3: str = "xx",
               f5: str = "xx", i3: str = "xx") -> str:
    return (
        f"xx^xx-{phoneme}+xx=xx/A:xx+{a2}+xx/B:xx-xx_xx/C:xx_xx+xx/D:xx+xx_xx"
        f"/E:xx_xx!xx_xx-xx/F:{f1}_{f2}#{f3}_xx@{f5}_xx|xx_xx/G:xx_xx%xx_xx_xx"
        f"/H:xx_xx/I:xx-xx@{i3}+xx&xx-xx|xx+xx/J:xx_xx/K:xx+xx-xx"
    )


# A phrase is (moras, accent, interrogative); a mora is (consonant or None, vowel).
Phrase = Tuple[Sequence[Tuple[Optional[str], str]], int, bool]


def labels_for(breath_groups: Sequence[Sequence[Phrase]]) -> List[str]:
    """Build an OpenJTalk-style label stream for the given breath groups."""
    labels = [make_label("sil")]
    for group_index, group in enumerate(breath_groups):
        if group_index > 0:
            labels.append(make_label("pau"))
        for phrase_index, (moras, accent, interrogative) in enumerate(group, start=1):
            for mora_index, (consonant, vowel) in enumerate(moras, start=1):
                context = dict(
                    a2=str(mora_index),
                    f1=str(len(moras)),
                    f2=str(accent),
                    f3="1" if interrogative else "0",
                    f5=str(phrase_index),
                    i3=str(group_index + 1),
                )
                if consonant is not None:
                    labels.append(make_label(consonant, **context))
                labels.append(make_label(vowel, **context))
    labels.append(make_label("sil"))
    return labels


class FakeAnalyzer:
    def __init__(self, table: Optional[Dict[str, List[str]]] = None):
        self.table = table or {}
        self.calls: List[str] = []

    def extract_fullcontext(self, text: str) -> List[str]:
        self.calls.append(text)
        return self.table[text]


# こんにちは (one phrase, accent 5) then ？-ending 元気です (two phrases).
HELLO_LABELS = labels_for(
    [
        [([("k", "o"), (None, "N"), ("n", "i"), ("ch", "i"), ("w", "a")], 5, False)],
        [
            ([("g", "e"), (None, "N"), ("k", "i")], 1, False),
            ([("d", "e"), ("s", "U"), ("k", "a")], 1, True),
        ],
    ]
)


def write_vvm(
    directory: Path,
    name: str,
    speakers: Sequence[Tuple[str, str, Sequence[Tuple[str, int]]]],
    *,
    inner_ids: Optional[Dict[int, int]] = None,
    manifest_version: str = "0.0.0",
    omit: Sequence[str] = (),
) -> Path:
    """Write a voice model archive; speakers are (uuid, name, [(style name, id)])."""
    manifest = {
        "manifest_version": manifest_version,
        "metas_filename": "metas.json",
        "predict_duration_filename": "predict_duration.onnx",
        "predict_intonation_filename": "predict_intonation.onnx",
        "decode_filename": "decode.onnx",
    }
    if inner_ids is not None:
        manifest["style_id_to_model_inner_id"] = {str(k): v for k, v in inner_ids.items()}
    metas = [
        {
            "name": speaker_name,
            "speaker_uuid": speaker_uuid,
            "version": "0.1.0",
            "styles": [{"name": style_name, "id": style_id} for style_name, style_id in styles],
        }
        for speaker_uuid, speaker_name, styles in speakers
    ]
    entries = {
        "manifest.json": json.dumps(manifest).encode("utf-8"),
        "metas.json": json.dumps(metas, ensure_ascii=False).encode("utf-8"),
        "predict_duration.onnx": DURATION_BYTES,
        "predict_intonation.onnx": INTONATION_BYTES,
        "decode.onnx": DECODE_BYTES,
    }
    path = directory / f"{name}.vvm"
    with zipfile.ZipFile(path, "w") as archive:
        for entry, data in entries.items():
            if entry not in omit:
                archive.writestr(entry, data)
    return path
