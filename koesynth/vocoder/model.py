import numpy as np
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from koesynth.acceleration import AccelerationContext
from koesynth.acoustic.model import (
    DurationModel,
    IntonationModel,
    OnnxModel,
    SessionFactory,
    create_onnx_session,
)
from koesynth.errors import InferenceFailure
from koesynth.text.phonemes import NUM_PHONEMES

MODEL_SAMPLING_RATE = 24000
HOP_SIZE = 256
FRAME_RATE = MODEL_SAMPLING_RATE / HOP_SIZE
# Silence added on both sides before decoding and trimmed afterwards.
PADDING_SECONDS = 0.4


def padding_frames() -> int:
    return int(round(PADDING_SECONDS * FRAME_RATE))


class DecodeModel(OnnxModel):
    """
    Waveform decoder.
    Inputs: f0 [frames, 1], phoneme [frames, 45] one-hot, speaker_id [1]
    Outputs: wave [frames * 256] at 24 kHz
    """
    stage = "decode"

    def forward(self, f0: np.ndarray, phoneme: np.ndarray, speaker_id: int) -> np.ndarray:
        """
        Args:
            f0: Per-frame F0 [frames]
            phoneme: Per-frame one-hot phonemes [frames, 45]
            speaker_id: Model-internal style id
        Returns:
            waveform: [frames * 256] float32
        """
        f0 = np.asarray(f0, dtype=np.float32).reshape(-1)
        phoneme = np.asarray(phoneme, dtype=np.float32).reshape(-1, NUM_PHONEMES)
        length = f0.shape[0]
        pad = padding_frames()
        pad_phoneme = np.zeros((pad, NUM_PHONEMES), dtype=np.float32)
        pad_phoneme[:, 0] = 1.0  # pau
        f0_padded = np.concatenate([np.zeros(pad, dtype=np.float32), f0, np.zeros(pad, dtype=np.float32)])
        phoneme_padded = np.concatenate([pad_phoneme, phoneme, pad_phoneme], axis=0)
        inputs = {
            "f0": f0_padded[:, None],
            "phoneme": phoneme_padded,
            "speaker_id": np.array([speaker_id], dtype=np.int64),
        }
        wave = self._output(inputs).reshape(-1)
        expected = (length + 2 * pad) * HOP_SIZE
        if wave.shape[0] < expected:
            raise InferenceFailure(self.stage, f"expected {expected} samples, got {wave.shape[0]}", self.model_id)
        return wave[pad * HOP_SIZE:(pad + length) * HOP_SIZE]


@dataclass(frozen=True)
class InferenceModels:
    """Raw ONNX payloads of one voice model."""
    predict_duration: bytes
    predict_intonation: bytes
    decode: bytes


class InferenceSessionSet:
    """The three sessions of one loaded voice model."""

    def __init__(self, duration: DurationModel, intonation: IntonationModel, decoder: DecodeModel):
        self.duration = duration
        self.intonation = intonation
        self.decoder = decoder

    @classmethod
    def from_models(
        cls,
        models: InferenceModels,
        context: AccelerationContext,
        session_factory: Optional[SessionFactory] = None,
        model_id: Optional[str] = None,
    ) -> "InferenceSessionSet":
        factory = session_factory or create_onnx_session
        return cls(
            duration=DurationModel.from_bytes(models.predict_duration, context, factory, model_id),
            intonation=IntonationModel.from_bytes(models.predict_intonation, context, factory, model_id),
            decoder=DecodeModel.from_bytes(models.decode, context, factory, model_id),
        )

    def predict_duration(self, phoneme_list: np.ndarray, speaker_id: int) -> np.ndarray:
        return self.duration.forward(phoneme_list, speaker_id)

    def predict_intonation(
        self,
        vowel_phoneme_list: np.ndarray,
        consonant_phoneme_list: np.ndarray,
        start_accent_list: np.ndarray,
        end_accent_list: np.ndarray,
        start_accent_phrase_list: np.ndarray,
        end_accent_phrase_list: np.ndarray,
        speaker_id: int,
    ) -> np.ndarray:
        return self.intonation.forward(
            vowel_phoneme_list,
            consonant_phoneme_list,
            start_accent_list,
            end_accent_list,
            start_accent_phrase_list,
            end_accent_phrase_list,
            speaker_id,
        )

    def predict_prosody(
        self,
        phoneme_list: np.ndarray,
        intonation_inputs: Tuple[Any, ...],
        speaker_id: int,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Run duration and intonation back to back; ``intonation_inputs`` are the six vectors."""
        lengths = self.predict_duration(phoneme_list, speaker_id)
        f0 = self.predict_intonation(*intonation_inputs, speaker_id)
        return lengths, f0

    def decode(self, f0: np.ndarray, phoneme: np.ndarray, speaker_id: int) -> np.ndarray:
        return self.decoder.forward(f0, phoneme, speaker_id)
