import threading
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import onnxruntime as ort

from koesynth.acceleration import AccelerationContext
from koesynth.errors import InferenceFailure
from koesynth.logging_utils import get_logger

logger = get_logger(__name__)

# (model_bytes, context) -> object with get_inputs(), get_outputs() and run(output_names, feeds)
SessionFactory = Callable[[bytes, AccelerationContext], Any]

MIN_PHONEME_LENGTH = 0.01


def create_onnx_session(model_bytes: bytes, context: AccelerationContext) -> ort.InferenceSession:
    """Default session factory: an onnxruntime session on the resolved providers."""
    opts = context.session_options()
    logger.info(
        "ort_session_config device=%s providers=%s intra_threads=%s inter_threads=%s",
        context.device,
        list(context.providers),
        opts.intra_op_num_threads,
        opts.inter_op_num_threads,
    )
    return ort.InferenceSession(model_bytes, providers=list(context.providers), sess_options=opts)


class OnnxModel:
    """Base class for the voice model's ONNX networks."""
    stage = "onnx"

    def __init__(self, session: Any, context: AccelerationContext, model_id: Optional[str] = None):
        self.session = session
        self.context = context
        self.model_id = model_id
        self.input_names = [node.name for node in self.session.get_inputs()]
        self.output_names = [node.name for node in self.session.get_outputs()]
        self._lock = threading.Lock() if context.serialize_sessions else None

    @classmethod
    def from_bytes(
        cls,
        model_bytes: bytes,
        context: AccelerationContext,
        session_factory: SessionFactory = create_onnx_session,
        model_id: Optional[str] = None,
    ) -> "OnnxModel":
        return cls(session_factory(model_bytes, context), context, model_id=model_id)

    def run(self, inputs: Dict[str, Any]) -> List[Any]:
        # Filter inputs that are not expected by the model
        filtered_inputs = {k: v for k, v in inputs.items() if k in self.input_names}
        try:
            if self._lock is None:
                return self.session.run(self.output_names, filtered_inputs)
            with self._lock:
                return self.session.run(self.output_names, filtered_inputs)
        except Exception as exc:
            logger.error("onnx_run_failed stage=%s model=%s error=%s", self.stage, self.model_id, exc)
            raise InferenceFailure(self.stage, f"{type(exc).__name__}: {exc}", self.model_id) from exc

    def _output(self, inputs: Dict[str, Any]) -> np.ndarray:
        outputs = self.run(inputs)
        if not outputs:
            raise InferenceFailure(self.stage, "session returned no outputs", self.model_id)
        return np.asarray(outputs[0], dtype=np.float32)


class DurationModel(OnnxModel):
    """
    Duration predictor.
    Inputs: phoneme_list [N] int64, speaker_id [1] int64
    Outputs: phoneme_length [N] seconds
    """
    stage = "predict_duration"

    def forward(self, phoneme_list: np.ndarray, speaker_id: int) -> np.ndarray:
        phoneme_list = np.asarray(phoneme_list, dtype=np.int64)
        inputs = {
            "phoneme_list": phoneme_list,
            "speaker_id": np.array([speaker_id], dtype=np.int64),
        }
        lengths = self._output(inputs).reshape(-1)
        if lengths.shape[0] != phoneme_list.shape[0]:
            raise InferenceFailure(
                self.stage,
                f"expected {phoneme_list.shape[0]} lengths, got {lengths.shape[0]}",
                self.model_id,
            )
        return np.maximum(lengths, MIN_PHONEME_LENGTH)


class IntonationModel(OnnxModel):
    """
    Intonation predictor.
    Inputs: length, vowel/consonant phoneme lists, start/end accent and
        accent-phrase indicator lists [N] int64, speaker_id [1] int64
    Outputs: f0_list [N] log-F0
    """
    stage = "predict_intonation"

    def forward(
        self,
        vowel_phoneme_list: np.ndarray,
        consonant_phoneme_list: np.ndarray,
        start_accent_list: np.ndarray,
        end_accent_list: np.ndarray,
        start_accent_phrase_list: np.ndarray,
        end_accent_phrase_list: np.ndarray,
        speaker_id: int,
    ) -> np.ndarray:
        length = len(vowel_phoneme_list)
        inputs = {
            "length": np.array(length, dtype=np.int64),
            "vowel_phoneme_list": np.asarray(vowel_phoneme_list, dtype=np.int64),
            "consonant_phoneme_list": np.asarray(consonant_phoneme_list, dtype=np.int64),
            "start_accent_list": np.asarray(start_accent_list, dtype=np.int64),
            "end_accent_list": np.asarray(end_accent_list, dtype=np.int64),
            "start_accent_phrase_list": np.asarray(start_accent_phrase_list, dtype=np.int64),
            "end_accent_phrase_list": np.asarray(end_accent_phrase_list, dtype=np.int64),
            "speaker_id": np.array([speaker_id], dtype=np.int64),
        }
        f0 = self._output(inputs).reshape(-1)
        if f0.shape[0] != length:
            raise InferenceFailure(self.stage, f"expected {length} pitches, got {f0.shape[0]}", self.model_id)
        return f0
