"""
Audio output API.
"""

import io
import logging
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import numpy as np
import soundfile as sf

from koesynth.logging_utils import get_logger, summarize_payload

logger = get_logger(__name__)

PCM16_MAX = 32767


def to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Quantize float samples in [-1, 1] to int16; int16 input is passed through."""
    samples = np.asarray(samples)
    if samples.dtype == np.int16:
        return samples
    clipped = np.clip(samples.astype(np.float64), -1.0, 1.0)
    return np.round(clipped * PCM16_MAX).astype(np.int16)


def encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    """
    Encode mono [n] or stereo [n, 2] samples as a 16-bit PCM RIFF/WAV file.

    Args:
        samples: float samples in [-1, 1] or int16 samples
        sample_rate: Sample rate in Hz

    Returns:
        WAV file contents
    """
    pcm = to_pcm16(samples)
    if pcm.ndim not in (1, 2) or (pcm.ndim == 2 and pcm.shape[1] != 2):
        raise ValueError(f"Expected mono [n] or stereo [n, 2] samples, got shape {pcm.shape}")
    buffer = io.BytesIO()
    sf.write(buffer, pcm, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


def decode_wav(data: bytes) -> Tuple[np.ndarray, int]:
    """Read WAV bytes back into int16 samples and their sample rate."""
    samples, sample_rate = sf.read(io.BytesIO(data), dtype="int16")
    return samples, sample_rate


def save_audio(wav: bytes, output_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Write WAV bytes to a file.

    Args:
        wav: WAV file contents (as returned by ``Synthesizer.synthesis``)
        output_path: File path to save; a ``.wav`` suffix is enforced

    Returns:
        Dict with:
        - path: Absolute path to saved file
        - duration_seconds: Audio duration
        - sample_rate: Sample rate
        - channels: Channel count
    """
    output_path = Path(output_path)
    if output_path.suffix != ".wav":
        output_path = output_path.with_suffix(".wav")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(wav)

    info = sf.info(str(output_path))
    result = {
        "path": str(output_path.resolve()),
        "duration_seconds": info.frames / info.samplerate if info.samplerate else 0.0,
        "sample_rate": info.samplerate,
        "channels": info.channels,
    }
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("save_audio output=%s", summarize_payload(result))
    return result
