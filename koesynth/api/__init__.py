"""
Synthesis stage APIs.

This module exposes the acoustic prediction, waveform decoding and audio
container stages used by the Synthesizer.
"""

from koesynth.api.inference import AcousticPredictor
from koesynth.api.vocode import WaveformDecoder
from koesynth.api.audio import decode_wav, encode_wav, save_audio

__all__ = [
    # Prediction
    "AcousticPredictor",
    # Decoding
    "WaveformDecoder",
    # Output
    "encode_wav",
    "decode_wav",
    "save_audio",
]
