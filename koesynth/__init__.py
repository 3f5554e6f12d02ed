"""
koesynth: Japanese text-to-speech synthesis engine.

Text is analyzed into accent phrases, filled with phoneme lengths and pitches
by the loaded voice model, then decoded to a waveform.
"""

from koesynth.acceleration import AccelerationContext, AccelerationMode, SupportedDevices, supported_devices
from koesynth.audio_query import AccentPhrase, AudioQuery, Mora
from koesynth.errors import (
    AccelerationUnavailable,
    InferenceFailure,
    InvalidAudioQuery,
    InvalidPhoneticNotation,
    InvalidPronunciation,
    KoeSynthError,
    ModelBusy,
    ModelLoadFailure,
    ModelNotFound,
    StyleAlreadyLoaded,
    StyleNotFound,
    TextAnalysisFailure,
    UserDictFailure,
    WordNotFound,
)
from koesynth.synthesizer import Synthesizer
from koesynth.text.user_dict import UserDict, UserDictWord, WordType
from koesynth.voice_model import SpeakerMeta, StyleMeta, VoiceModel

__version__ = "0.1.0"

__all__ = [
    # Engine
    "Synthesizer",
    "VoiceModel",
    "SpeakerMeta",
    "StyleMeta",
    # Acceleration
    "AccelerationContext",
    "AccelerationMode",
    "SupportedDevices",
    "supported_devices",
    # Data model
    "AccentPhrase",
    "AudioQuery",
    "Mora",
    # Pronunciation dictionary
    "UserDict",
    "UserDictWord",
    "WordType",
    # Errors
    "KoeSynthError",
    "AccelerationUnavailable",
    "InferenceFailure",
    "InvalidAudioQuery",
    "InvalidPhoneticNotation",
    "InvalidPronunciation",
    "ModelBusy",
    "ModelLoadFailure",
    "ModelNotFound",
    "StyleAlreadyLoaded",
    "StyleNotFound",
    "TextAnalysisFailure",
    "UserDictFailure",
    "WordNotFound",
]
