"""
Synthesizer: the public entry point composing text analysis, acoustic
prediction and waveform decoding over the loaded voice models.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import List, Optional, Sequence, Union

from koesynth.acceleration import AccelerationContext, AccelerationMode, SupportedDevices, resolve_acceleration
from koesynth.acoustic.model import SessionFactory
from koesynth.api.audio import encode_wav
from koesynth.api.inference import AcousticPredictor
from koesynth.api.vocode import WaveformDecoder
from koesynth.audio_query import AccentPhrase, AudioQuery
from koesynth.config import Settings
from koesynth.logging_utils import get_logger, log_context
from koesynth.registry import ModelRegistry
from koesynth.text.analysis import TextAnalysisAdapter, TextAnalyzer
from koesynth.text.kana_parser import create_kana
from koesynth.text.user_dict import UserDict
from koesynth.voice_model import SpeakerMeta, VoiceModel, list_voice_model_paths

logger = get_logger(__name__)


class Synthesizer:
    """
    Japanese text-to-speech synthesizer.

    The acceleration context is resolved once at construction and shared by
    every session. Long-running operations are coroutines; analyzer and
    inference work runs in worker threads.
    """

    def __init__(
        self,
        analyzer: TextAnalyzer,
        acceleration_mode: Union[AccelerationMode, str] = AccelerationMode.AUTO,
        cpu_num_threads: int = 0,
        *,
        session_factory: Optional[SessionFactory] = None,
        devices: Optional[SupportedDevices] = None,
    ):
        self._acceleration = resolve_acceleration(acceleration_mode, cpu_num_threads, devices)
        self._registry = ModelRegistry(self._acceleration, session_factory)
        self._text = TextAnalysisAdapter(analyzer)
        self._predictor = AcousticPredictor(self._registry)
        self._decoder = WaveformDecoder(self._registry)
        self._closed = False

    @classmethod
    async def new_with_initialize(
        cls,
        analyzer: TextAnalyzer,
        acceleration_mode: Union[AccelerationMode, str] = AccelerationMode.AUTO,
        cpu_num_threads: int = 0,
        load_all_models: bool = False,
        model_dir: Optional[Union[str, Path]] = None,
        *,
        session_factory: Optional[SessionFactory] = None,
        devices: Optional[SupportedDevices] = None,
    ) -> "Synthesizer":
        """
        Create a synthesizer, optionally loading every .vvm file in ``model_dir``.
        """
        if load_all_models and model_dir is None:
            raise ValueError("load_all_models requires model_dir.")
        synthesizer = cls(
            analyzer,
            acceleration_mode,
            cpu_num_threads,
            session_factory=session_factory,
            devices=devices,
        )
        if load_all_models:
            for path in list_voice_model_paths(model_dir):
                model = await VoiceModel.from_path(path)
                await synthesizer.load_voice_model(model)
        return synthesizer

    @classmethod
    async def from_settings(
        cls,
        settings: Optional[Settings] = None,
        analyzer: Optional[TextAnalyzer] = None,
        *,
        session_factory: Optional[SessionFactory] = None,
    ) -> "Synthesizer":
        """Build from ``Settings`` (default: the environment); creates an OpenJtalk analyzer if none is given."""
        settings = settings or Settings.from_env()
        if analyzer is None:
            from koesynth.text.open_jtalk import OpenJtalk

            open_jtalk = OpenJtalk(settings.open_jtalk_dict_dir)
            if settings.user_dict_path is not None:
                user_dict = UserDict()
                user_dict.load(settings.user_dict_path)
                open_jtalk.use_user_dict(user_dict)
            analyzer = open_jtalk
        return await cls.new_with_initialize(
            analyzer,
            settings.acceleration_mode,
            settings.cpu_num_threads,
            settings.load_all_models,
            settings.model_dir,
            session_factory=session_factory,
        )

    def __repr__(self) -> str:
        return (
            f"Synthesizer(device={self._acceleration.device!r}, "
            f"models={self._registry.loaded_model_ids()}, closed={self._closed})"
        )

    def __enter__(self) -> "Synthesizer":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Synthesizer is closed.")

    @property
    def acceleration(self) -> AccelerationContext:
        return self._acceleration

    @property
    def is_gpu_mode(self) -> bool:
        return self._acceleration.is_gpu

    def metas(self) -> List[SpeakerMeta]:
        return self._registry.metas()

    async def load_voice_model(self, model: VoiceModel) -> None:
        self._ensure_open()
        await self._registry.load(model)

    def unload_voice_model(self, voice_model_id: str) -> None:
        self._ensure_open()
        self._registry.unload(voice_model_id)

    def is_loaded_voice_model(self, voice_model_id: str) -> bool:
        return self._registry.is_loaded(voice_model_id)

    def is_loaded_model_by_style_id(self, style_id: int) -> bool:
        return self._registry.is_style_loaded(style_id)

    async def create_accent_phrases(self, text: str, style_id: int, kana: bool = False) -> List[AccentPhrase]:
        """
        Analyze ``text`` (or phonetic notation when ``kana``) and fill lengths and pitches.
        """
        self._ensure_open()
        phrases = await asyncio.to_thread(self._text.analyze, text, kana)
        return await self.replace_mora_data(phrases, style_id)

    async def replace_mora_data(self, accent_phrases: Sequence[AccentPhrase], style_id: int) -> List[AccentPhrase]:
        self._ensure_open()
        return await asyncio.to_thread(self._predictor.predict_duration_and_pitch, accent_phrases, style_id)

    async def replace_phoneme_length(
        self,
        accent_phrases: Sequence[AccentPhrase],
        style_id: int,
    ) -> List[AccentPhrase]:
        self._ensure_open()
        return await asyncio.to_thread(self._predictor.predict_duration, accent_phrases, style_id)

    async def replace_mora_pitch(self, accent_phrases: Sequence[AccentPhrase], style_id: int) -> List[AccentPhrase]:
        self._ensure_open()
        return await asyncio.to_thread(self._predictor.predict_pitch, accent_phrases, style_id)

    async def audio_query(self, text: str, style_id: int, kana: bool = False) -> AudioQuery:
        """Accent phrases for ``text`` wrapped in a default AudioQuery."""
        accent_phrases = await self.create_accent_phrases(text, style_id, kana)
        return AudioQuery(accent_phrases=accent_phrases, kana=create_kana(accent_phrases))

    async def synthesis(
        self,
        audio_query: AudioQuery,
        style_id: int,
        enable_interrogative_upspeak: bool = True,
    ) -> bytes:
        """
        Render ``audio_query`` to WAV bytes (16-bit PCM).
        """
        self._ensure_open()
        start = time.monotonic()
        with log_context(style_id=style_id):
            samples = await asyncio.to_thread(
                self._decoder.decode, audio_query, style_id, enable_interrogative_upspeak
            )
            wav = await asyncio.to_thread(encode_wav, samples, audio_query.output_sampling_rate)
            logger.info(
                "synthesis_done style_id=%s bytes=%s elapsed_ms=%.1f",
                style_id,
                len(wav),
                (time.monotonic() - start) * 1000,
            )
        return wav

    async def tts(
        self,
        text: str,
        style_id: int,
        kana: bool = False,
        enable_interrogative_upspeak: bool = True,
    ) -> bytes:
        audio_query = await self.audio_query(text, style_id, kana)
        return await self.synthesis(audio_query, style_id, enable_interrogative_upspeak)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._registry.close()
        logger.info("synthesizer_closed device=%s", self._acceleration.device)
