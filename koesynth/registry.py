"""
Registry of loaded voice models and their inference sessions.

Loads are serialized in submission order on one worker thread owned by the
registry, so callers on different event loops (or none) share one queue.
Lookups and unloads are synchronous and never wait on a load in progress: a
model becomes visible only once its sessions are fully built and committed.
"""

from __future__ import annotations

import asyncio
import contextvars
import copy
import functools
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from koesynth.acceleration import AccelerationContext
from koesynth.acoustic.model import SessionFactory
from koesynth.errors import ModelBusy, ModelNotFound, StyleAlreadyLoaded, StyleNotFound
from koesynth.logging_utils import get_logger
from koesynth.voice_model import SpeakerMeta, VoiceModel, merge_metas
from koesynth.vocoder.model import InferenceSessionSet

logger = get_logger(__name__)


@dataclass(eq=False)
class _Slot:
    index: int
    model: VoiceModel
    sessions: InferenceSessionSet
    # Taken when the load was submitted; later edits to model.metas are not seen.
    metas: Tuple[SpeakerMeta, ...]
    style_ids: FrozenSet[int]
    token: object = field(default_factory=object)
    in_flight: int = 0


class SessionHandle:
    """
    Borrowed access to one style's sessions.

    Holding a handle keeps its model from being unloaded. Release it with
    ``release()`` or by using it as a context manager; releasing twice is a no-op.
    """

    def __init__(self, registry: "ModelRegistry", slot: _Slot, style_id: int):
        self._registry = registry
        self.slot_index = slot.index
        self.token = slot.token
        self.sessions = slot.sessions
        self.model_id = slot.model.id
        self.style_id = style_id
        self.inner_style_id = slot.model.inner_style_id(style_id)
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._registry._release(self.slot_index, self.token)

    def __enter__(self) -> "SessionHandle":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.release()


class ModelRegistry:
    def __init__(self, context: AccelerationContext, session_factory: Optional[SessionFactory] = None):
        self.context = context
        self._session_factory = session_factory
        self._load_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="koesynth-load")
        self._state_lock = threading.Lock()
        self._slots: Dict[int, _Slot] = {}
        self._next_index = 0

    def _slot_for_model(self, model_id: str) -> Optional[_Slot]:
        for slot in self._slots.values():
            if slot.model.id == model_id:
                return slot
        return None

    def _slot_for_style(self, style_id: int) -> Optional[_Slot]:
        for slot in self._slots.values():
            if style_id in slot.style_ids:
                return slot
        return None

    def _check_style_conflicts(self, model_id: str, style_ids: FrozenSet[int]) -> None:
        for style_id in sorted(style_ids):
            owner = self._slot_for_style(style_id)
            if owner is not None:
                raise StyleAlreadyLoaded(style_id=style_id, model_id=model_id, owner_model_id=owner.model.id)

    async def load(self, model: VoiceModel) -> None:
        """
        Build sessions for ``model`` and register it.

        Loading an already loaded model is a no-op. If any of its styles is
        owned by another loaded model, StyleAlreadyLoaded is raised and nothing
        is registered.
        """
        metas = tuple(copy.deepcopy(model.metas))
        loop = asyncio.get_running_loop()
        call = functools.partial(contextvars.copy_context().run, self._load_blocking, model, metas)
        await loop.run_in_executor(self._load_executor, call)

    def _load_blocking(self, model: VoiceModel, metas: Tuple[SpeakerMeta, ...]) -> None:
        style_ids = frozenset(style.id for speaker in metas for style in speaker.styles)
        with self._state_lock:
            if self._slot_for_model(model.id) is not None:
                logger.info("voice_model_already_loaded model=%s", model.id)
                return
            self._check_style_conflicts(model.id, style_ids)

        sessions = InferenceSessionSet.from_models(
            model.read_inference_models_blocking(),
            self.context,
            self._session_factory,
            model.id,
        )

        with self._state_lock:
            if self._slot_for_model(model.id) is not None:
                return
            self._check_style_conflicts(model.id, style_ids)
            slot = _Slot(
                index=self._next_index,
                model=model,
                sessions=sessions,
                metas=metas,
                style_ids=style_ids,
            )
            self._slots[slot.index] = slot
            self._next_index += 1
        logger.info(
            "voice_model_loaded model=%s slot=%s styles=%s device=%s",
            model.id,
            slot.index,
            sorted(style_ids),
            self.context.device,
        )

    def unload(self, model_id: str) -> None:
        """
        Raises:
            ModelNotFound: if the model is not loaded
            ModelBusy: if a SessionHandle for the model is still held
        """
        with self._state_lock:
            slot = self._slot_for_model(model_id)
            if slot is None:
                raise ModelNotFound(model_id)
            if slot.in_flight > 0:
                raise ModelBusy(model_id=model_id, in_flight=slot.in_flight)
            del self._slots[slot.index]
        logger.info("voice_model_unloaded model=%s slot=%s", model_id, slot.index)

    def is_loaded(self, model_id: str) -> bool:
        with self._state_lock:
            return self._slot_for_model(model_id) is not None

    def is_style_loaded(self, style_id: int) -> bool:
        with self._state_lock:
            return self._slot_for_style(style_id) is not None

    def loaded_model_ids(self) -> List[str]:
        with self._state_lock:
            return [slot.model.id for slot in self._slots.values()]

    def resolve_style(self, style_id: int) -> SessionHandle:
        """
        Raises:
            StyleNotFound: if no loaded model provides ``style_id``
        """
        with self._state_lock:
            slot = self._slot_for_style(style_id)
            if slot is None:
                raise StyleNotFound(style_id)
            slot.in_flight += 1
            return SessionHandle(self, slot, style_id)

    def _release(self, slot_index: int, token: object) -> None:
        with self._state_lock:
            slot = self._slots.get(slot_index)
            if slot is not None and slot.token is token and slot.in_flight > 0:
                slot.in_flight -= 1

    def metas(self) -> List[SpeakerMeta]:
        with self._state_lock:
            speakers = [speaker for slot in self._slots.values() for speaker in slot.metas]
        return merge_metas(copy.deepcopy(speakers))

    def close(self) -> None:
        """
        Drop every model. Live handles keep their sessions until released; their
        count is logged as a warning.
        """
        with self._state_lock:
            count = len(self._slots)
            live = sum(slot.in_flight for slot in self._slots.values())
            self._slots.clear()
        if live:
            logger.warning("model_registry_closed_with_live_handles released=%s in_flight=%s", count, live)
        elif count:
            logger.info("model_registry_closed released=%s", count)
