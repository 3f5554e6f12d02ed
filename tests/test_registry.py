import asyncio
import logging
import threading
import time

import pytest

from koesynth.acceleration import resolve_acceleration
from koesynth.errors import ModelBusy, ModelNotFound, StyleAlreadyLoaded, StyleNotFound
from koesynth.registry import ModelRegistry
from koesynth.voice_model import SpeakerMeta, StyleMeta, VoiceModel
from fakes import FakeSessionFactory, write_vvm


def _open(path):
    return asyncio.run(VoiceModel.from_path(path))


@pytest.fixture
def registry(cpu_devices, session_factory):
    return ModelRegistry(resolve_acceleration("CPU", 1, devices=cpu_devices), session_factory)


def test_load_registers_styles(registry, model_dir, session_factory):
    model = _open(model_dir / "sample.vvm")
    asyncio.run(registry.load(model))
    assert registry.is_loaded("sample")
    assert registry.is_style_loaded(0)
    assert registry.is_style_loaded(1)
    assert not registry.is_style_loaded(2)
    assert len(session_factory.created) == 3


def test_loading_same_model_twice_is_noop(registry, model_dir, session_factory):
    model = _open(model_dir / "sample.vvm")

    async def load_twice():
        await asyncio.gather(registry.load(model), registry.load(model))

    asyncio.run(load_twice())
    asyncio.run(registry.load(model))
    assert registry.loaded_model_ids() == ["sample"]
    assert len(session_factory.created) == 3


def test_overlapping_style_is_rejected_without_partial_registration(registry, model_dir, tmp_path):
    asyncio.run(registry.load(_open(model_dir / "sample.vvm")))
    clash = _open(write_vvm(tmp_path, "clash", [("uuid-c", "Carol", [("normal", 5), ("happy", 1)])]))
    with pytest.raises(StyleAlreadyLoaded) as excinfo:
        asyncio.run(registry.load(clash))
    assert excinfo.value.style_id == 1
    assert excinfo.value.owner_model_id == "sample"
    assert not registry.is_loaded("clash")
    assert not registry.is_style_loaded(5)


def test_model_is_invisible_until_sessions_are_built(cpu_devices, model_dir):
    observed = []
    inner = FakeSessionFactory()

    def factory(model_bytes, context):
        observed.append((registry.is_loaded("sample"), registry.is_style_loaded(0)))
        return inner(model_bytes, context)

    registry = ModelRegistry(resolve_acceleration("CPU", 1, devices=cpu_devices), factory)
    asyncio.run(registry.load(_open(model_dir / "sample.vvm")))
    assert observed == [(False, False)] * 3
    assert registry.is_loaded("sample")


def test_resolve_unknown_style(registry):
    with pytest.raises(StyleNotFound):
        registry.resolve_style(42)


def test_unload_unknown_model(registry):
    with pytest.raises(ModelNotFound):
        registry.unload("missing")


def test_unload_with_live_handle_is_busy(registry, model_dir):
    asyncio.run(registry.load(_open(model_dir / "other.vvm")))
    handle = registry.resolve_style(2)
    assert handle.inner_style_id == 0
    with pytest.raises(ModelBusy) as excinfo:
        registry.unload("other")
    assert excinfo.value.in_flight == 1
    handle.release()
    handle.release()
    registry.unload("other")
    assert not registry.is_loaded("other")
    assert not registry.is_style_loaded(2)


def test_handle_context_manager_releases(registry, model_dir):
    asyncio.run(registry.load(_open(model_dir / "sample.vvm")))
    with registry.resolve_style(0) as handle:
        assert handle.model_id == "sample"
    assert handle.released
    registry.unload("sample")


def test_stale_handle_release_does_not_touch_reloaded_model(registry, model_dir):
    model = _open(model_dir / "sample.vvm")
    asyncio.run(registry.load(model))
    stale = registry.resolve_style(0)
    registry.close()
    asyncio.run(registry.load(model))
    with registry.resolve_style(0):
        stale.release()
        with pytest.raises(ModelBusy):
            registry.unload("sample")
    registry.unload("sample")


def test_metas_are_merged_and_sorted(registry, model_dir):
    asyncio.run(registry.load(_open(model_dir / "other.vvm")))
    asyncio.run(registry.load(_open(model_dir / "sample.vvm")))
    metas = registry.metas()
    by_uuid = {speaker.speaker_uuid: speaker for speaker in metas}
    assert set(by_uuid) == {"uuid-a", "uuid-b"}
    assert [style.id for style in by_uuid["uuid-a"].styles] == [0, 1]


def test_close_drops_every_model(registry, model_dir):
    asyncio.run(registry.load(_open(model_dir / "sample.vvm")))
    registry.close()
    assert registry.loaded_model_ids() == []


def test_close_with_live_handle_logs_dropped_handles(registry, model_dir, caplog):
    asyncio.run(registry.load(_open(model_dir / "sample.vvm")))
    handle = registry.resolve_style(0)
    caplog.set_level(logging.INFO, logger="koesynth.registry")
    registry.close()
    warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "in_flight=1" in warnings[0].getMessage()
    assert not registry.is_style_loaded(0)
    handle.release()


def test_loads_work_across_event_loops(registry, model_dir):
    sample = _open(model_dir / "sample.vvm")
    other = _open(model_dir / "other.vvm")

    async def load_both():
        await asyncio.gather(registry.load(sample), registry.load(other))

    for _ in range(2):
        asyncio.run(load_both())
        assert sorted(registry.loaded_model_ids()) == ["other", "sample"]
        registry.unload("sample")
        registry.unload("other")


def test_loads_from_plain_threads_share_one_queue(registry, model_dir):
    models = [_open(model_dir / "sample.vvm"), _open(model_dir / "other.vvm")]
    errors = []

    def worker(model):
        try:
            asyncio.run(registry.load(model))
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(model,)) for model in models]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert errors == []
    assert sorted(registry.loaded_model_ids()) == ["other", "sample"]


def _slow_factory(events):
    inner = FakeSessionFactory()
    guard = threading.Lock()
    active = [0]
    registry_ref = [None]

    def factory(model_bytes, context):
        with guard:
            active[0] += 1
            events.append(("build", active[0], tuple(sorted(registry_ref[0].loaded_model_ids()))))
        time.sleep(0.01)
        with guard:
            active[0] -= 1
        return inner(model_bytes, context)

    return factory, registry_ref


def test_distinct_loads_run_one_at_a_time_in_submission_order(cpu_devices, model_dir):
    events = []
    factory, registry_ref = _slow_factory(events)
    registry = ModelRegistry(resolve_acceleration("CPU", 1, devices=cpu_devices), factory)
    registry_ref[0] = registry
    sample = _open(model_dir / "sample.vvm")
    other = _open(model_dir / "other.vvm")

    async def load_both():
        await asyncio.gather(registry.load(sample), registry.load(other))

    asyncio.run(load_both())
    assert len(events) == 6
    # Never more than one session build at a time.
    assert all(active == 1 for _, active, _ in events)
    # sample is fully committed before any of other's sessions are built.
    assert [loaded for _, _, loaded in events] == [()] * 3 + [("sample",)] * 3


def test_polling_task_never_sees_a_partial_load(cpu_devices, model_dir):
    events = []
    factory, registry_ref = _slow_factory(events)
    registry = ModelRegistry(resolve_acceleration("CPU", 1, devices=cpu_devices), factory)
    registry_ref[0] = registry
    model = _open(model_dir / "sample.vvm")

    async def poll_while_loading():
        seen = []
        load = asyncio.ensure_future(registry.load(model))
        while not load.done():
            seen.append((registry.is_loaded("sample"), registry.is_style_loaded(1), len(events)))
            await asyncio.sleep(0.002)
        await load
        return seen

    seen = asyncio.run(poll_while_loading())
    assert seen[0][:2] == (False, False)
    for loaded, style_loaded, builds in seen:
        if loaded or style_loaded:
            assert builds == 3
    assert registry.is_loaded("sample")


def test_registry_keeps_the_metas_seen_at_load(registry, model_dir):
    other = _open(model_dir / "other.vvm")
    asyncio.run(registry.load(other))
    other.metas[0].styles.append(StyleMeta("late", 0))
    other.metas.append(SpeakerMeta(name="Eve", speaker_uuid="uuid-e", version="0.1.0", styles=[StyleMeta("x", 9)]))
    assert not registry.is_style_loaded(0)
    assert not registry.is_style_loaded(9)
    with pytest.raises(StyleNotFound):
        registry.resolve_style(9)

    # Style 0 was not claimed by "other", so "sample" still loads and owns it.
    asyncio.run(registry.load(_open(model_dir / "sample.vvm")))
    with registry.resolve_style(0) as handle:
        assert handle.model_id == "sample"
    with registry.resolve_style(2) as handle:
        assert handle.model_id == "other"

    served = registry.metas()
    served[0].styles.clear()
    by_uuid = {speaker.speaker_uuid: speaker for speaker in registry.metas()}
    assert set(by_uuid) == {"uuid-a", "uuid-b"}
    assert [style.id for style in by_uuid["uuid-b"].styles] == [2]
