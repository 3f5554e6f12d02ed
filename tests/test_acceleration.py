import onnxruntime as ort
import pytest

from koesynth.acceleration import (
    CPU_PROVIDER,
    CUDA_PROVIDER,
    DML_PROVIDER,
    AccelerationMode,
    SupportedDevices,
    default_cpu_num_threads,
    resolve_acceleration,
    supported_devices,
)
from koesynth.errors import AccelerationUnavailable


def test_cpu_mode_uses_cpu_provider_only(cpu_devices):
    context = resolve_acceleration("CPU", 2, devices=SupportedDevices(cuda=True))
    assert context.device == "cpu"
    assert context.providers == (CPU_PROVIDER,)
    assert context.cpu_num_threads == 2
    assert not context.is_gpu
    assert not context.serialize_sessions


def test_auto_prefers_cuda_then_dml():
    cuda = resolve_acceleration(AccelerationMode.AUTO, devices=SupportedDevices(cuda=True, dml=True))
    assert cuda.device == "cuda"
    assert cuda.providers == (CUDA_PROVIDER, CPU_PROVIDER)
    dml = resolve_acceleration(AccelerationMode.AUTO, devices=SupportedDevices(dml=True))
    assert dml.device == "dml"
    assert dml.providers[-1] == CPU_PROVIDER


def test_auto_falls_back_to_cpu(cpu_devices):
    context = resolve_acceleration("auto", devices=cpu_devices)
    assert context.device == "cpu"


def test_gpu_without_gpu_raises(cpu_devices):
    with pytest.raises(AccelerationUnavailable) as excinfo:
        resolve_acceleration("GPU", devices=cpu_devices)
    assert excinfo.value.requested == "GPU"
    assert excinfo.value.to_payload()["error_type"] == "AccelerationUnavailable"


def test_gpu_context_serializes_sessions():
    context = resolve_acceleration("GPU", devices=SupportedDevices(cuda=True))
    assert context.is_gpu
    assert context.serialize_sessions


def test_zero_threads_uses_host_default(cpu_devices):
    context = resolve_acceleration("CPU", 0, devices=cpu_devices)
    assert context.cpu_num_threads == default_cpu_num_threads()


def test_negative_threads_rejected(cpu_devices):
    with pytest.raises(ValueError):
        resolve_acceleration("CPU", -1, devices=cpu_devices)


def test_unknown_mode_rejected(cpu_devices):
    with pytest.raises(ValueError):
        resolve_acceleration("TPU", devices=cpu_devices)


def test_session_options_carry_thread_count(cpu_devices):
    context = resolve_acceleration("CPU", 3, devices=cpu_devices)
    opts = context.session_options()
    assert opts.intra_op_num_threads == 3
    assert opts.inter_op_num_threads == 1


def test_supported_devices_reads_runtime_providers(monkeypatch):
    monkeypatch.setattr(ort, "get_available_providers", lambda: [DML_PROVIDER, CPU_PROVIDER])
    devices = supported_devices()
    assert devices.to_dict() == {"cpu": True, "cuda": False, "dml": True}
    assert devices.available() == ("cpu", "dml")
