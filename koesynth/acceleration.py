"""
Execution device resolution.

Decides which onnxruntime execution providers back every inference session a
Synthesizer owns, and how many CPU threads they may use.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union
import os

import onnxruntime as ort

from koesynth.errors import AccelerationUnavailable
from koesynth.logging_utils import get_logger

logger = get_logger(__name__)

CPU_PROVIDER = "CPUExecutionProvider"
CUDA_PROVIDER = "CUDAExecutionProvider"
DML_PROVIDER = "DmlExecutionProvider"


class AccelerationMode(str, Enum):
    AUTO = "AUTO"
    CPU = "CPU"
    GPU = "GPU"

    @classmethod
    def parse(cls, value: Union["AccelerationMode", str]) -> "AccelerationMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown acceleration mode {value!r}; expected AUTO, CPU or GPU.") from None


@dataclass(frozen=True)
class SupportedDevices:
    """Devices usable on this host. CPU is always present."""
    cpu: bool = True
    cuda: bool = False
    dml: bool = False

    @classmethod
    def from_providers(cls, providers: List[str]) -> "SupportedDevices":
        return cls(cpu=True, cuda=CUDA_PROVIDER in providers, dml=DML_PROVIDER in providers)

    @property
    def has_gpu(self) -> bool:
        return self.cuda or self.dml

    def available(self) -> Tuple[str, ...]:
        names = ["cpu"]
        if self.cuda:
            names.append("cuda")
        if self.dml:
            names.append("dml")
        return tuple(names)

    def to_dict(self) -> Dict[str, bool]:
        return {"cpu": self.cpu, "cuda": self.cuda, "dml": self.dml}


def supported_devices() -> SupportedDevices:
    """Enumerate the execution devices onnxruntime can use on this host."""
    return SupportedDevices.from_providers(list(ort.get_available_providers()))


@dataclass(frozen=True)
class AccelerationContext:
    """
    Resolved execution context, shared read-only by every session of one Synthesizer.

    ``serialize_sessions`` is set for GPU contexts: calls against the same
    session are then executed one at a time.
    """
    device: str
    providers: Tuple[str, ...]
    cpu_num_threads: int
    serialize_sessions: bool = False

    @property
    def is_gpu(self) -> bool:
        return self.device != "cpu"

    def session_options(self) -> ort.SessionOptions:
        opts = ort.SessionOptions()
        opts.intra_op_num_threads = self.cpu_num_threads
        opts.inter_op_num_threads = 1
        if self.device == "dml":
            # DirectML does not support parallel execution or memory patterns.
            opts.enable_mem_pattern = False
            opts.execution_mode = ort.ExecutionMode.ORT_SEQUENTIAL
        return opts


def default_cpu_num_threads() -> int:
    return os.cpu_count() or 1


def resolve_acceleration(
    mode: Union[AccelerationMode, str] = AccelerationMode.AUTO,
    cpu_num_threads: int = 0,
    devices: Optional[SupportedDevices] = None,
) -> AccelerationContext:
    """
    Resolve a requested mode into a concrete execution context.

    Args:
        mode: AUTO, CPU or GPU
        cpu_num_threads: 0 selects a default from host concurrency; other values are used verbatim
        devices: Enumerated devices (default: query onnxruntime)

    Returns:
        AccelerationContext for the chosen device
    """
    mode = AccelerationMode.parse(mode)
    if cpu_num_threads < 0:
        raise ValueError("cpu_num_threads must be >= 0.")
    if devices is None:
        devices = supported_devices()
    threads = cpu_num_threads if cpu_num_threads > 0 else default_cpu_num_threads()

    if mode is AccelerationMode.GPU and not devices.has_gpu:
        raise AccelerationUnavailable(requested=mode.value, available=devices.available())

    use_gpu = mode is AccelerationMode.GPU or (mode is AccelerationMode.AUTO and devices.has_gpu)
    if use_gpu and devices.cuda:
        context = AccelerationContext(
            device="cuda",
            providers=(CUDA_PROVIDER, CPU_PROVIDER),
            cpu_num_threads=threads,
            serialize_sessions=True,
        )
    elif use_gpu:
        context = AccelerationContext(
            device="dml",
            providers=(DML_PROVIDER, CPU_PROVIDER),
            cpu_num_threads=threads,
            serialize_sessions=True,
        )
    else:
        context = AccelerationContext(
            device="cpu",
            providers=(CPU_PROVIDER,),
            cpu_num_threads=threads,
        )
    logger.info(
        "acceleration_resolved mode=%s device=%s providers=%s cpu_num_threads=%s available=%s",
        mode.value,
        context.device,
        list(context.providers),
        context.cpu_num_threads,
        list(devices.available()),
    )
    return context
