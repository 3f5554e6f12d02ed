from __future__ import annotations

"""Engine settings loader from environment variables and an optional YAML file."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
import os

import yaml


def _load_file_defaults() -> Dict[str, Any]:
    """Read KOESYNTH_CONFIG (YAML mapping) if set."""
    config_path = os.getenv("KOESYNTH_CONFIG")
    if not config_path:
        return {}
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"KOESYNTH_CONFIG not found at {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid config format at {path}: expected a mapping.")
    return data


def _raw(name: str, key: str, file_defaults: Dict[str, Any]) -> Optional[str]:
    value = os.getenv(name)
    if value is not None and value != "":
        return value
    if key in file_defaults and file_defaults[key] is not None:
        return str(file_defaults[key])
    return None


def _env_int(name: str, key: str, default: int, file_defaults: Dict[str, Any]) -> int:
    """Read an int setting with a default."""
    value = _raw(name, key, file_defaults)
    if value is None:
        return default
    return int(value)


def _env_bool(name: str, key: str, default: bool, file_defaults: Dict[str, Any]) -> bool:
    """Read a boolean setting with a default."""
    value = _raw(name, key, file_defaults)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes"}


def _env_path(name: str, key: str, file_defaults: Dict[str, Any]) -> Optional[Path]:
    value = _raw(name, key, file_defaults)
    if value is None:
        return None
    return Path(value).expanduser()


def _app_env() -> str:
    """Return the application environment name."""
    return os.getenv("APP_ENV") or os.getenv("ENV") or "dev"


@dataclass(frozen=True)
class Settings:
    """Configuration values parsed from the environment."""
    acceleration_mode: str
    cpu_num_threads: int
    load_all_models: bool
    model_dir: Optional[Path]
    open_jtalk_dict_dir: Optional[Path]
    user_dict_path: Optional[Path]
    app_env: str

    @classmethod
    def from_env(cls) -> "Settings":
        """Construct settings from environment variables."""
        file_defaults = _load_file_defaults()
        acceleration_mode = (
            _raw("KOESYNTH_ACCELERATION_MODE", "acceleration_mode", file_defaults) or "AUTO"
        ).strip().upper()
        if acceleration_mode not in {"AUTO", "CPU", "GPU"}:
            raise ValueError(
                f"KOESYNTH_ACCELERATION_MODE must be AUTO, CPU or GPU (got {acceleration_mode!r})."
            )
        cpu_num_threads = _env_int("KOESYNTH_CPU_NUM_THREADS", "cpu_num_threads", 0, file_defaults)
        if cpu_num_threads < 0:
            raise ValueError("KOESYNTH_CPU_NUM_THREADS must be >= 0.")
        load_all_models = _env_bool("KOESYNTH_LOAD_ALL_MODELS", "load_all_models", False, file_defaults)
        model_dir = _env_path("KOESYNTH_MODEL_DIR", "model_dir", file_defaults)
        if load_all_models and model_dir is None:
            raise ValueError("KOESYNTH_LOAD_ALL_MODELS requires KOESYNTH_MODEL_DIR.")
        return cls(
            acceleration_mode=acceleration_mode,
            cpu_num_threads=cpu_num_threads,
            load_all_models=load_all_models,
            model_dir=model_dir,
            open_jtalk_dict_dir=_env_path("KOESYNTH_OPEN_JTALK_DICT_DIR", "open_jtalk_dict_dir", file_defaults),
            user_dict_path=_env_path("KOESYNTH_USER_DICT_PATH", "user_dict_path", file_defaults),
            app_env=_app_env(),
        )
