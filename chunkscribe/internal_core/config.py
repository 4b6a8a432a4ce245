from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError

OFFSET_POLICIES = {"nominal", "observed"}
TIME_UNITS = {"srt", "cs", "ms"}
ENGINES = {"whisper_cpp", "mock"}


def _project_root() -> Path:
    # chunkscribe/internal_core/config.py -> chunkscribe -> repo root
    return Path(__file__).resolve().parents[2]


def _getenv_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None else value


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _getenv_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


def _getenv_opt_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return _getenv_float(name, 0.0)


def _getenv_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


@dataclass(frozen=True)
class TranscribeConfig:
    WINDOW_SECONDS: float
    SAMPLE_RATE: int
    TIME_UNIT: str
    OFFSET_POLICY: str
    ENGINE: str
    WHISPER_CPP_BIN: str
    WHISPER_CPP_MODEL: str
    WHISPER_CPP_NO_GPU: bool
    FLASH_ATTN: bool
    LANGUAGE: str
    INITIAL_PROMPT: str
    ENGINE_TIMEOUT_SEC: float
    RUN_TIMEOUT_SEC: Optional[float]
    OUTPUT_DIR: str
    TMP_DIR: str
    LOG_LEVEL: str

    def tmp_dir_path(self, repo_root: Optional[Path] = None) -> Path:
        return ((repo_root or _project_root()) / self.TMP_DIR).resolve()

    def output_dir_path(self) -> Path:
        return Path(self.OUTPUT_DIR).expanduser().resolve()

    def validate(self) -> "TranscribeConfig":
        if self.WINDOW_SECONDS <= 0:
            raise ConfigurationError(
                f"window duration must be > 0 seconds, got {self.WINDOW_SECONDS}"
            )
        if self.SAMPLE_RATE <= 0:
            raise ConfigurationError(f"sample rate must be > 0, got {self.SAMPLE_RATE}")
        if self.OFFSET_POLICY not in OFFSET_POLICIES:
            raise ConfigurationError(
                f"unknown offset policy {self.OFFSET_POLICY!r} "
                f"(expected one of {sorted(OFFSET_POLICIES)})"
            )
        if self.TIME_UNIT not in TIME_UNITS:
            raise ConfigurationError(
                f"unknown time unit {self.TIME_UNIT!r} (expected one of {sorted(TIME_UNITS)})"
            )
        if self.ENGINE not in ENGINES:
            raise ConfigurationError(
                f"unknown engine {self.ENGINE!r} (expected one of {sorted(ENGINES)})"
            )
        if self.RUN_TIMEOUT_SEC is not None and self.RUN_TIMEOUT_SEC <= 0:
            raise ConfigurationError("run timeout must be > 0 seconds when set")
        return self


def load_config() -> TranscribeConfig:
    # Imported lazily: model discovery lives with the download tooling.
    from chunkscribe.utils.model_paths import resolve_whisper_model_path

    return TranscribeConfig(
        WINDOW_SECONDS=_getenv_float("CHUNKSCRIBE_WINDOW_SECONDS", 30.0),
        SAMPLE_RATE=_getenv_int("CHUNKSCRIBE_SAMPLE_RATE", 16000),
        TIME_UNIT=_getenv_str("CHUNKSCRIBE_TIME_UNIT", "srt").strip().lower(),
        OFFSET_POLICY=_getenv_str("CHUNKSCRIBE_OFFSET_POLICY", "nominal").strip().lower(),
        ENGINE=_getenv_str("CHUNKSCRIBE_ENGINE", "whisper_cpp").strip().lower(),
        WHISPER_CPP_BIN=_getenv_str("CHUNKSCRIBE_WHISPER_CPP_BIN", "whisper-cli"),
        WHISPER_CPP_MODEL=resolve_whisper_model_path(),
        WHISPER_CPP_NO_GPU=_getenv_bool("CHUNKSCRIBE_WHISPER_CPP_NO_GPU", False),
        FLASH_ATTN=_getenv_bool("CHUNKSCRIBE_FLASH_ATTN", False),
        LANGUAGE=_getenv_str("CHUNKSCRIBE_LANGUAGE", "en"),
        INITIAL_PROMPT=_getenv_str("CHUNKSCRIBE_INITIAL_PROMPT", ""),
        ENGINE_TIMEOUT_SEC=_getenv_float("CHUNKSCRIBE_ENGINE_TIMEOUT_SEC", 600.0),
        RUN_TIMEOUT_SEC=_getenv_opt_float("CHUNKSCRIBE_RUN_TIMEOUT_SEC"),
        OUTPUT_DIR=_getenv_str("CHUNKSCRIBE_OUTPUT_DIR", "."),
        TMP_DIR=_getenv_str("CHUNKSCRIBE_TMP_DIR", "./tmp"),
        LOG_LEVEL=_getenv_str("CHUNKSCRIBE_LOG_LEVEL", "INFO"),
    )
