from __future__ import annotations

"""
Build ASR engines from configuration.

Design intent:
- Keep engine selection in one place so CLI and API agree.
- Reuse one engine per configuration; engines are not safe for concurrent
  runs, so callers serialize access through `engine_lock`.
"""

import threading
from typing import Any, Callable

from chunkscribe.internal_core import ConfigurationError, TranscribeConfig
from chunkscribe.internal_core.asr import ASREngine, MockASREngine, WhisperCppEngine

_ENGINE_CACHE: dict[tuple[Any, ...], ASREngine] = {}
_ENGINE_CACHE_LOCK = threading.Lock()
engine_lock = threading.Lock()


def _engine_cache_key(engine_name: str, cfg: TranscribeConfig) -> tuple[Any, ...]:
    if engine_name == "whisper_cpp":
        return (
            "whisper_cpp",
            cfg.WHISPER_CPP_BIN,
            cfg.WHISPER_CPP_MODEL,
            cfg.WHISPER_CPP_NO_GPU,
            cfg.FLASH_ATTN,
            cfg.LANGUAGE,
            cfg.INITIAL_PROMPT,
            cfg.ENGINE_TIMEOUT_SEC,
            cfg.SAMPLE_RATE,
        )
    return (engine_name, cfg.SAMPLE_RATE)


def _builders(cfg: TranscribeConfig) -> dict[str, Callable[[], ASREngine]]:
    return {
        "whisper_cpp": lambda: WhisperCppEngine(
            cfg.WHISPER_CPP_BIN,
            cfg.WHISPER_CPP_MODEL,
            language=cfg.LANGUAGE,
            initial_prompt=cfg.INITIAL_PROMPT,
            no_gpu=cfg.WHISPER_CPP_NO_GPU,
            flash_attn=cfg.FLASH_ATTN,
            timeout_sec=cfg.ENGINE_TIMEOUT_SEC,
            sample_rate=cfg.SAMPLE_RATE,
            tmp_dir=cfg.tmp_dir_path(),
        ),
        "mock": lambda: MockASREngine(sample_rate=cfg.SAMPLE_RATE),
    }


def build_engine(cfg: TranscribeConfig) -> ASREngine:
    engine_name = (cfg.ENGINE or "").strip().lower()
    builders = _builders(cfg)
    if engine_name not in builders:
        raise ConfigurationError(f"Unsupported ASR engine: {engine_name or '(empty)'}")
    if engine_name == "mock":
        return builders["mock"]()
    key = _engine_cache_key(engine_name, cfg)
    with _ENGINE_CACHE_LOCK:
        existing = _ENGINE_CACHE.get(key)
        if existing is not None:
            return existing
        created = builders[engine_name]()
        _ENGINE_CACHE[key] = created
        return created
