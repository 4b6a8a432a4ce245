from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any, List, Optional, Tuple

import numpy as np

from ..audio_utils import TARGET_SAMPLE_RATE, write_wav_mono_float32
from ..contracts import Segment
from .base import ASREngine, EngineError, ProgressCallback

logger = logging.getLogger(__name__)


def _resolve_bin(bin_path: str) -> Optional[str]:
    if not bin_path:
        return None
    if Path(bin_path).exists():
        return bin_path
    return shutil.which(bin_path)


def whisper_cpp_available(bin_path: str, model_path: str) -> Tuple[bool, str]:
    if not bin_path:
        return False, "missing CHUNKSCRIBE_WHISPER_CPP_BIN"
    if not model_path:
        return False, "missing CHUNKSCRIBE_WHISPER_CPP_MODEL"
    if _resolve_bin(bin_path) is None:
        return False, f"whisper-cli not found: {bin_path}"
    if not Path(model_path).exists():
        return False, f"model not found: {model_path}"
    return True, ""


def _with_dyld_paths(bin_path: str, env: Optional[dict[str, str]] = None) -> dict[str, str]:
    env_out = dict(os.environ) if env is None else dict(env)
    if not bin_path:
        return env_out
    try:
        build_dir = Path(bin_path).resolve().parents[1]
    except (OSError, IndexError):
        return env_out

    candidates = [
        build_dir / "src",
        build_dir / "ggml" / "src",
        build_dir / "ggml" / "src" / "ggml-blas",
        build_dir / "ggml" / "src" / "ggml-metal",
    ]
    new_paths = [str(p) for p in candidates if p.exists()]
    if not new_paths:
        return env_out

    existing = env_out.get("DYLD_LIBRARY_PATH", "")
    joined = os.pathsep.join(new_paths)
    env_out["DYLD_LIBRARY_PATH"] = (
        joined if not existing else f"{joined}{os.pathsep}{existing}"
    )
    return env_out


def parse_whisper_json(payload: Any) -> List[Segment]:
    """Convert whisper-cli `-oj` output (offsets in ms) into centisecond segments."""
    if not isinstance(payload, dict) or not isinstance(payload.get("transcription"), list):
        raise ValueError("missing 'transcription' list")
    segments: List[Segment] = []
    for item in payload["transcription"]:
        offsets = item.get("offsets") if isinstance(item, dict) else None
        if not isinstance(offsets, dict):
            raise ValueError("transcription entry without offsets")
        start_ms = int(offsets["from"])
        end_ms = int(offsets["to"])
        segments.append(
            Segment(start_cs=start_ms // 10, end_cs=end_ms // 10, text=str(item.get("text", "")))
        )
    return segments


class WhisperCppEngine(ASREngine):
    def __init__(
        self,
        bin_path: str,
        model_path: str,
        *,
        language: str = "en",
        initial_prompt: str = "",
        no_gpu: bool = False,
        flash_attn: bool = False,
        timeout_sec: float = 600.0,
        sample_rate: int = TARGET_SAMPLE_RATE,
        tmp_dir: Optional[Path] = None,
    ):
        self._bin_path = bin_path
        self._model_path = model_path
        self._language = language
        self._initial_prompt = initial_prompt
        self._no_gpu = bool(no_gpu)
        self._flash_attn = bool(flash_attn)
        self._timeout_sec = timeout_sec
        self._sample_rate = sample_rate
        self._tmp_dir = tmp_dir

    def name(self) -> str:
        return "whisper_cpp"

    def _command(self, bin_path: str, wav_path: Path, out_prefix: Path) -> list[str]:
        cmd = [
            bin_path,
            "-m",
            self._model_path,
            "-f",
            str(wav_path),
            "-l",
            self._language,
            "-oj",
            "-of",
            str(out_prefix),
            "--no-prints",
        ]
        if self._initial_prompt:
            cmd.extend(["--prompt", self._initial_prompt])
        if self._flash_attn:
            cmd.append("-fa")
        if self._no_gpu:
            cmd.insert(1, "-ng")
        return cmd

    def transcribe(
        self, window_samples: np.ndarray, on_progress: Optional[ProgressCallback] = None
    ) -> List[Segment]:
        bin_path = _resolve_bin(self._bin_path)
        if bin_path is None:
            raise EngineError(
                "WHISPER_BIN_MISSING",
                "whisper.cpp binary is not configured (set CHUNKSCRIBE_WHISPER_CPP_BIN to whisper-cli)",
                self.name(),
            )
        if not self._model_path or not Path(self._model_path).exists():
            raise EngineError(
                "WHISPER_MODEL_MISSING",
                f"whisper.cpp model is missing: {self._model_path or '(unset)'}. "
                "Download one with `chunkscribe-download-model large-v3-turbo`, "
                "then set CHUNKSCRIBE_WHISPER_CPP_MODEL.",
                self.name(),
            )

        if self._tmp_dir is not None:
            self._tmp_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix="whisper_window_", dir=self._tmp_dir) as tmp_dir:
            wav_path = Path(tmp_dir) / "window.wav"
            out_prefix = Path(tmp_dir) / "window"
            write_wav_mono_float32(wav_path, window_samples, self._sample_rate)
            cmd = self._command(bin_path, wav_path, out_prefix)
            logger.debug("whisper_cpp_run cmd=%s", " ".join(cmd))
            if on_progress:
                on_progress(0.0)
            try:
                res = subprocess.run(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    timeout=self._timeout_sec,
                    env=_with_dyld_paths(bin_path),
                )
            except subprocess.TimeoutExpired as e:
                raise EngineError(
                    "WHISPER_TIMEOUT",
                    f"whisper.cpp timed out after {self._timeout_sec:.0f}s",
                    self.name(),
                ) from e
            except OSError as e:
                raise EngineError("WHISPER_EXIT_NONZERO", str(e), self.name()) from e

            if res.returncode != 0:
                msg = (res.stderr or "").strip() or f"exit_code={res.returncode}"
                if len(msg) > 200:
                    msg = msg[:200] + "..."
                raise EngineError("WHISPER_EXIT_NONZERO", msg, self.name())

            json_path = out_prefix.with_suffix(".json")
            try:
                payload = json.loads(json_path.read_text(encoding="utf-8", errors="replace"))
                segments = parse_whisper_json(payload)
            except (OSError, ValueError, KeyError, TypeError) as e:
                raise EngineError(
                    "WHISPER_BAD_OUTPUT", f"unreadable whisper.cpp output: {e}", self.name()
                ) from e

        if on_progress:
            on_progress(1.0)
        return segments
