from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_MODEL_FILENAME = "ggml-large-v3-turbo.bin"
DEFAULT_MODEL_SOURCE = "https://huggingface.co/ggerganov/whisper.cpp/resolve/main"
TDRZ_MODEL_SOURCE = "https://huggingface.co/akashmjn/tinydiarize-whisper.cpp/resolve/main"


class ModelDownloadError(RuntimeError):
    """Raised when a ggml model cannot be fetched or stored."""


def project_root() -> Path:
    # chunkscribe/utils/model_paths.py -> chunkscribe -> repo root
    return Path(__file__).resolve().parents[2]


def model_search_roots() -> list[Path]:
    roots: list[Path] = []
    model_root = os.getenv("CHUNKSCRIBE_MODEL_ROOT", "").strip()
    if model_root:
        roots.append(Path(model_root).expanduser())
    base = project_root()
    roots.extend([Path.cwd(), base, base / "models", Path.cwd() / "models"])
    # Keep order and uniqueness.
    out: list[Path] = []
    seen: set[str] = set()
    for item in roots:
        key = str(item)
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out


def _first_existing(candidates: list[Path]) -> str:
    for path in candidates:
        try:
            resolved = path.expanduser().resolve()
        except OSError:
            continue
        if resolved.exists():
            return str(resolved)
    return ""


def discover_whisper_model(filename: str = DEFAULT_MODEL_FILENAME) -> str:
    return _first_existing([root / filename for root in model_search_roots()])


def resolve_whisper_model_path(explicit_path: Optional[str] = None) -> str:
    """
    Resolve the whisper.cpp model path with precedence:
    1) explicit arg
    2) CHUNKSCRIBE_WHISPER_CPP_MODEL
    3) auto-discovery of ggml-large-v3-turbo.bin in common local paths
    4) the bare default filename (relative to the working directory)
    """

    explicit = str(explicit_path or "").strip()
    if explicit:
        return explicit

    env_path = os.getenv("CHUNKSCRIBE_WHISPER_CPP_MODEL", "").strip()
    if env_path:
        return env_path

    return discover_whisper_model() or DEFAULT_MODEL_FILENAME


def model_download_url(model: str, source: Optional[str] = None) -> str:
    model = model.strip()
    if not model:
        raise ModelDownloadError("model name is required")
    if "tdrz" in model:
        base = TDRZ_MODEL_SOURCE
    else:
        base = (source or DEFAULT_MODEL_SOURCE).rstrip("/")
    return f"{base}/ggml-{model}.bin"


def download_ggml_model(
    model: str,
    models_dir: Path,
    *,
    source: Optional[str] = None,
    timeout_sec: float = 30.0,
    chunk_bytes: int = 1024 * 1024,
) -> Path:
    url = model_download_url(model, source)
    models_dir.mkdir(parents=True, exist_ok=True)
    dest = models_dir / f"ggml-{model}.bin"
    logger.info("model_download_start model=%s url=%s dest=%s", model, url, dest)

    fd, tmp_name = tempfile.mkstemp(prefix=f".ggml-{model}.", suffix=".part", dir=models_dir)
    tmp_path = Path(tmp_name)
    written = 0
    try:
        with os.fdopen(fd, "wb") as out:
            with requests.get(url, stream=True, timeout=timeout_sec) as resp:
                resp.raise_for_status()
                for chunk in resp.iter_content(chunk_size=chunk_bytes):
                    if chunk:
                        out.write(chunk)
                        written += len(chunk)
        if written == 0:
            raise ModelDownloadError(f"Downloaded model file is empty: {url}")
        os.replace(tmp_path, dest)
    except requests.RequestException as e:
        tmp_path.unlink(missing_ok=True)
        raise ModelDownloadError(f"Failed to download model from {url}: {e}") from e
    except (OSError, ModelDownloadError):
        tmp_path.unlink(missing_ok=True)
        raise

    logger.info("model_download_done model=%s bytes=%s", model, written)
    return dest
