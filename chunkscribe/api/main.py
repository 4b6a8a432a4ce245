from __future__ import annotations

"""
HTTP surface for chunked transcription.

Design intent:
- Keep API orchestration thin and typed.
- Delegate windowing, stitching and rendering to internal_core/asr modules.
- Return all transcript views derived from one stitched segment sequence.
"""

import dataclasses
import logging
from pathlib import Path
from typing import Any, Literal

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from chunkscribe.asr.engine_factory import build_engine, engine_lock
from chunkscribe.asr.formatting import render_all
from chunkscribe.internal_core import (
    ConfigurationError,
    EngineError,
    FormatError,
    RunTimeoutError,
    TranscriptionError,
    load_config,
)
from chunkscribe.internal_core.asr import ASREngine, transcribe_file
from chunkscribe.internal_core.contracts import GlobalSegment, WindowMetric


class TranscribeRequest(BaseModel):
    audio_path: str = Field(min_length=1)
    window_seconds: float | None = Field(default=None, gt=0.0, le=600.0)
    offset_policy: Literal["nominal", "observed"] | None = None
    time_unit: Literal["srt", "cs", "ms"] | None = None
    engine: Literal["whisper_cpp", "mock"] | None = None
    language: str | None = Field(default=None, min_length=2, max_length=16)


class TranscribeResponse(BaseModel):
    segments: list[GlobalSegment] = Field(default_factory=list)
    windows: list[WindowMetric] = Field(default_factory=list)
    raw_text: str
    timestamped_text: str
    srt_text: str
    debug: dict[str, Any] = Field(default_factory=dict)


app = FastAPI(title="chunkscribe transcription service")
logger = logging.getLogger(__name__)


def _resolve_engine(cfg) -> ASREngine:
    injected = getattr(app.state, "transcribe_engine", None)
    if injected is not None:
        return injected
    return build_engine(cfg)


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/transcribe", response_model=TranscribeResponse)
def transcribe(payload: TranscribeRequest) -> TranscribeResponse:
    overrides = {
        "WINDOW_SECONDS": payload.window_seconds,
        "OFFSET_POLICY": payload.offset_policy,
        "TIME_UNIT": payload.time_unit,
        "ENGINE": payload.engine,
        "LANGUAGE": payload.language,
    }
    try:
        cfg = dataclasses.replace(
            load_config(), **{k: v for k, v in overrides.items() if v is not None}
        ).validate()
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc

    audio_path = Path(payload.audio_path).expanduser()
    if not audio_path.exists() or not audio_path.is_file():
        raise HTTPException(status_code=404, detail=f"Audio file not found: {audio_path}")

    try:
        engine = _resolve_engine(cfg)
        # One inference at a time per engine instance.
        with engine_lock:
            result = transcribe_file(audio_path, cfg, engine)
    except (FormatError, ConfigurationError) as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (EngineError, RunTimeoutError) as exc:
        logger.warning(
            "transcribe_failed code=%s window_index=%s audio_path=%s",
            exc.code,
            exc.window_index,
            audio_path,
        )
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except TranscriptionError as exc:
        raise HTTPException(status_code=500, detail=exc.message) from exc

    rendered = render_all(result.segments, cfg.TIME_UNIT)  # type: ignore[arg-type]
    return TranscribeResponse(
        segments=result.segments,
        windows=result.windows,
        raw_text=rendered.raw,
        timestamped_text=rendered.timestamped,
        srt_text=rendered.srt,
        debug={**result.meta, "time_unit": cfg.TIME_UNIT},
    )
