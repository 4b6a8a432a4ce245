from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from chunkscribe.asr.formatting import RenderedTranscript, render_all
from chunkscribe.internal_core.contracts import GlobalSegment, TimeUnit
from chunkscribe.internal_core.errors import IoError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputPaths:
    raw: Path
    timestamped: Path
    srt: Path


def output_paths_for(audio_path: Path, output_dir: Path) -> OutputPaths:
    stem = audio_path.stem
    return OutputPaths(
        raw=output_dir / f"{stem}_raw.txt",
        timestamped=output_dir / f"{stem}_timestamps.txt",
        srt=output_dir / f"{stem}_timestamps.srt",
    )


def _write_text(path: Path, content: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        logger.error("output_write_failed path=%s error=%s", path, e)
        raise IoError(str(path), f"Failed to write {path}: {e}") from e
    logger.info("output_written path=%s bytes=%s", path, len(content.encode("utf-8")))


def write_rendered(rendered: RenderedTranscript, paths: OutputPaths) -> OutputPaths:
    # Already-written files stay on disk when a later write fails.
    _write_text(paths.srt, rendered.srt)
    _write_text(paths.timestamped, rendered.timestamped)
    _write_text(paths.raw, rendered.raw)
    return paths


def write_outputs(
    segments: Sequence[GlobalSegment],
    audio_path: Path,
    output_dir: Path,
    unit: TimeUnit = "srt",
) -> OutputPaths:
    return write_rendered(render_all(segments, unit), output_paths_for(audio_path, output_dir))
