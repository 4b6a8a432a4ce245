from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

from ..audio_utils import SampleBuffer, load_sample_buffer, normalize_to_wav16k_mono
from ..config import TranscribeConfig
from ..contracts import GlobalSegment, OffsetPolicy, Segment, TranscriptResult, WindowMetric
from ..errors import ConfigurationError, EngineError, FormatError, RunTimeoutError
from ..partition import BatchPartitioner, Window, samples_to_cs, window_length_samples
from .base import ASREngine

logger = logging.getLogger(__name__)

OnWindow = Callable[[int, int, List[GlobalSegment]], None]


def _next_offset(
    policy: OffsetPolicy, base_offset_cs: int, window: Window, sample_rate: int, local: List[Segment]
) -> int:
    if policy == "observed":
        if local:
            return base_offset_cs + local[-1].end_cs
        # Empty window: advance by its span on the sample clock.
        return base_offset_cs + (
            samples_to_cs(window.end_sample, sample_rate)
            - samples_to_cs(window.start_sample, sample_rate)
        )
    # Floor the absolute sample position so sub-centisecond remainders never accumulate.
    return samples_to_cs(window.end_sample, sample_rate)


class TimelineStitcher:
    """
    Drive an ASR engine over consecutive windows and re-base each window's
    local segment offsets onto the recording timeline.

    The cumulative offset advances once per window according to `policy`:
    "nominal" sets it to the window's end position on the sample clock, so
    after N windows it equals the true duration of those N windows floored
    once to centiseconds; "observed" adds the end of the last
    segment the engine returned, falling back to the window duration when the
    window produced no segments.

    Windows run strictly in order on a single engine instance. An engine
    failure aborts the run with the failing window index; no partial result
    is returned.
    """

    def __init__(
        self,
        engine: ASREngine,
        *,
        window_seconds: float = 30.0,
        sample_rate: int = 16000,
        policy: OffsetPolicy = "nominal",
        on_window: Optional[OnWindow] = None,
        run_timeout_sec: Optional[float] = None,
    ) -> None:
        if policy not in ("nominal", "observed"):
            raise ConfigurationError(f"unknown offset policy {policy!r}")
        self._engine = engine
        self._window_seconds = window_seconds
        self._sample_rate = sample_rate
        self._window_samples = window_length_samples(window_seconds, sample_rate)
        self._policy: OffsetPolicy = policy
        self._on_window = on_window
        self._run_timeout_sec = run_timeout_sec

    @property
    def window_samples(self) -> int:
        return self._window_samples

    def run(self, buffer: SampleBuffer) -> TranscriptResult:
        if buffer.sample_rate != self._sample_rate:
            raise FormatError(
                "sample_rate",
                f"buffer is {buffer.sample_rate}Hz but the engine expects {self._sample_rate}Hz",
            )

        partitioner = BatchPartitioner(buffer, self._window_samples)
        total_windows = len(partitioner)
        engine_name = self._engine.name()
        logger.info(
            "stitch_start engine=%s windows=%s window_seconds=%s policy=%s duration_sec=%.2f",
            engine_name,
            total_windows,
            self._window_seconds,
            self._policy,
            buffer.duration_sec,
        )

        segments: List[GlobalSegment] = []
        metrics: List[WindowMetric] = []
        cumulative_offset_cs = 0
        run_started = time.monotonic()

        for window in partitioner:
            elapsed = time.monotonic() - run_started
            if self._run_timeout_sec is not None and elapsed > self._run_timeout_sec:
                logger.error(
                    "stitch_timeout next_window=%s elapsed_sec=%.1f", window.index, elapsed
                )
                raise RunTimeoutError(window.index, elapsed, self._run_timeout_sec)

            window_started = time.monotonic()
            local = self._transcribe_window(window)
            new_segments = self._rebase(window, local, cumulative_offset_cs, segments)
            segments.extend(new_segments)

            next_offset_cs = _next_offset(
                self._policy, cumulative_offset_cs, window, self._sample_rate, local
            )
            processing_ms = int((time.monotonic() - window_started) * 1000)
            metrics.append(
                WindowMetric(
                    window_index=window.index,
                    start_sample=window.start_sample,
                    end_sample=window.end_sample,
                    base_offset_cs=cumulative_offset_cs,
                    next_offset_cs=next_offset_cs,
                    segments=len(new_segments),
                    processing_ms=processing_ms,
                )
            )
            logger.info(
                "window_done index=%s/%s segments=%s base_offset_cs=%s duration_ms=%s",
                window.index + 1,
                total_windows,
                len(new_segments),
                cumulative_offset_cs,
                processing_ms,
            )
            cumulative_offset_cs = next_offset_cs
            if self._on_window:
                self._on_window(window.index, total_windows, new_segments)

        return TranscriptResult(
            segments=segments,
            windows=metrics,
            meta={
                "engine": engine_name,
                "offset_policy": self._policy,
                "window_seconds": self._window_seconds,
                "window_samples": self._window_samples,
                "sample_rate": self._sample_rate,
                "duration_sec": buffer.duration_sec,
                "windows": total_windows,
                "segments": len(segments),
            },
        )

    def _transcribe_window(self, window: Window) -> List[Segment]:
        try:
            return list(self._engine.transcribe(window.samples))
        except EngineError as e:
            if e.window_index is None:
                e.window_index = window.index
            logger.error(
                "window_failed index=%s code=%s provider=%s", window.index, e.code, e.provider_name
            )
            raise
        except Exception as e:
            logger.error("window_failed index=%s code=ENGINE_UNKNOWN error=%s", window.index, e)
            raise EngineError(
                "ENGINE_UNKNOWN", str(e) or type(e).__name__, self._engine.name(), window.index
            ) from e

    def _rebase(
        self,
        window: Window,
        local: List[Segment],
        offset_cs: int,
        prior: List[GlobalSegment],
    ) -> List[GlobalSegment]:
        last_start = prior[-1].start_cs if prior else 0
        seq = len(prior)
        out: List[GlobalSegment] = []
        for seg in local:
            start_cs = seg.start_cs + offset_cs
            if start_cs < last_start:
                raise EngineError(
                    "TIMELINE_REGRESSION",
                    f"segment start {start_cs}cs precedes previous start {last_start}cs",
                    self._engine.name(),
                    window.index,
                )
            seq += 1
            out.append(
                GlobalSegment(
                    seq=seq,
                    start_cs=start_cs,
                    end_cs=seg.end_cs + offset_cs,
                    text=seg.text,
                    window_index=window.index,
                )
            )
            last_start = start_cs
        return out


def transcribe_samples(
    engine: ASREngine,
    buffer: SampleBuffer,
    *,
    window_seconds: float = 30.0,
    policy: OffsetPolicy = "nominal",
    on_window: Optional[OnWindow] = None,
    run_timeout_sec: Optional[float] = None,
) -> TranscriptResult:
    stitcher = TimelineStitcher(
        engine,
        window_seconds=window_seconds,
        sample_rate=buffer.sample_rate,
        policy=policy,
        on_window=on_window,
        run_timeout_sec=run_timeout_sec,
    )
    return stitcher.run(buffer)


def transcribe_file(
    audio_path: Path,
    cfg: TranscribeConfig,
    engine: ASREngine,
    *,
    on_window: Optional[OnWindow] = None,
) -> TranscriptResult:
    cfg.validate()
    tmp_dir = cfg.tmp_dir_path()
    wav_path = normalize_to_wav16k_mono(
        audio_path, tmp_dir=tmp_dir, prefix=audio_path.stem, sample_rate=cfg.SAMPLE_RATE
    )
    try:
        buffer = load_sample_buffer(wav_path, expected_rate=cfg.SAMPLE_RATE)
    finally:
        if wav_path.resolve() != audio_path.resolve():
            wav_path.unlink(missing_ok=True)

    stitcher = TimelineStitcher(
        engine,
        window_seconds=cfg.WINDOW_SECONDS,
        sample_rate=cfg.SAMPLE_RATE,
        policy=cfg.OFFSET_POLICY,  # type: ignore[arg-type]
        on_window=on_window,
        run_timeout_sec=cfg.RUN_TIMEOUT_SEC,
    )
    result = stitcher.run(buffer)
    result.meta["audio_path"] = str(audio_path)
    return result
