from __future__ import annotations

from typing import List, Optional

import numpy as np

from ..audio_utils import TARGET_SAMPLE_RATE
from ..contracts import Segment
from .base import ASREngine, ProgressCallback


class MockASREngine(ASREngine):
    """Stateless: the same window always yields the same segment, across runs."""

    def __init__(self, sample_rate: int = TARGET_SAMPLE_RATE) -> None:
        self._sample_rate = sample_rate

    def transcribe(
        self, window_samples: np.ndarray, on_progress: Optional[ProgressCallback] = None
    ) -> List[Segment]:
        duration_cs = len(window_samples) * 100 // self._sample_rate
        if on_progress:
            on_progress(1.0)
        return [
            Segment(
                start_cs=0,
                end_cs=duration_cs,
                text=f"(mock) simulated transcript for {len(window_samples)} samples.",
            )
        ]

    def name(self) -> str:
        return "mock"
