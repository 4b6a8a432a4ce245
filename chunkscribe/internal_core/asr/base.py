from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, List, Optional

import numpy as np

from ..contracts import Segment
from ..errors import EngineError

ProgressCallback = Callable[[float], None]

__all__ = ["ASREngine", "EngineError", "ProgressCallback"]


class ASREngine(ABC):
    """
    Fixed-window speech recognizer. `transcribe` receives one non-empty window
    of float32 samples at the engine's rate and returns its segments in
    non-decreasing local start order, offsets in centiseconds from the window
    start. Failures raise `EngineError`. Instances are not safe for
    concurrent use.
    """

    @abstractmethod
    def transcribe(
        self, window_samples: np.ndarray, on_progress: Optional[ProgressCallback] = None
    ) -> List[Segment]: ...

    @abstractmethod
    def name(self) -> str: ...
