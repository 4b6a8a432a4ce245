from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

import numpy as np

from .audio_utils import SampleBuffer
from .errors import ConfigurationError


def window_length_samples(window_seconds: float, sample_rate: int) -> int:
    if sample_rate <= 0:
        raise ConfigurationError(f"sample rate must be > 0, got {sample_rate}")
    if window_seconds <= 0:
        raise ConfigurationError(f"window duration must be > 0 seconds, got {window_seconds}")
    length = int(round(window_seconds * sample_rate))
    if length <= 0:
        raise ConfigurationError(
            f"window of {window_seconds}s at {sample_rate}Hz holds no samples"
        )
    return length


def samples_to_cs(num_samples: int, sample_rate: int) -> int:
    return num_samples * 100 // sample_rate


@dataclass(frozen=True)
class Window:
    index: int
    start_sample: int
    end_sample: int
    samples: np.ndarray

    @property
    def num_samples(self) -> int:
        return self.end_sample - self.start_sample

    def duration_cs(self, sample_rate: int) -> int:
        return samples_to_cs(self.num_samples, sample_rate)


class BatchPartitioner:
    """
    Split a sample buffer into contiguous, non-overlapping windows of
    `window_samples`; the final window may be shorter. Iterating again
    starts over from the first window.
    """

    def __init__(self, buffer: SampleBuffer, window_samples: int) -> None:
        if window_samples <= 0:
            raise ConfigurationError(f"window length must be > 0 samples, got {window_samples}")
        self._buffer = buffer
        self._window_samples = int(window_samples)

    @property
    def window_samples(self) -> int:
        return self._window_samples

    def __len__(self) -> int:
        return -(-len(self._buffer) // self._window_samples)

    def __iter__(self) -> Iterator[Window]:
        total = len(self._buffer)
        samples = self._buffer.samples
        for index, start in enumerate(range(0, total, self._window_samples)):
            end = min(total, start + self._window_samples)
            yield Window(index=index, start_sample=start, end_sample=end, samples=samples[start:end])
