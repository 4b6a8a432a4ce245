from __future__ import annotations

from .base import ASREngine, EngineError
from .mock import MockASREngine
from .stitcher import TimelineStitcher, transcribe_file, transcribe_samples
from .whisper_cpp import WhisperCppEngine, parse_whisper_json, whisper_cpp_available

__all__ = [
    "ASREngine",
    "EngineError",
    "MockASREngine",
    "TimelineStitcher",
    "WhisperCppEngine",
    "parse_whisper_json",
    "transcribe_file",
    "transcribe_samples",
    "whisper_cpp_available",
]
