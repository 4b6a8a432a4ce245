from .config import TranscribeConfig, load_config
from .errors import (
    ConfigurationError,
    EngineError,
    FormatError,
    IoError,
    RunTimeoutError,
    TranscriptionError,
)

__all__ = [
    "TranscribeConfig",
    "load_config",
    "ConfigurationError",
    "EngineError",
    "FormatError",
    "IoError",
    "RunTimeoutError",
    "TranscriptionError",
]
