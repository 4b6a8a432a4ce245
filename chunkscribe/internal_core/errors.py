from __future__ import annotations

from typing import Optional


class TranscriptionError(RuntimeError):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class FormatError(TranscriptionError):
    """Input audio violates the mono / 16-bit / integer PCM / rate contract."""

    def __init__(self, prop: str, message: str):
        super().__init__(f"FORMAT_{prop.upper()}", message)
        self.prop = prop


class ConfigurationError(TranscriptionError):
    def __init__(self, message: str, code: str = "CONFIG_INVALID"):
        super().__init__(code, message)


class EngineError(TranscriptionError):
    def __init__(
        self,
        code: str,
        message: str,
        provider_name: str,
        window_index: Optional[int] = None,
    ):
        super().__init__(code, message)
        self.provider_name = provider_name
        self.window_index = window_index

    def __str__(self) -> str:
        if self.window_index is None:
            return f"{self.code}: {self.message}"
        return f"window {self.window_index}: {self.code}: {self.message}"


class IoError(TranscriptionError):
    def __init__(self, path: str, message: str):
        super().__init__("OUTPUT_WRITE_FAILED", message)
        self.path = path


class RunTimeoutError(TranscriptionError):
    def __init__(self, next_window_index: int, elapsed_sec: float, limit_sec: float):
        super().__init__(
            "RUN_TIMEOUT",
            f"run exceeded {limit_sec:.1f}s ({elapsed_sec:.1f}s elapsed) "
            f"before window {next_window_index}",
        )
        self.window_index = next_window_index
        self.elapsed_sec = elapsed_sec
        self.limit_sec = limit_sec
