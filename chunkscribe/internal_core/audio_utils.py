from __future__ import annotations

import shutil
import subprocess
import uuid
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np

from .errors import FormatError, TranscriptionError

TARGET_SAMPLE_RATE = 16000
_PCM16_SAMPWIDTH = 2


def _which(cmd: str) -> Optional[str]:
    return shutil.which(cmd)


@dataclass(frozen=True)
class SampleBuffer:
    """Normalized mono float32 samples in [-1, 1) plus their sample rate."""

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise FormatError("sample_rate", f"sample rate must be > 0, got {self.sample_rate}")
        if self.samples.ndim != 1:
            raise FormatError("channels", f"expected a flat mono buffer, got shape {self.samples.shape}")
        # Freeze a view; the caller's array stays writable.
        view = self.samples.view()
        view.setflags(write=False)
        object.__setattr__(self, "samples", view)

    def __len__(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration_sec(self) -> float:
        return len(self) / float(self.sample_rate)


def normalize_to_wav16k_mono(
    input_path: Path,
    tmp_dir: Path,
    prefix: str,
    *,
    sample_rate: int = TARGET_SAMPLE_RATE,
) -> Path:
    """
    Normalize any supported media file to mono 16-bit PCM WAV at `sample_rate`.
    Prefers ffmpeg when present; falls back to `miniaudio` decode/convert.
    """
    if not input_path.exists():
        raise FileNotFoundError(f"Audio file not found: {input_path}")

    tmp_dir.mkdir(parents=True, exist_ok=True)

    if input_path.suffix.lower() == ".wav":
        try:
            with wave.open(str(input_path), "rb") as wf:
                if (
                    wf.getframerate() == sample_rate
                    and wf.getnchannels() == 1
                    and wf.getsampwidth() == _PCM16_SAMPWIDTH
                ):
                    return input_path
        except (wave.Error, EOFError):
            pass

    out_path = tmp_dir / f"{prefix}_norm_{uuid.uuid4().hex}.wav"

    ffmpeg = _which("ffmpeg")
    if ffmpeg:
        cmd = [
            ffmpeg,
            "-y",
            "-i",
            str(input_path),
            "-acodec",
            "pcm_s16le",
            "-ac",
            "1",
            "-ar",
            str(sample_rate),
            str(out_path),
        ]
        try:
            subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
            return out_path
        except subprocess.CalledProcessError as e:
            stderr = (
                e.stderr.decode("utf-8", "ignore")
                if isinstance(e.stderr, (bytes, bytearray))
                else str(e.stderr)
            )
            raise TranscriptionError(
                "AUDIO_CONVERSION_FAILED",
                f"Audio conversion failed via ffmpeg: {stderr.strip() or 'unknown error'}",
            ) from e

    try:
        import miniaudio  # type: ignore
    except ImportError as e:
        raise TranscriptionError(
            "AUDIO_DECODER_MISSING",
            "Audio conversion requires `ffmpeg` or the Python dependency `miniaudio`.",
        ) from e

    try:
        decoded = miniaudio.decode_file(
            str(input_path),
            output_format=miniaudio.SampleFormat.SIGNED16,
            nchannels=1,
            sample_rate=sample_rate,
        )
    except miniaudio.DecodeError as e:
        raise TranscriptionError("AUDIO_CONVERSION_FAILED", f"Audio conversion failed: {e}") from e

    with wave.open(str(out_path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(_PCM16_SAMPWIDTH)
        wf.setframerate(sample_rate)
        wf.writeframes(decoded.samples.tobytes())
    return out_path


def pcm16_to_float32(audio_i16: np.ndarray) -> np.ndarray:
    return (audio_i16.astype(np.float32) / 32768.0).clip(-1.0, 1.0)


def sample_buffer_from_pcm16(
    audio: np.ndarray, sample_rate: int, *, expected_rate: int = TARGET_SAMPLE_RATE
) -> SampleBuffer:
    audio = np.asarray(audio)
    if audio.ndim == 2 and audio.shape[1] == 1:
        audio = audio[:, 0]
    if audio.ndim != 1:
        raise FormatError("channels", f"Expected mono audio, got array shape {audio.shape}")
    if sample_rate != expected_rate:
        raise FormatError("sample_rate", f"Expected {expected_rate}Hz audio, got {sample_rate}Hz")
    if not np.issubdtype(audio.dtype, np.integer):
        raise FormatError("sample_format", f"Expected integer samples, got dtype {audio.dtype}")
    if audio.dtype.itemsize != _PCM16_SAMPWIDTH:
        raise FormatError(
            "bit_depth", f"Expected 16 bits per sample, got {audio.dtype.itemsize * 8}"
        )
    return SampleBuffer(samples=pcm16_to_float32(audio), sample_rate=sample_rate)


def load_sample_buffer(path: Path, expected_rate: int = TARGET_SAMPLE_RATE) -> SampleBuffer:
    try:
        with wave.open(str(path), "rb") as wf:
            channels = wf.getnchannels()
            rate = wf.getframerate()
            width = wf.getsampwidth()
            frames = wf.getnframes()
            if channels != 1:
                raise FormatError("channels", f"Expected mono WAV, got {channels} channels")
            if rate != expected_rate:
                raise FormatError("sample_rate", f"Expected {expected_rate}Hz WAV, got {rate}Hz")
            if width != _PCM16_SAMPWIDTH:
                raise FormatError("bit_depth", f"Expected 16-bit PCM WAV, got {width * 8} bits")
            raw = wf.readframes(frames)
    except wave.Error as e:
        # The wave module only reads integer PCM; anything else is "unknown format".
        if "unknown format" in str(e):
            raise FormatError("sample_format", f"Expected integer PCM samples: {e}") from e
        raise FormatError("container", f"Not a readable WAV file: {e}") from e
    except EOFError as e:
        raise FormatError("container", f"Truncated WAV file: {path}") from e

    audio_i16 = np.frombuffer(raw, dtype="<i2")
    return SampleBuffer(samples=pcm16_to_float32(audio_i16), sample_rate=rate)


def write_wav_mono_float32(path: Path, audio: np.ndarray, sample_rate: int = TARGET_SAMPLE_RATE) -> None:
    audio = np.asarray(audio, dtype=np.float32).clip(-1.0, 1.0)
    audio_i16 = (audio * 32767.0).round().astype("<i2")
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(_PCM16_SAMPWIDTH)
        wf.setframerate(sample_rate)
        wf.writeframes(audio_i16.tobytes())
