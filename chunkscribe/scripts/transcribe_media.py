from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from tqdm import tqdm

from chunkscribe.asr.engine_factory import build_engine
from chunkscribe.asr.outputs import write_outputs
from chunkscribe.internal_core import TranscribeConfig, TranscriptionError, load_config
from chunkscribe.internal_core.asr import transcribe_file

logger = logging.getLogger("chunkscribe.cli")


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Transcribe a media file in fixed windows and write raw, timestamped and SRT transcripts."
    )
    parser.add_argument("audio_path", help="Path to the audio containing file")
    parser.add_argument("model_path", nargs="?", default=None, help="Path to the ggml model")
    parser.add_argument("--fa", action="store_true", help="Use flash attention")
    parser.add_argument("--engine", choices=["whisper_cpp", "mock"], default=None)
    parser.add_argument("--window-seconds", type=float, default=None)
    parser.add_argument("--offset-policy", choices=["nominal", "observed"], default=None)
    parser.add_argument("--time-unit", choices=["srt", "cs", "ms"], default=None)
    parser.add_argument("--output-dir", default=None, help="Directory for transcript files (default: cwd)")
    parser.add_argument("--language", default=None)
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    return parser.parse_args(argv)


def _apply_overrides(cfg: TranscribeConfig, args: argparse.Namespace) -> TranscribeConfig:
    overrides = {
        "WHISPER_CPP_MODEL": args.model_path,
        "ENGINE": args.engine,
        "WINDOW_SECONDS": args.window_seconds,
        "OFFSET_POLICY": args.offset_policy,
        "TIME_UNIT": args.time_unit,
        "OUTPUT_DIR": args.output_dir,
        "LANGUAGE": args.language,
    }
    changes = {k: v for k, v in overrides.items() if v is not None}
    if args.fa:
        changes["FLASH_ATTN"] = True
    return dataclasses.replace(cfg, **changes).validate()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    try:
        cfg = _apply_overrides(load_config(), args)
    except TranscriptionError as e:
        print(f"Invalid configuration: {e.message}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=getattr(logging, cfg.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    audio_path = Path(args.audio_path)
    if not audio_path.exists():
        print(f"Error: Audio file does not exist at {audio_path}", file=sys.stderr)
        return 1
    if cfg.ENGINE == "whisper_cpp" and not Path(cfg.WHISPER_CPP_MODEL).exists():
        print(f"Model not found at {cfg.WHISPER_CPP_MODEL}", file=sys.stderr)
        return 1

    bar = None

    def _on_window(index: int, total: int, new_segments: list) -> None:
        nonlocal bar
        if args.no_progress:
            return
        if bar is None:
            bar = tqdm(total=total, unit="window")
        bar.update(1)

    try:
        result = transcribe_file(audio_path, cfg, build_engine(cfg), on_window=_on_window)
    except TranscriptionError as e:
        print(f"Transcription failed: {e}", file=sys.stderr)
        return 1
    finally:
        if bar is not None:
            bar.close()

    try:
        paths = write_outputs(result.segments, audio_path, cfg.output_dir_path(), cfg.TIME_UNIT)  # type: ignore[arg-type]
    except TranscriptionError as e:
        print(f"Failed to write transcript: {e}", file=sys.stderr)
        return 1

    print(f"Raw output written to {paths.raw}.")
    print(f"Timestamped output written to {paths.timestamped} and {paths.srt}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
