from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from chunkscribe.utils.model_paths import ModelDownloadError, download_ggml_model


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Download a whisper.cpp ggml model")
    parser.add_argument("model", help="Model name, e.g. tiny, base.en, large-v3-turbo, small.en-tdrz")
    parser.add_argument(
        "--models-dir",
        default="models",
        help="Directory to store the model in (default: ./models)",
    )
    parser.add_argument("--source", default=None, help="Override the download base URL")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    try:
        path = download_ggml_model(args.model, Path(args.models_dir).expanduser(), source=args.source)
    except (ModelDownloadError, OSError) as e:
        print(f"Failed to download model: {e}", file=sys.stderr)
        return 1
    print(f"Model written to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
