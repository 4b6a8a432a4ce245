"""
chunkscribe package.

Design intent:
- Transcribe long recordings by running a fixed-window ASR engine window by window.
- Keep the stitched timeline monotonic across every window boundary.
"""
