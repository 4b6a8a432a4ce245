"""
API boundary for chunkscribe.

Design intent:
- Expose a thin, typed transcription endpoint.
- Map transcription errors onto predictable HTTP status codes.
"""
