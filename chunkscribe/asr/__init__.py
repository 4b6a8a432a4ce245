"""
Transcript presentation boundary.

Design intent:
- Render stitched segments into raw, timestamped and SRT views.
- Keep engine construction out of CLI and API handlers.
"""
