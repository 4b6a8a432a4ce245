from __future__ import annotations

"""
Render globally-timed segments into transcript text views.

Design intent:
- Every view is a pure function of the same segment sequence.
- Offsets are integer centiseconds; each display unit has exactly one
  conversion from that source.
"""

import re
from dataclasses import dataclass
from typing import Sequence

from chunkscribe.internal_core.contracts import GlobalSegment, TimeUnit

_SRT_TIME_RE = re.compile(r"^(\d{2,}):([0-5]\d):([0-5]\d),(\d{3})$")


def cs_to_ms(cs: int) -> int:
    return cs * 10


def cs_to_srt_time(cs: int) -> str:
    if cs < 0:
        raise ValueError(f"negative time offset: {cs}")
    seconds, rem_cs = divmod(cs, 100)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{rem_cs * 10:03d}"


def srt_time_to_cs(value: str) -> int:
    match = _SRT_TIME_RE.match(value.strip())
    if not match:
        raise ValueError(f"not an HH:MM:SS,mmm timestamp: {value!r}")
    hours, minutes, seconds, millis = (int(g) for g in match.groups())
    total_ms = ((hours * 60 + minutes) * 60 + seconds) * 1000 + millis
    return (total_ms + 5) // 10


def format_time(cs: int, unit: TimeUnit) -> str:
    if unit == "srt":
        return cs_to_srt_time(cs)
    if unit == "ms":
        return str(cs_to_ms(cs))
    if unit == "cs":
        return str(cs)
    raise ValueError(f"unknown time unit: {unit!r}")


def _clean_text(text: str) -> str:
    return " ".join(text.split())


def format_raw(segments: Sequence[GlobalSegment]) -> str:
    return " ".join(t for t in (_clean_text(s.text) for s in segments) if t)


def format_timestamped(segments: Sequence[GlobalSegment], unit: TimeUnit = "srt") -> str:
    lines = [
        f"[{format_time(s.start_cs, unit)} - {format_time(s.end_cs, unit)}]: {_clean_text(s.text)}"
        for s in segments
    ]
    return "".join(f"{line}\n" for line in lines)


def format_srt(segments: Sequence[GlobalSegment]) -> str:
    # A blank text line would end the block early, so empty cues are dropped
    # and the remaining ones numbered consecutively.
    spoken = [(s, t) for s, t in ((s, _clean_text(s.text)) for s in segments) if t]
    blocks = [
        f"{index}\n{cs_to_srt_time(s.start_cs)} --> {cs_to_srt_time(s.end_cs)}\n{text}\n"
        for index, (s, text) in enumerate(spoken, start=1)
    ]
    return "\n".join(blocks)


@dataclass(frozen=True)
class RenderedTranscript:
    raw: str
    timestamped: str
    srt: str


def render_all(segments: Sequence[GlobalSegment], unit: TimeUnit = "srt") -> RenderedTranscript:
    return RenderedTranscript(
        raw=format_raw(segments),
        timestamped=format_timestamped(segments, unit),
        srt=format_srt(segments),
    )
