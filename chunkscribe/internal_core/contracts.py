from __future__ import annotations

from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# All offsets are integer centiseconds.
OffsetPolicy = Literal["nominal", "observed"]
TimeUnit = Literal["srt", "cs", "ms"]


class Segment(BaseModel):
    """One engine-recognized span, timed relative to the start of its window."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    start_cs: int = Field(ge=0)
    end_cs: int = Field(ge=0)
    text: str

    @model_validator(mode="after")
    def _validate_window(self) -> "Segment":
        if self.end_cs < self.start_cs:
            raise ValueError("Segment.end_cs must be >= Segment.start_cs")
        return self


class GlobalSegment(BaseModel):
    """A segment re-based onto the recording's absolute timeline."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    seq: int = Field(ge=1)
    start_cs: int = Field(ge=0)
    end_cs: int = Field(ge=0)
    text: str
    window_index: int = Field(ge=0)

    @model_validator(mode="after")
    def _validate_window(self) -> "GlobalSegment":
        if self.end_cs < self.start_cs:
            raise ValueError("GlobalSegment.end_cs must be >= GlobalSegment.start_cs")
        return self


class WindowMetric(BaseModel):
    model_config = ConfigDict(extra="forbid")

    window_index: int
    start_sample: int
    end_sample: int
    base_offset_cs: int
    next_offset_cs: int
    segments: int
    processing_ms: int


class TranscriptResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    segments: List[GlobalSegment] = Field(default_factory=list)
    windows: List[WindowMetric] = Field(default_factory=list)
    meta: Dict[str, Any] = Field(default_factory=dict)
