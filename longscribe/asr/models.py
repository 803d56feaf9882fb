from __future__ import annotations

"""
Typed transcript contracts shared by the client, merger and result sinks.

Design intent:
- Validate provider payloads once, at the client boundary.
- Keep provider metadata (avg_logprob, no_speech_prob, seek, ...) on segments without enumerating it.
- Expose one merged artifact with absolute timestamps in seconds.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Word(BaseModel):
    model_config = ConfigDict(extra="allow")

    start: float = Field(ge=0.0)
    end: float = Field(ge=0.0)
    word: str

    @model_validator(mode="after")
    def _validate_window(self) -> "Word":
        if self.end < self.start:
            raise ValueError("Word.end must be >= Word.start")
        return self


class Segment(BaseModel):
    model_config = ConfigDict(extra="allow")

    start: float = Field(ge=0.0)
    end: float = Field(ge=0.0)
    text: str = ""
    avg_logprob: float | None = None
    no_speech_prob: float | None = None
    words: list[Word] | None = None

    @model_validator(mode="after")
    def _validate_window(self) -> "Segment":
        if self.end < self.start:
            raise ValueError("Segment.end must be >= Segment.start")
        return self


class RawChunkResult(BaseModel):
    """One chunk's transcription with timestamps relative to the chunk start."""

    model_config = ConfigDict(extra="ignore")

    text: str = ""
    segments: list[Segment] = Field(default_factory=list)
    words: list[Word] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "RawChunkResult":
        return cls()

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RawChunkResult":
        # verbose_json omits or nulls the lists when the chunk has no speech
        return cls.model_validate(
            {
                "text": payload.get("text") or "",
                "segments": payload.get("segments") or [],
                "words": payload.get("words") or [],
            }
        )


class MergedTranscript(BaseModel):
    text: str = ""
    segments: list[Segment] = Field(default_factory=list)
    words: list[Word] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "MergedTranscript":
        return cls()

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
