from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

JobStage = Literal[
    "configuring",
    "preprocessing",
    "planning",
    "transcribing",
    "merging",
    "saving",
    "done",
    "failed",
]

AuditEventType = Literal[
    "JOB_STARTED",
    "STAGE_ENTERED",
    "CHUNK_STARTED",
    "CHUNK_DONE",
    "API_CALL",
    "API_RETRY",
    "JOB_DONE",
    "JOB_FAILED",
]

ApiCallOutcome = Literal["success", "transient", "permanent"]

ChunkStatus = Literal["TRANSCRIBED", "SKIP_EMPTY"]


class ChunkWindow(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    index: int = Field(ge=0)
    start_ms: int = Field(ge=0)
    end_ms: int = Field(ge=0)

    @model_validator(mode="after")
    def _validate_window(self) -> "ChunkWindow":
        if self.end_ms <= self.start_ms:
            raise ValueError("ChunkWindow.end_ms must be > ChunkWindow.start_ms")
        return self

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    @property
    def start_sec(self) -> float:
        return self.start_ms / 1000.0


class AudioHandle(BaseModel):
    """Canonical 16kHz mono FLAC asset produced for one job."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: Path
    duration_ms: int = Field(ge=0)


class ChunkAudio(BaseModel):
    """Extracted audio for one window. `path` is None for the empty placeholder."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    index: int = Field(ge=0)
    path: Optional[Path] = None
    start_ms: int = Field(ge=0)
    duration_ms: int

    @property
    def is_empty(self) -> bool:
        return self.path is None

    def size_bytes(self) -> int:
        if self.path is None or not self.path.exists():
            return 0
        return self.path.stat().st_size


class TranscriptionParams(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    model: str
    language: str = "en"
    response_format: str = "verbose_json"
    timestamp_granularities: List[str] = Field(default_factory=lambda: ["segment", "word"])
    temperature: float = 0.0
    prompt: Optional[str] = None


class ChunkTiming(BaseModel):
    model_config = ConfigDict(extra="forbid")

    chunk_index: int
    start_ms: int
    end_ms: int
    status: ChunkStatus
    attempts: int = 0
    api_sec: float = 0.0


class AuditEvent(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ts_iso: str
    job_id: str
    type: AuditEventType
    code: str
    detail: str
    chunk_index: Optional[int] = None
    duration_ms: Optional[int] = None
