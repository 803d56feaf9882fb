from __future__ import annotations

from typing import Optional

from .contracts import JobStage


class TranscriptionJobError(RuntimeError):
    """Base error for a transcription job; names the stage and chunk that failed."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        stage: Optional[JobStage] = None,
        chunk_index: Optional[int] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.stage = stage
        self.chunk_index = chunk_index

    def __str__(self) -> str:
        where = []
        if self.stage:
            where.append(f"stage={self.stage}")
        if self.chunk_index is not None:
            where.append(f"chunk={self.chunk_index}")
        if not where:
            return f"[{self.code}] {self.message}"
        return f"[{self.code}] {self.message} ({' '.join(where)})"


class ConfigurationError(TranscriptionJobError):
    def __init__(self, message: str, *, code: str = "INVALID_CONFIG"):
        super().__init__(code, message, stage="configuring")


class AudioToolError(TranscriptionJobError):
    """ffmpeg/ffprobe missing or exiting non-zero."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        stderr: str = "",
        stage: Optional[JobStage] = None,
        chunk_index: Optional[int] = None,
    ):
        super().__init__(code, message, stage=stage, chunk_index=chunk_index)
        self.stderr = stderr


class ExtractionError(AudioToolError):
    def __init__(self, message: str, *, stderr: str = "", chunk_index: Optional[int] = None):
        super().__init__(
            "CHUNK_EXTRACTION_FAILED",
            message,
            stderr=stderr,
            stage="transcribing",
            chunk_index=chunk_index,
        )


class TranscriptionError(TranscriptionJobError):
    """Remote API failure for one chunk."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        chunk_index: Optional[int] = None,
        status_code: Optional[int] = None,
        body: str = "",
        attempts: int = 0,
    ):
        super().__init__(code, message, stage="transcribing", chunk_index=chunk_index)
        self.status_code = status_code
        self.body = body
        self.attempts = attempts


class TransientAPIError(TranscriptionError):
    """Rate limit or timeout; retried while the budget lasts."""


class PermanentAPIError(TranscriptionError):
    """Bad request, malformed audio, exhausted retries or unclassified failure."""


class UnexpectedError(TranscriptionJobError):
    def __init__(self, message: str, *, stage: Optional[JobStage] = None, chunk_index: Optional[int] = None):
        super().__init__("UNEXPECTED", message, stage=stage, chunk_index=chunk_index)


class ResultSaveError(TranscriptionJobError):
    def __init__(self, message: str):
        super().__init__("RESULT_SAVE_FAILED", message, stage="saving")


class JobCancelledError(TranscriptionJobError):
    """Raised inside a worker that observed the job's cancel signal."""

    def __init__(self, chunk_index: Optional[int] = None):
        super().__init__("CANCELLED", "job cancelled", stage="transcribing", chunk_index=chunk_index)
