from __future__ import annotations

from .base import TranscriptionProvider
from .controller import TranscriptionJobReport, transcribe_job, transcribe_job_with_report, transcribe_windows
from .groq_client import MIN_CHUNK_BYTES, GroqTranscriptionClient
from .mock import MockTranscriptionProvider

__all__ = [
    "GroqTranscriptionClient",
    "MIN_CHUNK_BYTES",
    "MockTranscriptionProvider",
    "TranscriptionJobReport",
    "TranscriptionProvider",
    "transcribe_job",
    "transcribe_job_with_report",
    "transcribe_windows",
]
