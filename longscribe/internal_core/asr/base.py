from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from longscribe.asr.models import RawChunkResult

from ..contracts import ApiCallOutcome, ChunkAudio, TranscriptionParams

# (attempt, elapsed_ms, outcome, status_code)
ApiCallHook = Callable[[int, int, ApiCallOutcome, Optional[int]], None]
# (retries_left, delay_sec, reason)
RetryHook = Callable[[int, float, str], None]


class TranscriptionProvider(ABC):
    @abstractmethod
    def transcribe(
        self,
        chunk: ChunkAudio,
        params: TranscriptionParams,
        *,
        chunk_index: int,
        cancel_event: Optional[threading.Event] = None,
        on_api_call: Optional[ApiCallHook] = None,
        on_retry: Optional[RetryHook] = None,
    ) -> RawChunkResult:
        """Return the chunk's transcription with chunk-relative timestamps.

        Raises PermanentAPIError when the chunk cannot be transcribed and
        JobCancelledError when `cancel_event` is set at a wait point.
        """

    @abstractmethod
    def name(self) -> str:
        pass
