from __future__ import annotations

import threading
import time
from typing import Mapping, Optional, Union

from longscribe.asr.models import RawChunkResult, Segment, Word

from ..contracts import ChunkAudio, TranscriptionParams
from ..errors import JobCancelledError
from .base import ApiCallHook, RetryHook, TranscriptionProvider

ScriptedResponse = Union[RawChunkResult, Exception]


class MockTranscriptionProvider(TranscriptionProvider):
    """
    Offline provider. Returns scripted results per chunk index, or a one-segment
    placeholder transcript spanning the chunk when nothing is scripted.
    """

    def __init__(
        self,
        responses: Optional[Mapping[int, ScriptedResponse]] = None,
        *,
        delay_sec: float = 0.0,
    ) -> None:
        self._responses = dict(responses or {})
        self._delay_sec = float(delay_sec)
        self._lock = threading.Lock()
        self.calls: list[int] = []

    def name(self) -> str:
        return "mock"

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
        with self._lock:
            self.calls.append(chunk_index)
        scripted = self._responses.get(chunk_index)
        if isinstance(scripted, Exception):
            if on_api_call is not None:
                on_api_call(1, 0, "permanent", None)
            raise scripted

        if self._delay_sec > 0:
            if cancel_event is not None:
                if cancel_event.wait(self._delay_sec):
                    raise JobCancelledError(chunk_index)
            else:
                time.sleep(self._delay_sec)
        if on_api_call is not None:
            on_api_call(1, 0, "success", 200)
        if scripted is not None:
            return scripted

        text = f"(mock) simulated transcript for chunk {chunk_index}."
        end = max(0.0, chunk.duration_ms / 1000.0)
        words = []
        tokens = text.split()
        step = end / len(tokens) if tokens else 0.0
        for i, token in enumerate(tokens):
            words.append(Word(start=round(i * step, 3), end=round((i + 1) * step, 3), word=token))
        return RawChunkResult(text=text, segments=[Segment(start=0.0, end=end, text=text)], words=words)
