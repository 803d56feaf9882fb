from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import requests
from pydantic import ValidationError
from urllib3.exceptions import ReadTimeoutError

from longscribe.asr.models import RawChunkResult

from ..config import DEFAULT_API_BASE_URL, TranscriberConfig
from ..contracts import ApiCallOutcome, ChunkAudio, TranscriptionParams
from ..errors import ConfigurationError, JobCancelledError, PermanentAPIError, TranscriptionError, TransientAPIError
from .base import ApiCallHook, RetryHook, TranscriptionProvider

logger = logging.getLogger(__name__)

# A FLAC header alone is ~44 bytes; anything under this has no audio worth sending.
MIN_CHUNK_BYTES = 100

_INVALID_FORMAT_MARKERS = ("invalid file format", "could not process file", "could not decode")
_BODY_LOG_CHARS = 500


def _is_read_timeout(exc: requests.exceptions.ConnectionError) -> bool:
    # requests re-raises a body-download ReadTimeoutError as ConnectionError.
    causes = [*exc.args[:1], exc.__cause__, exc.__context__]
    return any(isinstance(c, ReadTimeoutError) for c in causes)


@dataclass(frozen=True)
class AttemptResult:
    outcome: ApiCallOutcome
    status_code: Optional[int] = None
    payload: Optional[dict[str, Any]] = None
    error: Optional[TranscriptionError] = None


class GroqTranscriptionClient(TranscriptionProvider):
    """Groq (OpenAI-compatible) `/audio/transcriptions` client with a bounded retry budget."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        retries: int = 3,
        retry_delay_sec: float = 60.0,
        timeout_sec: float = 300.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not api_key:
            raise ConfigurationError("GROQ_API_KEY is not set", code="MISSING_API_KEY")
        self._api_key = api_key
        self._url = base_url.rstrip("/") + "/transcriptions"
        self._retries = int(retries)
        self._retry_delay_sec = float(retry_delay_sec)
        self._timeout_sec = float(timeout_sec)
        self._session = session if session is not None else requests.Session()
        self._sleep = sleep

    @classmethod
    def from_config(cls, cfg: TranscriberConfig, **kwargs: Any) -> "GroqTranscriptionClient":
        return cls(
            cfg.GROQ_API_KEY,
            base_url=cfg.GROQ_API_BASE_URL,
            retries=cfg.ASR_RETRIES,
            retry_delay_sec=cfg.ASR_RETRY_DELAY_SEC,
            timeout_sec=cfg.ASR_API_TIMEOUT_SEC,
            **kwargs,
        )

    def name(self) -> str:
        return "groq"

    def _form_fields(self, params: TranscriptionParams) -> list[tuple[str, str]]:
        fields = [
            ("model", params.model),
            ("language", params.language),
            ("response_format", params.response_format),
            ("temperature", str(float(params.temperature))),
        ]
        for granularity in params.timestamp_granularities:
            fields.append(("timestamp_granularities[]", granularity))
        if params.prompt:
            fields.append(("prompt", params.prompt))
        return fields

    def _attempt(self, path: Path, params: TranscriptionParams, chunk_index: int) -> AttemptResult:
        try:
            with open(path, "rb") as fh:
                resp = self._session.post(
                    self._url,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    data=self._form_fields(params),
                    files={"file": (path.name, fh, "audio/flac")},
                    timeout=self._timeout_sec,
                )
        except requests.exceptions.Timeout as e:
            return AttemptResult(
                outcome="transient",
                error=TransientAPIError("API_TIMEOUT", f"request timed out: {e}", chunk_index=chunk_index),
            )
        except requests.exceptions.RequestException as e:
            if isinstance(e, requests.exceptions.ConnectionError) and _is_read_timeout(e):
                return AttemptResult(
                    outcome="transient",
                    error=TransientAPIError("API_TIMEOUT", f"response read timed out: {e}", chunk_index=chunk_index),
                )
            return AttemptResult(
                outcome="permanent",
                error=PermanentAPIError("API_REQUEST_FAILED", f"request failed: {e}", chunk_index=chunk_index),
            )

        status = int(resp.status_code)
        body = resp.text or ""
        if 200 <= status < 300:
            try:
                payload = resp.json()
            except ValueError:
                return AttemptResult(
                    outcome="permanent",
                    status_code=status,
                    error=PermanentAPIError(
                        "MALFORMED_RESPONSE",
                        "response body is not JSON",
                        chunk_index=chunk_index,
                        status_code=status,
                        body=body[:_BODY_LOG_CHARS],
                    ),
                )
            return AttemptResult(outcome="success", status_code=status, payload=payload)

        if status == 429:
            return AttemptResult(
                outcome="transient",
                status_code=status,
                error=TransientAPIError(
                    "RATE_LIMITED", "rate limit hit", chunk_index=chunk_index, status_code=status, body=body
                ),
            )
        if status == 400 and any(marker in body.lower() for marker in _INVALID_FORMAT_MARKERS):
            return AttemptResult(
                outcome="permanent",
                status_code=status,
                error=PermanentAPIError(
                    "INVALID_AUDIO_FORMAT",
                    f"API could not process the audio for chunk {chunk_index}",
                    chunk_index=chunk_index,
                    status_code=status,
                    body=body,
                ),
            )
        return AttemptResult(
            outcome="permanent",
            status_code=status,
            error=PermanentAPIError(
                "API_ERROR",
                f"API error {status} for chunk {chunk_index}: {body[:_BODY_LOG_CHARS]}",
                chunk_index=chunk_index,
                status_code=status,
                body=body,
            ),
        )

    def _wait(self, delay_sec: float, cancel_event: Optional[threading.Event]) -> bool:
        """Back off for `delay_sec`; True when the job was cancelled meanwhile."""
        if cancel_event is not None:
            return cancel_event.wait(delay_sec)
        self._sleep(delay_sec)
        return False

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
        size = chunk.size_bytes()
        if chunk.path is None or size < MIN_CHUNK_BYTES:
            logger.warning(
                "chunk=%s is empty or too small (%s bytes); skipping API call",
                chunk_index,
                size,
            )
            return RawChunkResult.empty()

        retries_left = self._retries
        attempt = 0
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise JobCancelledError(chunk_index)
            attempt += 1
            started = time.monotonic()
            result = self._attempt(chunk.path, params, chunk_index)
            elapsed_ms = int((time.monotonic() - started) * 1000)
            if on_api_call is not None:
                on_api_call(attempt, elapsed_ms, result.outcome, result.status_code)

            if result.outcome == "success":
                try:
                    return RawChunkResult.from_payload(result.payload or {})
                except ValidationError as e:
                    raise PermanentAPIError(
                        "MALFORMED_RESPONSE",
                        f"response does not match the transcription schema: {e.error_count()} errors",
                        chunk_index=chunk_index,
                        status_code=result.status_code,
                        attempts=attempt,
                    ) from e

            error = result.error or PermanentAPIError(
                "API_ERROR",
                f"unclassified API failure for chunk {chunk_index}",
                chunk_index=chunk_index,
                status_code=result.status_code,
            )
            error.attempts = attempt
            if result.outcome == "transient":
                if retries_left > 0:
                    retries_left -= 1
                    if on_retry is not None:
                        on_retry(retries_left, self._retry_delay_sec, error.message)
                    if self._wait(self._retry_delay_sec, cancel_event):
                        raise JobCancelledError(chunk_index)
                    continue
                raise PermanentAPIError(
                    "RETRIES_EXHAUSTED",
                    f"{error.message} for chunk {chunk_index}; no retries left after {attempt} attempts",
                    chunk_index=chunk_index,
                    status_code=error.status_code,
                    body=error.body,
                    attempts=attempt,
                ) from error
            raise error
