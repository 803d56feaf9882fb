from __future__ import annotations

import datetime as _dt
import logging
import threading
from typing import Iterable, List, Optional

from .contracts import ApiCallOutcome, AuditEvent, AuditEventType, ChunkTiming, ChunkWindow, JobStage
from .errors import TranscriptionJobError

logger = logging.getLogger(__name__)


def _ts_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat()


def _sanitize_detail(detail: str) -> str:
    # Keep audit detail to short metadata; never transcript text or audio bytes.
    detail = (detail or "").replace("\n", " ").strip()
    if len(detail) > 200:
        detail = detail[:200] + "..."
    return detail


class JobObserver:
    """
    Receives one callback per job stage transition.
    Callbacks may arrive from worker threads; implementations must be thread-safe.
    The base class ignores everything.
    """

    def on_job_started(self, job_id: str, audio_path: str) -> None:
        pass

    def on_stage(self, job_id: str, stage: JobStage) -> None:
        pass

    def on_chunk_started(self, job_id: str, window: ChunkWindow) -> None:
        pass

    def on_api_call(
        self,
        job_id: str,
        chunk_index: int,
        attempt: int,
        elapsed_ms: int,
        outcome: ApiCallOutcome,
        status_code: Optional[int],
    ) -> None:
        pass

    def on_retry(self, job_id: str, chunk_index: int, retries_left: int, delay_sec: float, reason: str) -> None:
        pass

    def on_chunk_finished(self, job_id: str, timing: ChunkTiming) -> None:
        pass

    def on_job_finished(self, job_id: str, chunks: int, api_sec: float, wall_sec: float) -> None:
        pass

    def on_job_failed(self, job_id: str, error: TranscriptionJobError) -> None:
        pass


NullObserver = JobObserver


class LoggingObserver(JobObserver):
    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger

    def on_job_started(self, job_id: str, audio_path: str) -> None:
        self._log.info("job=%s started audio=%s", job_id, audio_path)

    def on_stage(self, job_id: str, stage: JobStage) -> None:
        self._log.info("job=%s stage=%s", job_id, stage)

    def on_chunk_started(self, job_id: str, window: ChunkWindow) -> None:
        self._log.info(
            "job=%s chunk=%s start=%.1fs end=%.1fs",
            job_id,
            window.index,
            window.start_ms / 1000.0,
            window.end_ms / 1000.0,
        )

    def on_api_call(
        self,
        job_id: str,
        chunk_index: int,
        attempt: int,
        elapsed_ms: int,
        outcome: ApiCallOutcome,
        status_code: Optional[int],
    ) -> None:
        self._log.info(
            "job=%s chunk=%s attempt=%s outcome=%s status=%s elapsed_ms=%s",
            job_id,
            chunk_index,
            attempt,
            outcome,
            status_code,
            elapsed_ms,
        )

    def on_retry(self, job_id: str, chunk_index: int, retries_left: int, delay_sec: float, reason: str) -> None:
        self._log.warning(
            "job=%s chunk=%s retrying in %ss (%s retries left): %s",
            job_id,
            chunk_index,
            delay_sec,
            retries_left,
            reason,
        )

    def on_chunk_finished(self, job_id: str, timing: ChunkTiming) -> None:
        self._log.info(
            "job=%s chunk=%s status=%s attempts=%s api_sec=%.2f",
            job_id,
            timing.chunk_index,
            timing.status,
            timing.attempts,
            timing.api_sec,
        )

    def on_job_finished(self, job_id: str, chunks: int, api_sec: float, wall_sec: float) -> None:
        self._log.info(
            "job=%s done chunks=%s total_api_sec=%.2f wall_sec=%.2f",
            job_id,
            chunks,
            api_sec,
            wall_sec,
        )

    def on_job_failed(self, job_id: str, error: TranscriptionJobError) -> None:
        self._log.error("job=%s failed %s", job_id, error)


class AuditTrailObserver(JobObserver):
    """Collects AuditEvent records in memory for callers that want a job trail."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._events: List[AuditEvent] = []

    @property
    def events(self) -> List[AuditEvent]:
        with self._lock:
            return list(self._events)

    def codes(self) -> List[str]:
        return [e.code for e in self.events]

    def log_event(
        self,
        job_id: str,
        event_type: AuditEventType,
        code: str,
        detail: str,
        chunk_index: Optional[int] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        event = AuditEvent(
            ts_iso=_ts_iso(),
            job_id=job_id,
            type=event_type,
            code=code,
            detail=_sanitize_detail(detail),
            chunk_index=chunk_index,
            duration_ms=duration_ms,
        )
        with self._lock:
            self._events.append(event)

    def on_job_started(self, job_id: str, audio_path: str) -> None:
        self.log_event(job_id, "JOB_STARTED", "JOB_START", f"audio={audio_path}")

    def on_stage(self, job_id: str, stage: JobStage) -> None:
        self.log_event(job_id, "STAGE_ENTERED", f"STAGE_{stage.upper()}", f"stage={stage}")

    def on_chunk_started(self, job_id: str, window: ChunkWindow) -> None:
        self.log_event(
            job_id,
            "CHUNK_STARTED",
            "CHUNK_START",
            f"start_ms={window.start_ms} end_ms={window.end_ms}",
            chunk_index=window.index,
        )

    def on_api_call(
        self,
        job_id: str,
        chunk_index: int,
        attempt: int,
        elapsed_ms: int,
        outcome: ApiCallOutcome,
        status_code: Optional[int],
    ) -> None:
        self.log_event(
            job_id,
            "API_CALL",
            f"API_{outcome.upper()}",
            f"attempt={attempt} status={status_code}",
            chunk_index=chunk_index,
            duration_ms=elapsed_ms,
        )

    def on_retry(self, job_id: str, chunk_index: int, retries_left: int, delay_sec: float, reason: str) -> None:
        self.log_event(
            job_id,
            "API_RETRY",
            "API_RETRY",
            f"retries_left={retries_left} delay_sec={delay_sec} reason={reason}",
            chunk_index=chunk_index,
        )

    def on_chunk_finished(self, job_id: str, timing: ChunkTiming) -> None:
        self.log_event(
            job_id,
            "CHUNK_DONE",
            timing.status,
            f"attempts={timing.attempts}",
            chunk_index=timing.chunk_index,
            duration_ms=int(timing.api_sec * 1000),
        )

    def on_job_finished(self, job_id: str, chunks: int, api_sec: float, wall_sec: float) -> None:
        self.log_event(
            job_id,
            "JOB_DONE",
            "JOB_DONE",
            f"chunks={chunks} api_sec={api_sec:.2f}",
            duration_ms=int(wall_sec * 1000),
        )

    def on_job_failed(self, job_id: str, error: TranscriptionJobError) -> None:
        self.log_event(
            job_id,
            "JOB_FAILED",
            error.code,
            f"stage={error.stage} {error.message}",
            chunk_index=error.chunk_index,
        )


class CompositeObserver(JobObserver):
    def __init__(self, observers: Iterable[JobObserver]) -> None:
        self._observers = list(observers)

    def on_job_started(self, job_id: str, audio_path: str) -> None:
        for obs in self._observers:
            obs.on_job_started(job_id, audio_path)

    def on_stage(self, job_id: str, stage: JobStage) -> None:
        for obs in self._observers:
            obs.on_stage(job_id, stage)

    def on_chunk_started(self, job_id: str, window: ChunkWindow) -> None:
        for obs in self._observers:
            obs.on_chunk_started(job_id, window)

    def on_api_call(
        self,
        job_id: str,
        chunk_index: int,
        attempt: int,
        elapsed_ms: int,
        outcome: ApiCallOutcome,
        status_code: Optional[int],
    ) -> None:
        for obs in self._observers:
            obs.on_api_call(job_id, chunk_index, attempt, elapsed_ms, outcome, status_code)

    def on_retry(self, job_id: str, chunk_index: int, retries_left: int, delay_sec: float, reason: str) -> None:
        for obs in self._observers:
            obs.on_retry(job_id, chunk_index, retries_left, delay_sec, reason)

    def on_chunk_finished(self, job_id: str, timing: ChunkTiming) -> None:
        for obs in self._observers:
            obs.on_chunk_finished(job_id, timing)

    def on_job_finished(self, job_id: str, chunks: int, api_sec: float, wall_sec: float) -> None:
        for obs in self._observers:
            obs.on_job_finished(job_id, chunks, api_sec, wall_sec)

    def on_job_failed(self, job_id: str, error: TranscriptionJobError) -> None:
        for obs in self._observers:
            obs.on_job_failed(job_id, error)
