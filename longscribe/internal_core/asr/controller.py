from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from longscribe.asr.merge import merge_chunk_results
from longscribe.asr.models import MergedTranscript, RawChunkResult
from longscribe.asr.planning import plan_chunks
from longscribe.asr.results import FileResultSink, ResultSink

from ..audio_utils import extracted_chunk, preprocessed_audio
from ..audit import JobObserver, LoggingObserver
from ..config import TranscriberConfig, load_config
from ..contracts import ApiCallOutcome, AudioHandle, ChunkTiming, ChunkWindow, JobStage, TranscriptionParams
from ..errors import JobCancelledError, TranscriptionJobError, UnexpectedError
from .base import TranscriptionProvider
from .groq_client import GroqTranscriptionClient

logger = logging.getLogger(__name__)


@dataclass
class TranscriptionJobReport:
    job_id: str
    transcript: MergedTranscript
    duration_ms: int = 0
    chunks: list[ChunkTiming] = field(default_factory=list)
    api_sec: float = 0.0
    wall_sec: float = 0.0
    saved_paths: list[Path] = field(default_factory=list)


def _transcribe_window(
    window: ChunkWindow,
    audio: AudioHandle,
    provider: TranscriptionProvider,
    params: TranscriptionParams,
    tmp_dir: Path,
    job_id: str,
    observer: JobObserver,
    cancel_event: threading.Event,
) -> tuple[ChunkWindow, RawChunkResult, ChunkTiming]:
    if cancel_event.is_set():
        raise JobCancelledError(window.index)
    observer.on_chunk_started(job_id, window)
    timing = ChunkTiming(
        chunk_index=window.index,
        start_ms=window.start_ms,
        end_ms=window.end_ms,
        status="TRANSCRIBED",
    )

    def _on_api_call(attempt: int, elapsed_ms: int, outcome: ApiCallOutcome, status_code: Optional[int]) -> None:
        timing.attempts = attempt
        timing.api_sec += elapsed_ms / 1000.0
        observer.on_api_call(job_id, window.index, attempt, elapsed_ms, outcome, status_code)

    def _on_retry(retries_left: int, delay_sec: float, reason: str) -> None:
        observer.on_retry(job_id, window.index, retries_left, delay_sec, reason)

    try:
        with extracted_chunk(audio, window, tmp_dir=tmp_dir, job_prefix=job_id) as chunk:
            if cancel_event.is_set():
                raise JobCancelledError(window.index)
            result = provider.transcribe(
                chunk,
                params,
                chunk_index=window.index,
                cancel_event=cancel_event,
                on_api_call=_on_api_call,
                on_retry=_on_retry,
            )
    except TranscriptionJobError:
        raise
    except Exception as e:
        raise UnexpectedError(f"{type(e).__name__}: {e}", stage="transcribing", chunk_index=window.index) from e

    if timing.attempts == 0:
        timing.status = "SKIP_EMPTY"
    observer.on_chunk_finished(job_id, timing)
    return window, result, timing


def transcribe_windows(
    windows: list[ChunkWindow],
    audio: AudioHandle,
    provider: TranscriptionProvider,
    params: TranscriptionParams,
    *,
    cfg: TranscriberConfig,
    job_id: str,
    observer: JobObserver,
) -> list[tuple[ChunkWindow, RawChunkResult, ChunkTiming]]:
    """
    Transcribe every window on a bounded pool; results come back in window order.
    The first failure cancels queued windows and signals running ones to stop.
    """
    cancel_event = threading.Event()
    tmp_dir = cfg.tmp_dir_path()
    max_workers = max(1, min(cfg.ASR_MAX_WORKERS, len(windows)))
    completed: list[tuple[ChunkWindow, RawChunkResult, ChunkTiming]] = []
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=f"longscribe-{job_id}") as pool:
        futures: list[Future] = [
            pool.submit(
                _transcribe_window,
                window,
                audio,
                provider,
                params,
                tmp_dir,
                job_id,
                observer,
                cancel_event,
            )
            for window in windows
        ]
        try:
            for fut in as_completed(futures):
                completed.append(fut.result())
        except BaseException:
            cancel_event.set()
            for fut in futures:
                fut.cancel()
            raise
    completed.sort(key=lambda item: item[0].index)
    return completed


def transcribe_job_with_report(
    audio_path: Union[str, Path],
    *,
    cfg: Optional[TranscriberConfig] = None,
    provider: Optional[TranscriptionProvider] = None,
    observer: Optional[JobObserver] = None,
    sink: Optional[ResultSink] = None,
    job_options: Optional[Mapping[str, Any]] = None,
    job_id: Optional[str] = None,
) -> TranscriptionJobReport:
    """Run one job: preprocess, plan, transcribe chunks, merge and optionally save.

    Any failure surfaces as a TranscriptionJobError whose `stage` (and
    `chunk_index`, where one applies) says where the job stopped. Temp audio
    is removed either way.
    """
    base_cfg = cfg if cfg is not None else load_config()
    job_id = job_id or uuid.uuid4().hex[:12]
    observer = observer if observer is not None else LoggingObserver()
    input_path = Path(audio_path)
    started = time.monotonic()
    stage: JobStage = "configuring"

    if not input_path.exists():
        raise FileNotFoundError(f"Input audio file not found: {input_path}")

    observer.on_job_started(job_id, str(input_path))
    try:
        observer.on_stage(job_id, stage)
        job_cfg = base_cfg.with_job_options(**dict(job_options or {}))
        job_cfg.validate()
        if provider is None:
            provider = GroqTranscriptionClient.from_config(job_cfg)
        if sink is None and job_cfg.SCRIBE_SAVE_FILES:
            sink = FileResultSink(job_cfg.output_dir_path())
        params = job_cfg.transcription_params()

        report = TranscriptionJobReport(job_id=job_id, transcript=MergedTranscript.empty())
        stage = "preprocessing"
        observer.on_stage(job_id, stage)
        with preprocessed_audio(input_path, tmp_dir=job_cfg.tmp_dir_path(), job_prefix=job_id) as audio:
            report.duration_ms = audio.duration_ms
            if audio.duration_ms == 0:
                logger.warning("job=%s audio duration is 0ms; skipping transcription", job_id)
            else:
                stage = "planning"
                observer.on_stage(job_id, stage)
                windows = plan_chunks(audio.duration_ms, job_cfg.chunk_length_ms, job_cfg.overlap_ms)

                stage = "transcribing"
                observer.on_stage(job_id, stage)
                transcribed = transcribe_windows(
                    windows,
                    audio,
                    provider,
                    params,
                    cfg=job_cfg,
                    job_id=job_id,
                    observer=observer,
                )
                report.chunks = [timing for _, _, timing in transcribed]
                report.api_sec = sum(t.api_sec for t in report.chunks)

                stage = "merging"
                observer.on_stage(job_id, stage)
                report.transcript = merge_chunk_results(
                    [(result, window.start_ms) for window, result, _ in transcribed],
                    total_duration_sec=audio.duration_ms / 1000.0,
                )

        if sink is not None and report.duration_ms > 0:
            stage = "saving"
            observer.on_stage(job_id, stage)
            report.saved_paths = sink.save(report.transcript, input_path)

        stage = "done"
        observer.on_stage(job_id, stage)
    except TranscriptionJobError as e:
        if e.stage is None:
            e.stage = stage
        observer.on_job_failed(job_id, e)
        raise
    except Exception as e:
        logger.exception("job=%s unexpected failure stage=%s", job_id, stage)
        err = UnexpectedError(f"{type(e).__name__}: {e}", stage=stage)
        observer.on_job_failed(job_id, err)
        raise err from e

    report.wall_sec = time.monotonic() - started
    observer.on_job_finished(job_id, len(report.chunks), report.api_sec, report.wall_sec)
    return report


def transcribe_job(audio_path: Union[str, Path], **kwargs: Any) -> MergedTranscript:
    return transcribe_job_with_report(audio_path, **kwargs).transcript
