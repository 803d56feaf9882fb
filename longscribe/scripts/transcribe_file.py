from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from longscribe.asr.results import FileResultSink
from longscribe.internal_core import LoggingObserver, TranscriptionJobError, load_config
from longscribe.internal_core.asr import MockTranscriptionProvider, TranscriptionProvider, transcribe_job_with_report
from longscribe.internal_core.audio_utils import check_ffmpeg_available


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Transcribe a long audio file in overlapping chunks and merge the results."
    )
    parser.add_argument("audio_path", help="Path to any ffmpeg-readable audio file.")
    parser.add_argument("--model", default=None, help="Transcription model (default: ASR_MODEL or whisper-large-v3-turbo).")
    parser.add_argument("--language", default=None, help="Spoken language code (default: en).")
    parser.add_argument("--prompt", default=None, help="Optional context prompt sent with every chunk.")
    parser.add_argument("--chunk-length-sec", type=float, default=None, help="Chunk length in seconds (default: 600).")
    parser.add_argument("--overlap-sec", type=float, default=None, help="Overlap between chunks in seconds (default: 15).")
    parser.add_argument("--workers", type=int, default=None, help="Chunks transcribed concurrently (default: 1).")
    parser.add_argument("--retries", type=int, default=None, help="Retry budget for rate limits/timeouts (default: 3).")
    parser.add_argument("--output-dir", default=None, help="Directory for .txt/_full.json/_segments.json output.")
    parser.add_argument("--no-save", action="store_true", help="Print the transcript without writing result files.")
    parser.add_argument("--mock", action="store_true", help="Use the offline mock provider instead of the API.")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config()
    logging.basicConfig(
        level=getattr(logging, cfg.SCRIBE_LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    audio_path = Path(args.audio_path).expanduser()
    if not audio_path.exists():
        raise SystemExit(f"audio file not found: {audio_path}")

    job_options = {
        "model": args.model,
        "language": args.language,
        "prompt": args.prompt,
        "chunk_length_sec": args.chunk_length_sec,
        "overlap_sec": args.overlap_sec,
        "max_workers": args.workers,
        "retries": args.retries,
        "output_dir": args.output_dir,
    }
    job_cfg = cfg.with_job_options(**job_options)
    provider: Optional[TranscriptionProvider] = MockTranscriptionProvider() if args.mock else None
    sink = None if args.no_save else FileResultSink(job_cfg.output_dir_path())

    try:
        check_ffmpeg_available()
        report = transcribe_job_with_report(
            audio_path,
            cfg=job_cfg,
            provider=provider,
            observer=LoggingObserver(),
            sink=sink,
        )
    except TranscriptionJobError as e:
        print(f"transcription failed: {e}", file=sys.stderr)
        return 1

    print(report.transcript.text)
    print(
        f"chunks={len(report.chunks)} api_sec={report.api_sec:.2f} wall_sec={report.wall_sec:.2f}",
        file=sys.stderr,
    )
    for path in report.saved_paths:
        print(f"saved: {path}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
