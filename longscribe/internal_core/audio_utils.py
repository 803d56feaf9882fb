from __future__ import annotations

import logging
import shutil
import subprocess
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .contracts import AudioHandle, ChunkAudio, ChunkWindow
from .errors import AudioToolError, ExtractionError

logger = logging.getLogger(__name__)

TARGET_SAMPLE_RATE = 16000
TARGET_CHANNELS = 1


def _which(cmd: str) -> Optional[str]:
    return shutil.which(cmd)


def _decode_output(raw: object) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return raw.decode("utf-8", "ignore").strip()
    return str(raw or "").strip()


def _require_tool(name: str) -> str:
    path = _which(name)
    if not path:
        raise AudioToolError(
            f"{name.upper()}_NOT_FOUND",
            f"{name} not found. Install FFmpeg and make sure it is on PATH.",
            stage="preprocessing",
        )
    return path


def _safe_unlink(path: Optional[Path]) -> None:
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("could not remove temp file path=%s", path)


def check_ffmpeg_available() -> str:
    ffmpeg = _require_tool("ffmpeg")
    try:
        subprocess.run([ffmpeg, "-version"], check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except (subprocess.CalledProcessError, OSError) as e:
        stderr = _decode_output(getattr(e, "stderr", "")) or str(e)
        raise AudioToolError(
            "FFMPEG_BROKEN",
            f"ffmpeg is installed but not working: {stderr or 'unknown error'}",
            stderr=stderr,
            stage="preprocessing",
        ) from e
    return ffmpeg


def preprocess_audio(input_path: Path, tmp_dir: Path, job_prefix: str) -> Path:
    """
    Convert any ffmpeg-readable input to 16kHz mono FLAC in `tmp_dir`.
    The caller owns the returned file.
    """
    if not input_path.exists():
        raise FileNotFoundError(f"Input audio file not found: {input_path}")

    ffmpeg = _require_tool("ffmpeg")
    tmp_dir.mkdir(parents=True, exist_ok=True)
    out_path = tmp_dir / f"{job_prefix}_norm_{uuid.uuid4().hex}.flac"
    cmd = [
        ffmpeg,
        "-hide_banner",
        "-loglevel",
        "error",
        "-i",
        str(input_path),
        "-ar",
        str(TARGET_SAMPLE_RATE),
        "-ac",
        str(TARGET_CHANNELS),
        "-c:a",
        "flac",
        "-y",
        str(out_path),
    ]
    logger.debug("preprocess cmd=%s", " ".join(cmd))
    try:
        subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except subprocess.CalledProcessError as e:
        _safe_unlink(out_path)
        stderr = _decode_output(e.stderr)
        raise AudioToolError(
            "PREPROCESS_FAILED",
            f"Audio conversion failed via ffmpeg: {stderr or 'unknown error'}",
            stderr=stderr,
            stage="preprocessing",
        ) from e
    return out_path


def probe_duration_ms(path: Path) -> int:
    ffprobe = _require_tool("ffprobe")
    cmd = [
        ffprobe,
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        str(path),
    ]
    try:
        res = subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except subprocess.CalledProcessError as e:
        stderr = _decode_output(e.stderr)
        raise AudioToolError(
            "PROBE_FAILED",
            f"ffprobe failed to read duration: {stderr or 'unknown error'}",
            stderr=stderr,
            stage="preprocessing",
        ) from e

    raw = _decode_output(res.stdout)
    try:
        seconds = float(raw)
    except ValueError:
        raise AudioToolError(
            "PROBE_FAILED",
            f"ffprobe returned no usable duration for {path}: {raw!r}",
            stage="preprocessing",
        ) from None
    return max(0, int(round(seconds * 1000)))


@contextmanager
def preprocessed_audio(input_path: Path, tmp_dir: Path, job_prefix: str) -> Iterator[AudioHandle]:
    """Yield the canonical asset for one job and delete it when the block exits."""
    flac_path = preprocess_audio(input_path, tmp_dir=tmp_dir, job_prefix=job_prefix)
    try:
        duration_ms = probe_duration_ms(flac_path)
        logger.info("preprocessed path=%s duration_ms=%s", flac_path, duration_ms)
        yield AudioHandle(path=flac_path, duration_ms=duration_ms)
    finally:
        _safe_unlink(flac_path)


def extract_chunk(audio: AudioHandle, window: ChunkWindow, tmp_dir: Path, job_prefix: str) -> ChunkAudio:
    end_ms = min(window.end_ms, audio.duration_ms) if audio.duration_ms > 0 else window.end_ms
    duration_ms = end_ms - window.start_ms
    if duration_ms <= 0:
        logger.warning(
            "chunk_index=%s has non-positive duration start_ms=%s end_ms=%s; using empty placeholder",
            window.index,
            window.start_ms,
            end_ms,
        )
        return ChunkAudio(index=window.index, path=None, start_ms=window.start_ms, duration_ms=duration_ms)

    try:
        ffmpeg = _require_tool("ffmpeg")
    except AudioToolError as e:
        raise ExtractionError(e.message, chunk_index=window.index) from e
    tmp_dir.mkdir(parents=True, exist_ok=True)
    out_path = tmp_dir / f"{job_prefix}_chunk{window.index:04d}_{uuid.uuid4().hex}.flac"
    cmd = [
        ffmpeg,
        "-hide_banner",
        "-loglevel",
        "error",
        "-i",
        str(audio.path),
        "-ss",
        f"{window.start_ms / 1000.0:.3f}",
        "-t",
        f"{duration_ms / 1000.0:.3f}",
        "-ar",
        str(TARGET_SAMPLE_RATE),
        "-ac",
        str(TARGET_CHANNELS),
        "-c:a",
        "flac",
        "-y",
        str(out_path),
    ]
    try:
        subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except subprocess.CalledProcessError as e:
        _safe_unlink(out_path)
        stderr = _decode_output(e.stderr)
        raise ExtractionError(
            f"ffmpeg chunk extraction failed: {stderr or 'unknown error'}",
            stderr=stderr,
            chunk_index=window.index,
        ) from e
    return ChunkAudio(index=window.index, path=out_path, start_ms=window.start_ms, duration_ms=duration_ms)


@contextmanager
def extracted_chunk(
    audio: AudioHandle, window: ChunkWindow, tmp_dir: Path, job_prefix: str
) -> Iterator[ChunkAudio]:
    chunk = extract_chunk(audio, window, tmp_dir=tmp_dir, job_prefix=job_prefix)
    try:
        yield chunk
    finally:
        _safe_unlink(chunk.path)
