from __future__ import annotations

"""
Chunk-boundary planning for long recordings.

Design intent:
- Cover [0, total) contiguously with fixed-length windows that share `overlap_ms` with their neighbour.
- Reject unusable settings before any audio work starts.
"""

import logging

from longscribe.internal_core.contracts import ChunkWindow
from longscribe.internal_core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def validate_chunk_settings(chunk_length_ms: int, overlap_ms: int) -> None:
    if chunk_length_ms <= 0:
        raise ConfigurationError(f"chunk length must be positive, got {chunk_length_ms}ms")
    if overlap_ms < 0:
        raise ConfigurationError(f"overlap must be >= 0, got {overlap_ms}ms")
    if chunk_length_ms <= overlap_ms:
        raise ConfigurationError(
            f"chunk length ({chunk_length_ms}ms) must be greater than overlap ({overlap_ms}ms)"
        )


def plan_chunks(total_duration_ms: int, chunk_length_ms: int, overlap_ms: int) -> list[ChunkWindow]:
    """Split `[0, total_duration_ms)` into overlapping windows.

    Windows advance by `chunk_length_ms - overlap_ms` and the last one always ends
    exactly at `total_duration_ms`. A zero-length recording yields no windows.
    """
    validate_chunk_settings(chunk_length_ms, overlap_ms)
    total = int(total_duration_ms)
    if total <= 0:
        return []

    step = chunk_length_ms - overlap_ms
    windows: list[ChunkWindow] = []
    pos = 0
    # Every window starts before `total`, so the last one is clipped to end exactly there.
    while True:
        end = min(pos + chunk_length_ms, total)
        windows.append(ChunkWindow(index=len(windows), start_ms=pos, end_ms=end))
        if end >= total:
            break
        pos += step

    logger.debug(
        "planned chunks=%s total_ms=%s chunk_ms=%s overlap_ms=%s",
        len(windows),
        total,
        chunk_length_ms,
        overlap_ms,
    )
    return windows
