from __future__ import annotations

"""
Reassemble per-chunk transcriptions into one transcript.

Design intent:
- Shift chunk-relative timestamps onto the recording timeline before anything else.
- Resolve the duplicated speech in overlap regions from text alone (no audio alignment).
- Keep segment metadata from the earliest segment of each merged run.
"""

import logging
from typing import Optional, Sequence

from longscribe.asr.models import MergedTranscript, RawChunkResult, Segment, Word

logger = logging.getLogger(__name__)

# Rough speaking rate used to bound the text overlap search.
CHARS_PER_SECOND = 15


def _shift(value: float, offset_sec: float) -> float:
    return round(float(value) + offset_sec, 3)


def _shift_word(word: Word, offset_sec: float) -> Word:
    return word.model_copy(update={"start": _shift(word.start, offset_sec), "end": _shift(word.end, offset_sec)})


def absolutize_chunk(result: RawChunkResult, start_offset_ms: int) -> tuple[list[Word], list[Segment]]:
    offset_sec = start_offset_ms / 1000.0
    words = [_shift_word(w, offset_sec) for w in result.words]
    segments: list[Segment] = []
    for seg in result.segments:
        update: dict = {"start": _shift(seg.start, offset_sec), "end": _shift(seg.end, offset_sec)}
        if seg.words:
            update["words"] = [_shift_word(w, offset_sec) for w in seg.words]
        segments.append(seg.model_copy(update=update))
    return words, segments


def dedupe_words(words: Sequence[Word]) -> list[Word]:
    """Drop words repeated across an overlap: same start (to 10ms) and same literal text."""
    seen: set[tuple[float, str]] = set()
    out: list[Word] = []
    for w in words:
        key = (round(w.start, 2), w.word)
        if key in seen:
            continue
        seen.add(key)
        out.append(w)
    return out


def align_and_merge_text(first: str, second: str, overlap_char_estimate: int = 100) -> str:
    if not second or not second.strip():
        return first
    if not first or not first.strip():
        return second

    a = first.strip()
    b = second.strip()
    if b in a:
        return a
    if a in b:
        return b

    search_len = min(len(a), len(b), max(0, int(overlap_char_estimate)))
    for k in range(search_len, 0, -1):
        if a[-k:] == b[:k]:
            return a + b[k:]
    return f"{a} {b}"


def merge_overlapping_segments(segments: Sequence[Segment]) -> list[Segment]:
    """Collapse time-ordered segments so no two overlap.

    A segment starting before the running segment ends is folded into it: texts are
    spliced by `align_and_merge_text` and the end is extended.
    """
    merged: list[Segment] = []
    for seg in segments:
        if not merged:
            merged.append(seg.model_copy())
            continue
        current = merged[-1]
        overlap_sec = current.end - seg.start
        if overlap_sec > 0:
            estimate = int(overlap_sec * CHARS_PER_SECOND)
            merged[-1] = current.model_copy(
                update={
                    "text": align_and_merge_text(current.text, seg.text, estimate),
                    "end": max(current.end, seg.end),
                }
            )
        else:
            merged.append(seg.model_copy())
    return merged


def _clamp_word(word: Word, total_sec: float) -> Word:
    if word.end <= total_sec:
        return word
    return word.model_copy(update={"start": min(word.start, total_sec), "end": total_sec})


def merge_chunk_results(
    chunk_results: Sequence[tuple[RawChunkResult, int]],
    *,
    total_duration_sec: Optional[float] = None,
) -> MergedTranscript:
    """Merge `(result, chunk_start_ms)` pairs given in chunk order."""
    tagged_words: list[tuple[float, int, Word]] = []
    tagged_segments: list[tuple[float, int, Segment]] = []
    for ordinal, (result, start_offset_ms) in enumerate(chunk_results):
        words, segments = absolutize_chunk(result, start_offset_ms)
        tagged_words.extend((w.start, ordinal, w) for w in words)
        tagged_segments.extend((s.start, ordinal, s) for s in segments)

    # sort is stable, so provider order survives exact (start, chunk) ties
    tagged_words.sort(key=lambda item: (item[0], item[1]))
    tagged_segments.sort(key=lambda item: (item[0], item[1]))

    words = dedupe_words([w for _, _, w in tagged_words])
    if total_duration_sec is not None:
        words = [_clamp_word(w, total_duration_sec) for w in words]
    segments = merge_overlapping_segments([s for _, _, s in tagged_segments])
    text = " ".join(s.text.strip() for s in segments if s.text and s.text.strip())

    logger.info(
        "merged chunks=%s text_chars=%s segments=%s words=%s",
        len(chunk_results),
        len(text),
        len(segments),
        len(words),
    )
    return MergedTranscript(text=text, segments=segments, words=words)
