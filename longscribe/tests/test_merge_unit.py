from longscribe.asr.merge import (
    CHARS_PER_SECOND,
    absolutize_chunk,
    align_and_merge_text,
    dedupe_words,
    merge_chunk_results,
    merge_overlapping_segments,
)
from longscribe.asr.models import RawChunkResult, Segment, Word


def _chunk(text: str, segments: list[dict], words: list[dict]) -> RawChunkResult:
    return RawChunkResult.from_payload({"text": text, "segments": segments, "words": words})


def test_absolutize_chunk_shifts_words_segments_and_nested_words() -> None:
    result = _chunk(
        "hello there",
        [{"start": 1.5, "end": 3.0, "text": " hello there", "words": [{"start": 1.5, "end": 2.0, "word": "hello"}]}],
        [{"start": 1.5, "end": 2.0, "word": "hello"}, {"start": 2.25, "end": 3.0, "word": "there"}],
    )

    words, segments = absolutize_chunk(result, 585_000)

    assert [(w.start, w.end) for w in words] == [(586.5, 587.0), (587.25, 588.0)]
    assert (segments[0].start, segments[0].end) == (586.5, 588.0)
    assert segments[0].words is not None
    assert (segments[0].words[0].start, segments[0].words[0].end) == (586.5, 587.0)
    assert result.words[0].start == 1.5


def test_dedupe_words_keeps_first_of_same_start_and_text() -> None:
    words = [
        Word(start=590.001, end=590.4, word="brown"),
        Word(start=590.004, end=590.5, word="brown"),
        Word(start=590.004, end=590.5, word="Brown"),
        Word(start=591.0, end=591.2, word="brown"),
    ]

    out = dedupe_words(words)

    assert [(w.start, w.word) for w in out] == [(590.001, "brown"), (590.004, "Brown"), (591.0, "brown")]
    assert out[0].end == 590.4


def test_align_and_merge_text_splices_suffix_prefix_overlap() -> None:
    merged = align_and_merge_text("the quick brown fox", "brown fox jumps over", 150)

    assert merged == "the quick brown fox jumps over"


def test_align_and_merge_text_keeps_longer_when_one_contains_other() -> None:
    assert align_and_merge_text("and then we left the building", "we left", 100) == "and then we left the building"
    assert align_and_merge_text("we left", " and then we left the building ", 100) == "and then we left the building"


def test_align_and_merge_text_joins_with_space_without_overlap() -> None:
    assert align_and_merge_text("hello", "world", 100) == "hello world"


def test_align_and_merge_text_search_is_bounded_by_estimate() -> None:
    assert align_and_merge_text("foo bar", "bar baz", 0) == "foo bar bar baz"
    assert align_and_merge_text("foo bar", "bar baz", 3) == "foo bar baz"


def test_align_and_merge_text_returns_other_side_when_one_is_empty() -> None:
    assert align_and_merge_text("", "second part") == "second part"
    assert align_and_merge_text("first part", "   ") == "first part"


def test_merge_overlapping_segments_extends_end_and_keeps_first_metadata() -> None:
    segments = [
        Segment(start=590.0, end=600.0, text=" the quick brown fox", avg_logprob=-0.2, id=7),
        Segment(start=590.0, end=597.0, text=" brown fox jumps over", avg_logprob=-0.9, id=0),
        Segment(start=600.0, end=603.0, text=" the lazy dog"),
    ]

    merged = merge_overlapping_segments(segments)

    assert len(merged) == 2
    assert merged[0].text == "the quick brown fox jumps over"
    assert merged[0].end == 600.0
    assert merged[0].avg_logprob == -0.2
    assert merged[0].model_dump()["id"] == 7
    assert merged[1].start == 600.0


def test_merge_overlapping_segments_uses_chars_per_second_estimate() -> None:
    assert CHARS_PER_SECOND == 15
    wide = merge_overlapping_segments(
        [Segment(start=0.0, end=10.0, text="alpha beta gamma"), Segment(start=9.0, end=12.0, text="gamma delta")]
    )
    # 0.25s of overlap only allows a 3 char match
    narrow = merge_overlapping_segments(
        [Segment(start=0.0, end=10.0, text="alpha beta gamma"), Segment(start=9.75, end=12.0, text="gamma delta")]
    )

    assert wide[0].text == "alpha beta gamma delta"
    assert narrow[0].text == "alpha beta gamma gamma delta"
    assert wide[0].end == narrow[0].end == 12.0


def test_merge_chunk_results_two_chunks_with_overlap() -> None:
    chunk0 = _chunk(
        "The quick brown fox",
        [
            {"start": 0.0, "end": 590.0, "text": " Intro words here."},
            {"start": 590.0, "end": 600.0, "text": " the quick brown fox"},
        ],
        [
            {"start": 590.0, "end": 590.5, "word": "the"},
            {"start": 594.0, "end": 595.0, "word": "brown"},
            {"start": 596.0, "end": 597.0, "word": "fox"},
        ],
    )
    chunk1 = _chunk(
        "brown fox jumps over",
        [
            {"start": 9.0, "end": 14.0, "text": " brown fox jumps over"},
            {"start": 20.0, "end": 25.0, "text": " the lazy dog."},
        ],
        [
            {"start": 9.0, "end": 10.0, "word": "brown"},
            {"start": 11.0, "end": 12.0, "word": "fox"},
            {"start": 12.5, "end": 13.0, "word": "jumps"},
        ],
    )

    merged = merge_chunk_results([(chunk0, 0), (chunk1, 585_000)], total_duration_sec=620.0)

    assert [(s.start, s.end) for s in merged.segments] == [(0.0, 590.0), (590.0, 600.0), (605.0, 610.0)]
    assert merged.segments[1].text == "the quick brown fox jumps over"
    assert merged.text == "Intro words here. the quick brown fox jumps over the lazy dog."
    assert [(w.start, w.word) for w in merged.words] == [
        (590.0, "the"),
        (594.0, "brown"),
        (596.0, "fox"),
        (597.5, "jumps"),
    ]


def test_merge_chunk_results_output_invariants() -> None:
    chunk0 = _chunk(
        "a",
        [{"start": 0.0, "end": 5.0, "text": "one two"}, {"start": 5.0, "end": 10.0, "text": "three four"}],
        [{"start": 9.0, "end": 10.0, "word": "four"}],
    )
    chunk1 = _chunk(
        "b",
        [{"start": 0.0, "end": 4.0, "text": "three four five"}, {"start": 4.0, "end": 8.0, "text": "six"}],
        [{"start": 3.0, "end": 4.0, "word": "four"}, {"start": 7.5, "end": 9.0, "word": "six"}],
    )

    merged = merge_chunk_results([(chunk0, 0), (chunk1, 6_000)], total_duration_sec=14.5)

    starts = [s.start for s in merged.segments]
    assert starts == sorted(starts)
    for prev, nxt in zip(merged.segments, merged.segments[1:]):
        assert nxt.start >= prev.end
    assert merged.text == " ".join(s.text.strip() for s in merged.segments if s.text.strip())
    assert [w.start for w in merged.words] == sorted(w.start for w in merged.words)
    assert all(0.0 <= w.start <= w.end <= 14.5 for w in merged.words)
    assert [w.word for w in merged.words] == ["four", "six"]


def test_merge_chunk_results_ties_keep_chunk_order() -> None:
    chunk0 = _chunk("x", [{"start": 10.0, "end": 10.0, "text": "first"}], [])
    chunk1 = _chunk("y", [{"start": 0.0, "end": 0.0, "text": "second"}], [])

    merged = merge_chunk_results([(chunk0, 0), (chunk1, 10_000)])

    assert [s.text for s in merged.segments] == ["first", "second"]
    assert merged.text == "first second"


def test_merge_chunk_results_empty_input() -> None:
    merged = merge_chunk_results([])

    assert merged.text == ""
    assert merged.segments == []
    assert merged.words == []


def test_merge_chunk_results_single_chunk_is_identity() -> None:
    result = _chunk(
        " good morning everyone",
        [
            {"id": 0, "start": 0.0, "end": 1.4, "text": " good morning", "avg_logprob": -0.21, "no_speech_prob": 0.02},
            {"id": 1, "start": 1.4, "end": 2.5, "text": " everyone", "avg_logprob": -0.35, "no_speech_prob": 0.04},
        ],
        [
            {"start": 0.0, "end": 0.6, "word": "good"},
            {"start": 0.6, "end": 1.4, "word": "morning"},
            {"start": 1.4, "end": 2.5, "word": "everyone"},
        ],
    )

    merged = merge_chunk_results([(result, 0)])

    assert merged.segments == result.segments
    assert merged.words == result.words
    assert merged.text == "good morning everyone"
