"""Tests for the sentence-aware text segmenter."""

from __future__ import annotations

import pytest

from herdsafe.ingest.segmenter import TextSegmenter


def _reconstruct(segmenter: TextSegmenter, text: str) -> str:
    """Join segment windows with the overlapping prefixes removed."""
    normalized = segmenter.normalize(text)
    out = []
    covered = 0
    for seg in segmenter.segment(text):
        out.append(normalized[max(seg.start, covered):seg.end])
        covered = max(covered, seg.end)
    return "".join(out)


# ------------------------------------------------------------------
# normalize / estimate_tokens
# ------------------------------------------------------------------

def test_normalize_collapses_whitespace():
    assert TextSegmenter.normalize("  Foot  and\tmouth\n\n\n\ndisease  ") == "Foot and mouth disease"


@pytest.mark.parametrize("text,expected", [("", 0), ("abc", 1), ("abcd", 1), ("abcde", 2)])
def test_estimate_tokens_is_ceil_of_quarter_length(text, expected):
    assert TextSegmenter.estimate_tokens(text) == expected


# ------------------------------------------------------------------
# segment
# ------------------------------------------------------------------

def test_empty_text_has_no_segments():
    assert TextSegmenter().segment("   \n\t ") == []


def test_short_text_is_one_segment():
    segments = TextSegmenter(chunk_size=100, overlap=10).segment("Cattle need clean water.")
    assert len(segments) == 1
    assert segments[0].text == "Cattle need clean water."
    assert segments[0].index == 0


def test_soft_break_after_seventy_percent():
    text = "a" * 80 + ". " + "b" * 60
    segments = TextSegmenter(chunk_size=100, overlap=0).segment(text)
    assert segments[0].text == "a" * 80 + "."
    assert segments[1].text.startswith("b")


def test_early_break_is_ignored():
    text = "a" * 20 + ". " + "b" * 150
    segments = TextSegmenter(chunk_size=100, overlap=0).segment(text)
    assert len(segments[0].text) == 100


def test_overlap_repeats_tail_of_previous_window():
    text = "x" * 250
    segments = TextSegmenter(chunk_size=100, overlap=20).segment(text)
    assert [s.start for s in segments] == [0, 80, 160]
    assert segments[1].start == segments[0].end - 20


def test_indices_are_sequential():
    text = " ".join(f"Sentence number {i}." for i in range(200))
    segments = TextSegmenter(chunk_size=120, overlap=30).segment(text)
    assert [s.index for s in segments] == list(range(len(segments)))


def test_walk_always_advances_when_overlap_exceeds_soft_break():
    text = ("word. " * 400).strip()
    segments = TextSegmenter(chunk_size=50, overlap=45).segment(text)
    starts = [s.start for s in segments]
    assert starts == sorted(set(starts))


@pytest.mark.parametrize("chunk_size,overlap", [(100, 0), (100, 20), (64, 63), (1500, 200)])
def test_segments_reconstruct_normalized_text(chunk_size, overlap):
    text = (
        "Mastitis is inflammation of the udder.\nSigns include swelling and heat. "
        "Milk may appear watery or clotted.   Treatment often involves intramammary "
        "antibiotics.\n\n\n\nWithdrawal periods apply to milk. " * 30
    )
    segmenter = TextSegmenter(chunk_size=chunk_size, overlap=overlap)
    assert _reconstruct(segmenter, text) == segmenter.normalize(text)


@pytest.mark.parametrize("chunk_size,overlap", [(0, 0), (10, 10), (10, -1)])
def test_invalid_parameters(chunk_size, overlap):
    with pytest.raises(ValueError):
        TextSegmenter(chunk_size=chunk_size, overlap=overlap)
