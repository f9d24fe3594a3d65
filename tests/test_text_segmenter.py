"""Tests for the text segmenter."""

from __future__ import annotations

import random

import pytest

from tts_relay.services.text_segmenter import Segment, normalize_text, segment_text


def _joined(segments: list[Segment]) -> str:
    return "".join(segment.content for segment in segments)


def test_prefers_sentence_boundary() -> None:
    segments = segment_text("Hello world. Foo bar baz", 14)

    assert segments[0].content == "Hello world."
    assert _joined(segments) == "Hello world. Foo bar baz"


def test_short_input_yields_single_segment() -> None:
    segments = segment_text("Just a line.", 4096)

    assert segments == [Segment(index=0, content="Just a line.")]
    assert segments[0].length == 12


def test_empty_input_yields_no_segments() -> None:
    assert segment_text("", 10) == []


def test_falls_back_to_last_whitespace_run() -> None:
    segments = segment_text("alpha beta  gamma delta", 15)

    # Cut lands before the double space so the next segment keeps it
    assert segments[0].content == "alpha beta"
    assert segments[1].content.startswith("  gamma")
    assert _joined(segments) == "alpha beta  gamma delta"


def test_uses_last_terminator_in_window() -> None:
    segments = segment_text("One! Two? Three. Four", 18)

    assert segments[0].content == "One! Two? Three."
    assert segments[1].content == " Four"


def test_hard_break_when_no_boundary() -> None:
    segments = segment_text("abcdefghijklmnopqrstuvwxyz", 10)

    assert [s.content for s in segments] == ["abcdefghij", "klmnopqrst", "uvwxyz"]
    assert [s.index for s in segments] == [0, 1, 2]


def test_leading_whitespace_run_is_not_a_cut() -> None:
    segments = segment_text(" abcdefghijkl", 5)

    assert segments[0].content == " abcd"
    assert _joined(segments) == " abcdefghijkl"


def test_rejects_non_positive_length() -> None:
    with pytest.raises(ValueError):
        segment_text("text", 0)


def test_round_trip_and_bounds_on_random_text() -> None:
    rng = random.Random(1234)
    alphabet = "abc de.f!g?h  "
    for _ in range(200):
        text = "".join(rng.choice(alphabet) for _ in range(rng.randint(1, 120)))
        max_length = rng.randint(1, 25)

        segments = segment_text(text, max_length)

        assert _joined(segments) == text
        assert all(0 < s.length <= max_length for s in segments)
        assert [s.index for s in segments] == list(range(len(segments)))


def test_normalize_collapses_line_breaks_and_trims() -> None:
    assert normalize_text("  first line\r\nsecond\n\nthird \n") == "first line second third"
    assert normalize_text(" \n\t ") == ""
