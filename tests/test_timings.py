"""Unit tests for the compact timing codec.

WHY: Every output file is written through encode_timings. A wrong epsilon
or a stale last_end silently corrupts the start times that downstream
tools reconstruct.

HOW: Tests cover:
  - Bare-number vs pair selection, including the first word
  - The epsilon boundary on both sides
  - Decoding of bare numbers, pairs, tuples and JSON-loaded lists
  - Lossless encode → decode for realistic sequences
  - Rejection of malformed elements

RULES:
- Floating-point comparisons use pytest.approx
"""

import json

import pytest

from word_times.core.ir import WordResult
from word_times.core.timings import TIMING_EPSILON, decode_timings, encode_timings


def _w(start, end, word="x"):
    return WordResult(word=word, start=start, end=end, confidence=0.9)


class TestEncode:
    """encode_timings picks a bare end time or a [start, end] pair."""

    def test_empty_sequence(self):
        assert encode_timings([]) == []

    def test_first_word_at_zero_is_bare(self):
        assert encode_timings([_w(0.0, 0.4)]) == [0.4]

    def test_first_word_after_silence_is_pair(self):
        assert encode_timings([_w(0.3, 0.7)]) == [[0.3, 0.7]]

    def test_back_to_back_words_are_bare(self):
        words = [_w(0.0, 0.5), _w(0.5, 1.2), _w(1.2, 1.5)]
        assert encode_timings(words) == [0.5, 1.2, 1.5]

    def test_gap_produces_pair(self):
        words = [_w(0.0, 0.5), _w(0.8, 1.1), _w(1.1, 1.4)]
        assert encode_timings(words) == [0.5, [0.8, 1.1], 1.4]

    def test_gap_smaller_than_epsilon_is_bare(self):
        words = [_w(0.0, 1.0), _w(1.00005, 2.0)]
        assert encode_timings(words) == [1.0, 2.0]

    def test_gap_larger_than_epsilon_is_pair(self):
        words = [_w(0.0, 1.0), _w(1.0002, 2.0)]
        assert encode_timings(words) == [1.0, [1.0002, 2.0]]

    def test_overlap_larger_than_epsilon_is_pair(self):
        words = [_w(0.0, 1.0), _w(0.9, 1.5)]
        assert encode_timings(words) == [1.0, [0.9, 1.5]]

    def test_epsilon_value(self):
        assert TIMING_EPSILON == 0.0001

    def test_pairs_are_lists(self):
        encoded = encode_timings([_w(0.3, 0.7)])
        assert isinstance(encoded[0], list)


class TestDecode:
    """decode_timings carries last_end forward for bare numbers."""

    def test_bare_numbers(self):
        assert decode_timings([0.5, 1.2]) == [(0.0, 0.5), (0.5, 1.2)]

    def test_pairs_used_as_is(self):
        assert decode_timings([[0.3, 0.7], 1.0]) == [(0.3, 0.7), (0.7, 1.0)]

    def test_tuple_pairs_accepted(self):
        assert decode_timings([(0.3, 0.7)]) == [(0.3, 0.7)]

    def test_integers_accepted(self):
        assert decode_timings([1, [2, 3]]) == [(0.0, 1.0), (2.0, 3.0)]

    def test_json_loaded_value(self):
        loaded = json.loads("[0.5,[0.8,1.1],1.4]")
        spans = decode_timings(loaded)
        assert spans[1] == pytest.approx((0.8, 1.1))
        assert spans[2] == pytest.approx((1.1, 1.4))

    @pytest.mark.parametrize("bad", [
        ["1.0"],
        [[1.0]],
        [[1.0, 2.0, 3.0]],
        [True],
        [None],
        [[0.1, "x"]],
    ])
    def test_malformed_elements_raise(self, bad):
        with pytest.raises(ValueError):
            decode_timings(bad)


class TestRoundTrip:
    """decode(encode(words)) reproduces every (start, end) span."""

    @pytest.mark.parametrize("spans", [
        [(0.0, 0.3), (0.3, 0.9), (0.9, 1.4)],
        [(0.21, 0.6), (0.6, 0.95), (1.5, 2.0), (2.0, 2.25), (3.1, 3.6)],
        [(1.0, 1.0), (1.0, 1.2)],
    ])
    def test_round_trip(self, spans):
        words = [_w(s, e) for s, e in spans]
        decoded = decode_timings(encode_timings(words))
        assert decoded == pytest.approx(spans)

    def test_round_trip_through_json(self):
        words = [_w(0.0, 0.42), _w(0.42, 0.87), _w(1.3, 1.9)]
        encoded = json.loads(json.dumps(encode_timings(words)))
        assert decode_timings(encoded) == pytest.approx([(0.0, 0.42), (0.42, 0.87), (1.3, 1.9)])
