"""Compact encoding of word-timing sequences.

WHY: Recognised speech is mostly back-to-back words: each word starts
exactly where the previous one ended. Writing both start and end for
every word doubles the size of the output files for no information.

HOW: encode_timings walks the words in order and keeps the previous
word's end time. When a word starts within TIMING_EPSILON of that end,
only its end time is written as a bare number. Otherwise the explicit
[start, end] pair is written. decode_timings reverses this by carrying
the running end time forward.

RULES:
- last_end starts at 0, so a first word starting at 0 is a bare number
- Epsilon comparison is strict: |start - last_end| < 0.0001
- Pairs are two-element lists so they match what json.load returns
- Decoding accepts lists or tuples for pairs
"""

from __future__ import annotations

from numbers import Real
from typing import Iterable, List, Sequence, Tuple

from word_times.core.ir import CompactTimings, WordResult

TIMING_EPSILON = 0.0001
"""Gap (seconds) below which a word counts as starting at the previous end."""


def encode_timings(words: Iterable[WordResult]) -> CompactTimings:
    """Encode recognised words into a CompactTimings list.

    Args:
        words: WordResults in recognition order.

    Returns:
        A list of bare end times and [start, end] pairs.
    """
    out: CompactTimings = []
    last_end = 0.0
    for word in words:
        if abs(word.start - last_end) < TIMING_EPSILON:
            out.append(word.end)
        else:
            out.append([word.start, word.end])
        last_end = word.end
    return out


def _is_number(value: object) -> bool:
    # bool is a Real subclass but never a valid timestamp
    return isinstance(value, Real) and not isinstance(value, bool)


def decode_timings(compact: Sequence[object]) -> List[Tuple[float, float]]:
    """Expand a CompactTimings list back into (start, end) tuples.

    Raises:
        ValueError: If an element is neither a number nor a pair of numbers.
    """
    spans: List[Tuple[float, float]] = []
    last_end = 0.0
    for index, element in enumerate(compact):
        if _is_number(element):
            end = float(element)  # type: ignore[arg-type]
            spans.append((last_end, end))
        elif (
            isinstance(element, (list, tuple))
            and len(element) == 2
            and all(_is_number(v) for v in element)
        ):
            start, end = float(element[0]), float(element[1])
            spans.append((start, end))
        else:
            raise ValueError(
                "Invalid timing element at index {}: {!r}".format(index, element)
            )
        last_end = end
    return spans
