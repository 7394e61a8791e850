"""Data types passed between recognition, the timing codec and outputs.

WHY: Recognition adapters, the codec and the output store all speak about
the same few shapes: a recognised word with timing, the compact timing
list written to disk, and the output mapping that holds one list per
audio file. Naming them once keeps signatures readable.

HOW: WordResult is a frozen dataclass. CompactTimings and OutputRecord
are type aliases over plain lists and dicts so they serialize to JSON
without conversion.

RULES:
- All times are float seconds from the start of the audio
- A CompactTimings element is a bare end time or a [start, end] pair
- OutputRecord keys are audio basenames without their audio extension
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Union

TimingElement = Union[float, List[float]]
CompactTimings = List[TimingElement]
OutputRecord = Dict[str, CompactTimings]


@dataclass(frozen=True)
class WordResult:
    """A single recognised word with timing and confidence.

    RULES:
    - start <= end
    - confidence is carried through but not written to outputs
    """

    word: str
    start: float
    end: float
    confidence: float = 1.0
