"""Interfaces to the external transcoder and recognition engine.

WHY: Decoding audio and recognising speech are done by third-party tools
(ffmpeg, Vosk, ...). The pipeline only needs a narrow contract from each,
so engines can be swapped or faked in tests without touching the core.

HOW: base.py defines the Transcoder, RecognitionModel and Recognizer
abstract classes, plus recognize() which drives a recognizer over a PCM
stream and words_from_engine_result() which parses Vosk-style results.

RULES:
- Adapters raise PerFileProcessingError subclasses for per-file failures
- The pipeline never imports a concrete engine
"""

from word_times.adapters.base import (
    RecognitionModel,
    Recognizer,
    Transcoder,
    recognize,
    words_from_engine_result,
)

__all__ = [
    "RecognitionModel",
    "Recognizer",
    "Transcoder",
    "recognize",
    "words_from_engine_result",
]
