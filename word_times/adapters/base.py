"""Abstract transcoder and recognition interfaces.

WHY: The pipeline needs PCM audio and word timings, but how they are
produced (an ffmpeg subprocess, a Vosk model, a cloud API) is not its
concern. These base classes fix the contract so the core, tests,
and any engine integration can all work with the same calls.

HOW: Transcoder.decode() yields PCM chunks. RecognitionModel is the
expensive shared resource (loaded once per run, freed once). It creates
a Recognizer per file, which is fed chunks and finalized into
WordResults. recognize() ties the two together with guaranteed cleanup
and an optional deadline.

RULES:
- PCM is mono, signed 16-bit little-endian, at the requested sample rate
- A recognizer is used for exactly one file and always closed
- RecognitionModel.free() releases the engine at most once, so the
  pipeline and a surrounding `with model:` block can both call it
- To add an engine: subclass RecognitionModel (implementing release())
  and Recognizer, call words_from_engine_result() on the engine's final
  result if it is Vosk-shaped, and raise PerFileProcessingError
  subclasses on failure
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Iterable, List, Optional

from word_times.core.errors import FileTimeoutError, MalformedResultError
from word_times.core.ir import WordResult


class Transcoder(ABC):
    """Decodes an audio file into a raw PCM byte stream."""

    @abstractmethod
    def decode(self, path: Path, sample_rate: int) -> Iterable[bytes]:
        """Decode an audio file into mono s16le PCM chunks.

        Args:
            path: Absolute path of the audio file.
            sample_rate: Target sample rate in Hz.

        Returns:
            An iterable of PCM byte chunks. If it has a close() method,
            the caller closes it when done, including on early exit.

        Raises:
            TranscodeError: If the transcoder cannot start or exits with
                a non-zero status.
        """


class Recognizer(ABC):
    """Streaming recognizer for a single file.

    WHY: Engines deliver results through callbacks or events. This
    interface hides that behind a plain feed/finalize pair.
    """

    @abstractmethod
    def feed(self, chunk: bytes) -> None:
        """Accept the next PCM chunk."""

    @abstractmethod
    def finalize(self) -> List[WordResult]:
        """Flush the engine and return all recognised words in order.

        Raises:
            RecognitionError: If the engine fails or its result is malformed.
        """

    def close(self) -> None:
        """Release engine resources held by this recognizer."""


class RecognitionModel(ABC):
    """A loaded recognition model shared by every file in a run.

    RULES:
    - Acquired once per run by the caller; run_pipeline() frees it
    - Subclasses implement release(); callers only ever call free()
    - free() is idempotent: release() runs on the first call only
    """

    @abstractmethod
    def create_recognizer(self, sample_rate: int) -> Recognizer:
        """Create a fresh recognizer for one file."""

    @abstractmethod
    def release(self) -> None:
        """Release the engine's model resources. Called at most once."""

    def free(self) -> None:
        """Release the model unless it was already released."""
        if getattr(self, "_freed", False):
            return
        self._freed = True
        self.release()

    def __enter__(self) -> "RecognitionModel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.free()


def recognize(
    model: RecognitionModel,
    chunks: Iterable[bytes],
    sample_rate: int,
    deadline: Optional[float] = None,
    label: str = "",
) -> List[WordResult]:
    """Run a fresh recognizer over a PCM stream.

    HOW: Creates a recognizer, feeds every chunk, then finalizes. The
    deadline (a time.monotonic() value) is checked after each chunk and
    before finalizing.

    RULES:
    - The recognizer and the chunk stream are closed on every exit path
    - Expired deadline → FileTimeoutError

    Args:
        model: The run's recognition model.
        chunks: PCM chunks from Transcoder.decode().
        sample_rate: Sample rate of the PCM stream.
        deadline: Optional time.monotonic() deadline.
        label: File name used in error messages.

    Returns:
        Recognised words in order.
    """
    started = time.monotonic()
    recognizer: Optional[Recognizer] = None
    try:
        recognizer = model.create_recognizer(sample_rate)
        for chunk in chunks:
            recognizer.feed(chunk)
            _check_deadline(deadline, started, label)
        _check_deadline(deadline, started, label)
        return recognizer.finalize()
    finally:
        close = getattr(chunks, "close", None)
        if callable(close):
            close()
        if recognizer is not None:
            recognizer.close()


def _check_deadline(deadline: Optional[float], started: float, label: str) -> None:
    if deadline is None:
        return
    now = time.monotonic()
    if now > deadline:
        raise FileTimeoutError(
            "Timed out processing {} after {:.1f}s".format(label or "file", now - started)
        )


def words_from_engine_result(result: Any, label: str = "") -> List[WordResult]:
    """Convert a Vosk-style final result into WordResults.

    WHY: Vosk (and engines mimicking it) return
    {"text": "...", "result": [{"word", "start", "end", "conf"}, ...]}.
    When the audio has no speech, or the engine misbehaves, the "result"
    list is missing entirely.

    RULES:
    - Missing or non-list "result" → MalformedResultError
    - Missing "conf" defaults to 1.0
    - Entries missing word/start/end → MalformedResultError
    """
    if not isinstance(result, Mapping) or not isinstance(result.get("result"), list):
        raise MalformedResultError(
            "Bad result for {}: {!r}".format(label or "file", result)
        )

    words: List[WordResult] = []
    for entry in result["result"]:
        try:
            words.append(WordResult(
                word=str(entry["word"]),
                start=float(entry["start"]),
                end=float(entry["end"]),
                confidence=float(entry.get("conf", 1.0)),
            ))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise MalformedResultError(
                "Bad word entry for {}: {!r}".format(label or "file", entry)
            ) from e
    return words
