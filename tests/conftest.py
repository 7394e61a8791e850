"""Shared test fixtures and fakes for the word_times test suite.

WHY: The pipeline talks to two external collaborators, a transcoder and a
recognition engine. Tests must run without ffmpeg or a speech model, and
need to count how often recognition actually happened.

HOW: FakeTranscoder "decodes" a file by yielding its raw bytes in small
chunks. FakeModel's recognizers treat the fed bytes as UTF-8 text and
emit one back-to-back half-second word per whitespace-separated token,
going through words_from_engine_result() like a real Vosk adapter would.
Text starting with "MALFORMED" yields an engine result without a word
list.

RULES:
- Audio fixture files are plain text; their content is the "speech"
- FakeModel.recognized lists every file's text in recognition order
- FakeModel.freed counts how often the engine was actually released
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Iterator, List, Optional, Set

import pytest

from word_times.adapters.base import RecognitionModel, Recognizer, Transcoder, words_from_engine_result
from word_times.config import ProjectConfig
from word_times.core.errors import TranscodeError
from word_times.core.ir import WordResult

WORD_DURATION_S = 0.5


class FakeRecognizer(Recognizer):
    def __init__(self, model: "FakeModel") -> None:
        self._model = model
        self._data = bytearray()
        self.closed = False

    def feed(self, chunk: bytes) -> None:
        self._data.extend(chunk)

    def finalize(self) -> List[WordResult]:
        text = self._data.decode("utf-8")
        with self._model.lock:
            self._model.recognized.append(text)
        if text.startswith("MALFORMED"):
            return words_from_engine_result({"text": ""}, label="fake")
        entries = [
            {
                "word": token,
                "start": i * WORD_DURATION_S,
                "end": (i + 1) * WORD_DURATION_S,
                "conf": 0.9,
            }
            for i, token in enumerate(text.split())
        ]
        return words_from_engine_result({"text": text, "result": entries})

    def close(self) -> None:
        self.closed = True


class FakeModel(RecognitionModel):
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.recognized: List[str] = []
        self.recognizers: List[FakeRecognizer] = []
        self.freed = 0

    def create_recognizer(self, sample_rate: int) -> FakeRecognizer:
        recognizer = FakeRecognizer(self)
        with self.lock:
            self.recognizers.append(recognizer)
        return recognizer

    def release(self) -> None:
        self.freed += 1


class FakeTranscoder(Transcoder):
    def __init__(
        self,
        chunk_size: int = 4,
        fail_on: Optional[Set[str]] = None,
        delay_s: float = 0.0,
    ) -> None:
        self.chunk_size = chunk_size
        self.fail_on = fail_on or set()
        self.delay_s = delay_s
        self.decoded: List[Path] = []

    def decode(self, path: Path, sample_rate: int) -> Iterator[bytes]:
        self.decoded.append(path)
        if path.name in self.fail_on:
            raise TranscodeError("Failure on {}: transcoder exited with status 1".format(path))
        return self._chunks(path.read_bytes())

    def _chunks(self, data: bytes) -> Iterator[bytes]:
        for i in range(0, len(data), self.chunk_size):
            if self.delay_s:
                time.sleep(self.delay_s)
            yield data[i:i + self.chunk_size]


def write_audio(root: Path, file_id: str, text: str) -> Path:
    """Create a fake audio file whose "speech" is text."""
    path = root / file_id
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def make_config(**overrides) -> ProjectConfig:
    data = {
        "model": "models/fake",
        "cache": ".wordtimescache",
        "outputs": [{"file": "out.json", "globs": ["*.wav"]}],
    }
    data.update(overrides)
    return ProjectConfig.model_validate(data)


@pytest.fixture
def model() -> FakeModel:
    return FakeModel()


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder()
