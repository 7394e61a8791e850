"""Exception taxonomy shared by the cache, output store and pipeline.

WHY: The pipeline has to tell run-level failures (bad configuration, an
unreadable cache) apart from failures that only affect one file. Typed
exceptions make that split explicit at every except clause.

HOW: Fatal* errors propagate to the caller and stop the run. The
RecoverableOutputParseError is logged by the output store and replaced by
an empty output. PerFileProcessingError and its subclasses are caught at
the per-file boundary in the pipeline.

RULES:
- Fatal errors abort before (or instead of) saving the cache
- Per-file errors never cancel sibling files or groups
- Messages always name the offending path
"""

from __future__ import annotations


class FatalConfigError(ValueError):
    """Raised when the project configuration is missing or invalid.

    RULES:
    - Raised before any cache or output group work begins
    """


class FatalCacheIOError(OSError):
    """Raised when the hash cache file exists but cannot be read or written."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__("Hash cache {}: {}".format(path, message))


class RecoverableOutputParseError(ValueError):
    """An existing output file could not be parsed.

    WHY: A corrupt output file is treated as "nothing cached" so the run
    can rebuild it. The error is created for logging and reporting only.
    """

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__("Unreadable output file {}: {}".format(path, message))


class PerFileProcessingError(Exception):
    """Base for failures that only affect a single input file."""


class TranscodeError(PerFileProcessingError):
    """The transcoder failed to start or exited with a non-zero status."""


class RecognitionError(PerFileProcessingError):
    """The recognition engine failed for one file."""


class MalformedResultError(RecognitionError):
    """The recognition engine returned a result without a word list."""


class FileTimeoutError(PerFileProcessingError, TimeoutError):
    """Processing one file took longer than the configured timeout.

    RULES:
    - Message includes the file and the elapsed seconds
    """
