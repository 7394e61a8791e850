"""Environment defaults and validation of the project configuration.

WHY: A bad configuration is the one mistake that can destroy the hash
cache: a run with no output groups observes no files, so every cached
entry would be purged. Configuration is therefore checked in full before
the pipeline touches the cache. Parsing the configuration file (JSON5 or
otherwise) is left to the embedding application.

HOW: A .env file, if present, is loaded on import and may override the
run defaults below. ProjectConfig and OutputGroup are strict pydantic
models; load_project_config() turns any validation failure into
FatalConfigError.

RULES:
- Run defaults can be overridden via environment variables
- Invalid configuration raises FatalConfigError, never a pydantic error
- A missing or empty model path is a configuration error
- outputs is required and must hold at least one group
- Unknown keys are rejected, so a misspelled key fails loudly
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from word_times.core.errors import FatalConfigError

# WORD_TIMES_* overrides may come from a .env in the working directory
load_dotenv()

# ---------------------------------------------------------------------------
# Supported audio file extensions
# ---------------------------------------------------------------------------

AUDIO_EXTENSIONS: set[str] = {
    ".aac", ".aiff", ".flac", ".m4a", ".mp3",
    ".ogg", ".opus", ".wav", ".webm", ".wma",
}
"""Extensions stripped when deriving output keys (lowercase, with dot)."""

# ---------------------------------------------------------------------------
# Run defaults
# ---------------------------------------------------------------------------

DEFAULT_CACHE_PATH = os.getenv("WORD_TIMES_CACHE", ".wordtimescache")
DEFAULT_SAMPLE_RATE = int(os.getenv("WORD_TIMES_SAMPLE_RATE", "16000"))
DEFAULT_MAX_WORKERS = int(os.getenv("WORD_TIMES_MAX_WORKERS", "1"))


# ---------------------------------------------------------------------------
# Project configuration models
# ---------------------------------------------------------------------------


class OutputGroup(BaseModel):
    """One output file and the glob patterns whose matches feed it.

    RULES:
    - file is resolved against the working root
    - globs must contain at least one pattern
    """

    model_config = ConfigDict(extra="forbid")

    file: str = Field(min_length=1, description="Output JSON file path.")
    globs: List[str] = Field(
        min_length=1,
        description="Glob patterns, relative to the working root.",
    )


class ProjectConfig(BaseModel):
    """Validated project configuration consumed by the pipeline.

    WHY: The pipeline needs a typed view of the configuration so mistakes
    (missing model path, empty glob list, bad worker count) surface before
    the cache is touched.

    RULES:
    - model must be a non-empty path
    - outputs must hold at least one group
    - cache defaults to DEFAULT_CACHE_PATH
    - pretty selects tab-indented output JSON
    - keep_hash_on_failure=True keeps a failed file's new hash committed
    """

    model_config = ConfigDict(extra="forbid")

    model: str = Field(description="Path to the recognition model.")
    cache: str = Field(default=DEFAULT_CACHE_PATH, description="Hash cache file path.")
    pretty: bool = Field(default=False, description="Write indented output JSON.")
    outputs: List[OutputGroup] = Field(
        min_length=1,
        description="Output groups, processed in order.",
    )
    sample_rate: int = Field(default=DEFAULT_SAMPLE_RATE, gt=0)
    max_workers: int = Field(default=DEFAULT_MAX_WORKERS, ge=1)
    file_timeout_s: Optional[float] = Field(default=None, gt=0)
    keep_hash_on_failure: bool = False

    @field_validator("model")
    @classmethod
    def check_model_path(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("No model path found in configuration.")
        return value


def load_project_config(data: Mapping[str, Any]) -> ProjectConfig:
    """Validate already-parsed configuration data into a ProjectConfig.

    Raises:
        FatalConfigError: If data is not a mapping or fails validation.
    """
    if not isinstance(data, Mapping):
        raise FatalConfigError(
            "Project configuration must be a mapping, got {}".format(type(data).__name__)
        )
    try:
        return ProjectConfig.model_validate(dict(data))
    except ValidationError as e:
        raise FatalConfigError("Invalid project configuration: {}".format(e)) from e
