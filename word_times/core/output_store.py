"""Load, validate, merge and save per-group output files.

WHY: Each output group owns one JSON file that downstream tools read.
Runs only recompute some entries, so the file is loaded first, updated
in place, and written back. A corrupt file must not stop the run: it is
treated as if nothing had been cached yet.

HOW: load_output() parses the file with json and validates it against
output_schema.json with jsonschema. Any failure is logged as a
RecoverableOutputParseError and an empty mapping is returned.
merge_output() applies new entries onto an existing mapping.
save_output() writes compact or tab-indented JSON.

RULES:
- Missing file → {} without a warning
- Invalid JSON or schema violation → {} with a warning
- Untouched keys are preserved; touched keys are overwritten
- Key insertion order is preserved on save
- Pretty output uses one tab per indent level
"""

from __future__ import annotations

import functools
import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import jsonschema

from word_times.core.errors import RecoverableOutputParseError
from word_times.core.ir import CompactTimings, OutputRecord

logger = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).resolve().parent / "output_schema.json"


@functools.lru_cache(maxsize=None)
def _output_schema() -> Dict[str, Any]:
    with open(_SCHEMA_PATH, encoding="utf-8") as f:
        return json.load(f)


def validate_output(data: Any) -> None:
    """Validate parsed output data against the output schema.

    Raises:
        jsonschema.ValidationError: If data is not a valid output record.
    """
    jsonschema.validate(instance=data, schema=_output_schema())


def load_output(path: Union[str, Path]) -> OutputRecord:
    """Load an existing output file, or return {} when there is none.

    HOW: Reads UTF-8 text, parses JSON, validates against the schema.
    Read, decode and validation errors are all recoverable.

    Args:
        path: Output file path.

    Returns:
        The parsed output mapping, or an empty dict.
    """
    out_path = Path(path)
    if not out_path.exists():
        return {}

    try:
        data = json.loads(out_path.read_text(encoding="utf-8"))
        validate_output(data)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        _warn_unreadable(out_path, str(e))
        return {}
    except jsonschema.ValidationError as e:
        _warn_unreadable(out_path, e.message)
        return {}

    return data


def _warn_unreadable(path: Path, message: str) -> None:
    error = RecoverableOutputParseError(str(path), message)
    logger.warning("%s; starting from an empty output", error)


def merge_output(
    existing: OutputRecord,
    updates: Mapping[str, CompactTimings],
) -> OutputRecord:
    """Return a new mapping with updates applied over existing entries."""
    merged: OutputRecord = dict(existing)
    merged.update(updates)
    return merged


def dump_output(record: Mapping[str, CompactTimings], pretty: bool = False) -> str:
    """Serialize an output mapping to JSON text."""
    if pretty:
        return json.dumps(record, indent="\t")
    return json.dumps(record, separators=(",", ":"))


def save_output(
    path: Union[str, Path],
    record: Mapping[str, CompactTimings],
    pretty: bool = False,
) -> Path:
    """Write an output mapping to disk.

    RULES:
    - Parent directories are created when missing
    - Text is written as UTF-8

    Returns:
        The path written.
    """
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(dump_output(record, pretty=pretty), encoding="utf-8")
    return out_path
