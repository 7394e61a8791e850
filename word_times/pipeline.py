"""Incremental per-output-group recognition pipeline.

WHY: This is the orchestration core. It decides which audio files need
recognition, runs them, and merges the results into each group's output
file, while the hash cache remembers what was seen for the next run.

HOW: run_pipeline() loads the cache, then for every configured output
group calls process_group():
  1. Expand the group's glob patterns into file ids
  2. Load the existing output (corrupt → empty)
  3. Select files that changed or have no output entry yet
  4. Transcode → recognise → encode each selected file
  5. Merge results into the output and write it
After the last group the model is freed, stale cache entries are purged
and the cache is saved.

RULES:
- A file is selected iff its hash changed OR its output key is missing
- Per-file errors are logged and reported; the group still gets written
- On a per-file failure the file's hash is invalidated so the next run
  retries it, unless keep_hash_on_failure is set
- Files within a group may run on a thread pool (max_workers); results
  are merged on the calling thread in selection order
- model.free() is called once, even when a group raises, and releases
  the engine at most once when the caller also frees it
- purge_unseen() + save() run exactly once, after every group completed
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from wcmatch import glob as wcglob

from word_times.adapters.base import RecognitionModel, Transcoder, recognize
from word_times.config import AUDIO_EXTENSIONS, DEFAULT_SAMPLE_RATE, OutputGroup, ProjectConfig
from word_times.core.errors import PerFileProcessingError
from word_times.core.hash_cache import HashCache
from word_times.core.ir import CompactTimings, OutputRecord
from word_times.core.output_store import load_output, merge_output, save_output
from word_times.core.timings import encode_timings

logger = logging.getLogger(__name__)

_GLOB_FLAGS = wcglob.GLOBSTAR | wcglob.BRACE


@dataclass
class GroupReport:
    """Outcome of processing one output group.

    RULES:
    - candidates: every file id the globs matched, deduplicated
    - selected: file ids chosen for recognition, in order
    - recorded: output keys written this run
    - failures: file id → error message for files that failed
    """

    output_file: Path
    candidates: List[str] = field(default_factory=list)
    selected: List[str] = field(default_factory=list)
    recorded: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)


@dataclass
class RunReport:
    """Outcome of a full pipeline run."""

    groups: List[GroupReport] = field(default_factory=list)
    purged: List[str] = field(default_factory=list)

    @property
    def failures(self) -> Dict[str, str]:
        merged: Dict[str, str] = {}
        for group in self.groups:
            merged.update(group.failures)
        return merged


def output_key(file_id: str) -> str:
    """Derive the output key for a file id: basename minus audio extension.

    Only known audio extensions are stripped, so "take.1" stays "take.1".
    """
    name = file_id.replace("\\", "/").rsplit("/", 1)[-1]
    stem, ext = os.path.splitext(name)
    if ext.lower() in AUDIO_EXTENSIONS:
        return stem
    return name


def expand_globs(patterns: Iterable[str], root: Union[str, Path]) -> List[str]:
    """Resolve glob patterns against root into relative POSIX file ids.

    RULES:
    - "**" matches recursively and "{a,b}" expands to both alternatives
    - Dotfiles are not matched
    - Only regular files are returned
    - Matches are sorted per pattern; duplicates across patterns dropped
    """
    root_path = Path(root)
    seen: set = set()
    files: List[str] = []
    for pattern in patterns:
        matches = wcglob.glob(pattern, flags=_GLOB_FLAGS, root_dir=str(root_path))
        for match in sorted(matches):
            if not (root_path / match).is_file():
                continue
            file_id = Path(match).as_posix()
            if file_id not in seen:
                seen.add(file_id)
                files.append(file_id)
    return files


def process_file(
    file_id: str,
    model: RecognitionModel,
    transcoder: Transcoder,
    root: Path,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    timeout_s: Optional[float] = None,
) -> CompactTimings:
    """Transcode, recognise and encode a single file.

    Raises:
        PerFileProcessingError: On transcoding, recognition or timeout failure.
    """
    deadline = time.monotonic() + timeout_s if timeout_s else None
    chunks = transcoder.decode(root / file_id, sample_rate)
    words = recognize(model, chunks, sample_rate, deadline=deadline, label=file_id)
    logger.info("%s: %s", file_id, " ".join(w.word for w in words))
    return encode_timings(words)


def _select_files(
    candidates: List[str],
    cache: HashCache,
    output: OutputRecord,
    root: Path,
    report: GroupReport,
) -> List[str]:
    selected: List[str] = []
    for file_id in candidates:
        try:
            changed = cache.is_different(file_id, root)
        except OSError as e:
            # File vanished or became unreadable between glob and hash
            report.failures[file_id] = str(e)
            logger.error("Cannot hash %s: %s", file_id, e)
            continue
        if changed or output_key(file_id) not in output:
            selected.append(file_id)
    return selected


def process_group(
    group: OutputGroup,
    config: ProjectConfig,
    cache: HashCache,
    model: RecognitionModel,
    transcoder: Transcoder,
    root: Union[str, Path],
) -> GroupReport:
    """Run the expand → diff → process → merge → persist steps for one group.

    HOW: Diffing happens on the calling thread. Selected files are
    submitted to a ThreadPoolExecutor; each future's outcome is collected
    in selection order, failures are recorded, and successful results are
    merged into the loaded output before it is saved.

    Returns:
        A GroupReport describing what happened.
    """
    root_path = Path(root)
    out_path = root_path / group.file
    report = GroupReport(output_file=out_path)

    report.candidates = expand_globs(group.globs, root_path)
    existing = load_output(out_path)
    report.selected = _select_files(report.candidates, cache, existing, root_path, report)

    logger.info(
        "%s: %d file(s) matched, %d to process",
        group.file, len(report.candidates), len(report.selected),
    )

    updates: OutputRecord = {}
    if report.selected:
        with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
            futures = [
                (file_id, executor.submit(
                    process_file,
                    file_id,
                    model,
                    transcoder,
                    root_path,
                    config.sample_rate,
                    config.file_timeout_s,
                ))
                for file_id in report.selected
            ]
            for file_id, future in futures:
                try:
                    timings = future.result()
                except PerFileProcessingError as e:
                    _record_failure(report, cache, config, file_id, str(e))
                    continue
                except Exception as e:
                    logger.exception("Unexpected error processing %s", file_id)
                    _record_failure(report, cache, config, file_id, repr(e))
                    continue
                key = output_key(file_id)
                updates[key] = timings
                report.recorded.append(key)

    save_output(out_path, merge_output(existing, updates), pretty=config.pretty)
    logger.info(
        "Wrote %s (%d updated, %d failed)",
        out_path, len(report.recorded), len(report.failures),
    )
    return report


def _record_failure(
    report: GroupReport,
    cache: HashCache,
    config: ProjectConfig,
    file_id: str,
    message: str,
) -> None:
    report.failures[file_id] = message
    logger.error("Failed to process %s: %s", file_id, message)
    if not config.keep_hash_on_failure:
        cache.invalidate(file_id)


def run_pipeline(
    config: ProjectConfig,
    model: RecognitionModel,
    transcoder: Transcoder,
    root: Optional[Union[str, Path]] = None,
) -> RunReport:
    """Run every output group and persist the hash cache once.

    Args:
        config: Validated project configuration.
        model: Loaded recognition model; freed by this function. Freeing
               is idempotent, so callers may also wrap the run in
               `with model:`.
        transcoder: Audio decoder.
        root: Working root for globs, outputs and the cache path
              (default: current directory).

    Returns:
        A RunReport with per-group outcomes and purged cache ids.

    Raises:
        FatalCacheIOError: If the cache cannot be read or written.
    """
    root_path = Path(root).resolve() if root is not None else Path.cwd()
    cache = HashCache(root_path / config.cache, root=root_path)
    report = RunReport()

    try:
        cache.load()
        for group in config.outputs:
            report.groups.append(
                process_group(group, config, cache, model, transcoder, root_path)
            )
    finally:
        model.free()

    report.purged = cache.purge_unseen()
    cache.save()

    logger.info(
        "Run complete: %d group(s), %d failure(s), %d stale cache entries purged",
        len(report.groups), len(report.failures), len(report.purged),
    )
    return report
