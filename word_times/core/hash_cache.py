"""Persistent content-hash cache for change detection between runs.

WHY: Recognition is the expensive step. A file whose bytes have not
changed since the last run does not need to be recognised again. MD5
hashes of the inputs are cheap to compute and do not depend on file
timestamps, which copies and checkouts rewrite.

HOW: HashCache keeps two structures:
  hashes: file id → MD5 hex digest, the persisted state
  unseen: ids loaded from disk that this run has not looked at yet
is_different() hashes a file, compares, and commits the new hash right
away. After all output groups ran, purge_unseen() drops entries for files
that were deleted, renamed or no longer globbed, and save() writes the
cache back.

RULES:
- Cache file: UTF-8, one "<id> <hash>" line per entry, newline-terminated
- Ids containing a space, or starting with a quote, are written quoted:
  "<id with space> <hash>"
- Lines are split on "\n" only; a trailing "\r" is stripped
- Blank and malformed lines are skipped on load
- Missing cache file → empty cache; unreadable cache file → FatalCacheIOError
- unseen only shrinks during a run; it is refilled only by load()
- is_different() is atomic per call (threading.Lock)
- Two processes sharing one cache file are not synchronized
"""

from __future__ import annotations

import hashlib
import logging
import threading
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Set, Tuple, Union

from word_times.config import DEFAULT_CACHE_PATH
from word_times.core.errors import FatalCacheIOError

logger = logging.getLogger(__name__)

_HASH_CHUNK_SIZE = 1024 * 1024


def compute_file_hash(path: Union[str, Path]) -> str:
    """Return the MD5 hex digest of a file's bytes, read in 1 MiB chunks."""
    digest = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def parse_cache_line(line: str) -> Optional[Tuple[str, str]]:
    """Parse one cache file line into (file_id, hash).

    WHY: File ids may contain spaces, so a plain split() is ambiguous.

    HOW: A line starting with a double quote holds the id between that
    quote and the last quote that is followed by a space; the hash is
    everything after that space. Hashes never contain a quote, so ids
    with inner quotes still parse. Any other line holds the id up to the
    first space and the hash after it.

    RULES:
    - Returns None for blank or malformed lines
    - A quoted id must be followed by exactly one space before the hash
    - Empty ids and empty hashes are malformed
    """
    line = line.rstrip("\r\n")
    if not line:
        return None

    if line.startswith('"'):
        close = line.rfind('" ', 1)
        if close == -1:
            return None
        file_id = line[1:close]
        file_hash = line[close + 2:]
    else:
        space = line.find(" ")
        if space == -1:
            return None
        file_id = line[:space]
        file_hash = line[space + 1:]

    if not file_id or not file_hash:
        return None
    return file_id, file_hash


def format_cache_line(file_id: str, file_hash: str) -> str:
    """Format one cache entry as a newline-terminated line.

    Ids containing a space or starting with a double quote are quoted.
    """
    if " " in file_id or file_id.startswith('"'):
        return '"{}" {}\n'.format(file_id, file_hash)
    return "{} {}\n".format(file_id, file_hash)


class HashCache:
    """MD5 hash cache keyed by file ids relative to a root directory.

    WHY: The pipeline asks one question per candidate file: "did this
    change since the last run?" The cache answers it and remembers the
    answer for the next run.

    HOW: load() fills hashes and unseen from the cache file. Each
    is_different() call removes the id from unseen and compares hashes
    under a lock. purge_unseen() and save() run once at the end.

    RULES:
    - cache_path is resolved against the process working directory
    - root (default: working directory) is where file ids resolve
    - A changed or new file's hash is stored at check time, not at save()
    """

    def __init__(
        self,
        cache_path: Union[str, Path] = DEFAULT_CACHE_PATH,
        root: Optional[Union[str, Path]] = None,
    ) -> None:
        self.cache_path = Path(cache_path).resolve()
        self.root = Path(root).resolve() if root is not None else Path.cwd()
        self._hashes: Dict[str, str] = {}
        self._unseen: Set[str] = set()
        self._lock = threading.Lock()

    def __contains__(self, file_id: object) -> bool:
        with self._lock:
            return file_id in self._hashes

    def __len__(self) -> int:
        with self._lock:
            return len(self._hashes)

    def get(self, file_id: str) -> Optional[str]:
        """Return the stored hash for file_id, or None."""
        with self._lock:
            return self._hashes.get(file_id)

    @property
    def unseen(self) -> FrozenSet[str]:
        """Snapshot of ids not yet re-observed in this run."""
        with self._lock:
            return frozenset(self._unseen)

    def load(self) -> None:
        """Load entries from the cache file, if it exists.

        RULES:
        - Every parsed id is added to both hashes and unseen
        - Later duplicate lines overwrite earlier ones

        Raises:
            FatalCacheIOError: If the file exists but cannot be read or
                is not valid UTF-8.
        """
        if not self.cache_path.exists():
            logger.info("No hash cache at %s, starting empty", self.cache_path)
            return

        try:
            text = self.cache_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FatalCacheIOError(str(self.cache_path), str(e)) from e

        loaded = 0
        with self._lock:
            for lineno, line in enumerate(text.split("\n"), start=1):
                entry = parse_cache_line(line)
                if entry is None:
                    if line.strip():
                        logger.debug("Skipping malformed cache line %d: %r", lineno, line)
                    continue
                file_id, file_hash = entry
                self._hashes[file_id] = file_hash
                self._unseen.add(file_id)
                loaded += 1

        logger.info("Loaded %d cache entries from %s", loaded, self.cache_path)

    def is_different(
        self,
        file_id: str,
        root: Optional[Union[str, Path]] = None,
    ) -> bool:
        """Check whether a file changed since its hash was last stored.

        HOW: Hashes the file at root / file_id outside the lock, then
        reads, compares and conditionally writes the stored hash inside it.

        RULES:
        - file_id is removed from unseen first, even if hashing then fails
        - New or changed file → stored hash overwritten, returns True
        - Unchanged file → stored hash untouched, returns False

        Raises:
            OSError: If the file cannot be read.
        """
        base = Path(root) if root is not None else self.root
        with self._lock:
            self._unseen.discard(file_id)
        file_hash = compute_file_hash(base / file_id)

        with self._lock:
            if self._hashes.get(file_id) == file_hash:
                return False
            self._hashes[file_id] = file_hash
            return True

    def invalidate(self, file_id: str) -> bool:
        """Forget the stored hash for file_id so the next run reprocesses it.

        Returns:
            True if an entry was removed.
        """
        with self._lock:
            self._unseen.discard(file_id)
            return self._hashes.pop(file_id, None) is not None

    def purge_unseen(self) -> List[str]:
        """Remove entries for ids not observed in this run.

        Returns:
            The removed ids, sorted.
        """
        with self._lock:
            missing = sorted(self._unseen)
            for file_id in missing:
                self._hashes.pop(file_id, None)
            self._unseen.clear()

        if missing:
            logger.info("Purged %d stale cache entries", len(missing))
        return missing

    def save(self) -> None:
        """Write all entries back to the cache file.

        Raises:
            FatalCacheIOError: If the file cannot be written.
        """
        with self._lock:
            text = "".join(
                format_cache_line(file_id, file_hash)
                for file_id, file_hash in self._hashes.items()
            )
            count = len(self._hashes)

        try:
            self.cache_path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise FatalCacheIOError(str(self.cache_path), str(e)) from e

        logger.info("Saved %d cache entries to %s", count, self.cache_path)
