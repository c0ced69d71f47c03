import logging
import os
import tempfile
import threading
from contextlib import contextmanager

logger = logging.getLogger(__name__)

_locks: dict[str, threading.RLock] = {}
_locks_guard = threading.Lock()


class PersistenceError(Exception):
    """Raised if the dataset file cannot be read or written"""


class NotFoundError(PersistenceError):
    """Raised if the dataset file does not exist yet"""


def _lock_for(path: str) -> threading.RLock:
    with _locks_guard:
        lock = _locks.get(path)
        if lock is None:
            lock = threading.RLock()
            _locks[path] = lock
        return lock


class FileGateway:
    """
    Reads and writes the Turtle document backing the local ontology.

    Every gateway for the same file shares one lock; callers performing a
    read-modify-write cycle must hold it via ``transaction()``.
    """

    def __init__(self, path: str):
        self.path = os.path.abspath(path)
        self._lock = _lock_for(self.path)

    @contextmanager
    def transaction(self):
        with self._lock:
            yield self

    def read(self) -> str:
        """
        Return the current document text.

        Raises NotFoundError if the file does not exist and PersistenceError
        on any other I/O failure.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError as e:
            logger.debug("Dataset file not found: %s", self.path)
            raise NotFoundError("Dataset file does not exist") from e
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Could not read dataset file %s: %s", self.path, e)
            raise PersistenceError("Could not read the dataset file") from e

    def write(self, text: str) -> None:
        """Replace the document with ``text``; the old content stays intact if writing fails."""
        directory = os.path.dirname(self.path)
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=".", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            logger.debug("Could not write dataset file %s: %s", self.path, e)
            raise PersistenceError("Could not save the dataset file") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)
        logger.debug("Dataset file written (%d bytes)", len(text.encode("utf-8")))
