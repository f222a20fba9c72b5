"""Persistent file system storage backend."""

import hashlib
import logging
import os
import tempfile
from pathlib import Path

from ..exceptions import CacheKeyError

logger = logging.getLogger(__name__)

FILE_SUFFIX = ".json"


class FileStorage:
    """Storage that keeps one file per key in a directory.

    Records survive process restarts, which makes this the closest analogue
    of a browser's persistent key/value store. File names are the SHA256 of
    the key so any key is a valid file name. Writes go to a temporary file
    that is atomically renamed over the target.

    Attributes:
        directory: Directory holding the record files
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        """Initialize the storage.

        Args:
            directory: Target directory, created if missing
        """
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, key: str) -> Path:
        if not key:
            raise CacheKeyError("Key cannot be empty", key=key)
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._directory / f"{digest}{FILE_SUFFIX}"

    def get_item(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        path = self._path_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Stored key '{key}' in {path.name}")

    def remove_item(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)
