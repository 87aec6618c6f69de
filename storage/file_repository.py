"""File-based incremental state storage."""
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from processor.errors import InvalidArgumentError, StorageError
from processor.models import IncrementalState
from storage.state_codec import deserialize_state, serialize_state

logger = logging.getLogger(__name__)


class IncrementalStateFileRepository:
    """Stores one JSON document per cache key in a directory."""

    def __init__(
        self,
        directory: str,
        max_cache_age: timedelta = timedelta(0),
        encoding: str = 'utf-8'
    ):
        """
        Initialize the repository.

        Args:
            directory: Existing directory to store state files in
            max_cache_age: Snapshots whose last full sync is older than this
                are discarded; zero disables expiry
            encoding: Text encoding of the state files
        """
        if max_cache_age < timedelta(0):
            raise InvalidArgumentError(
                'max_cache_age', 'must be greater than or equal to 0'
            )
        path = Path(directory).resolve()
        if not path.exists():
            raise InvalidArgumentError('directory', 'folder does not exist')
        if not path.is_dir():
            raise InvalidArgumentError('directory', 'must be a directory')

        self.directory = path
        self.max_cache_age = max_cache_age
        self.encoding = encoding

    def get(self, cache_key: str) -> Optional[IncrementalState]:
        """
        Load state for a cache key.

        Unparsable, mismatched or stale files are deleted and reported as
        absent.

        Raises:
            StorageError: If the file exists but cannot be read
        """
        cache_file = self.get_cache_file_path(cache_key)
        if not cache_file.exists():
            return None

        try:
            document = cache_file.read_text(encoding=self.encoding)
        except OSError as e:
            raise StorageError(e) from e

        try:
            state = deserialize_state(document)
        except ValueError as e:
            logger.warning(f"Discarding unreadable state file {cache_file}: {e}")
            self._remove(cache_file)
            return None

        if self._is_stale(state):
            logger.info(f"Discarding stale state file {cache_file}")
            self._remove(cache_file)
            return None

        return state

    def set(self, cache_key: str, state: IncrementalState) -> None:
        """
        Write state for a cache key.

        Raises:
            StorageError: If the file cannot be written
        """
        cache_file = self.get_cache_file_path(cache_key)
        try:
            cache_file.write_text(serialize_state(state), encoding=self.encoding)
        except OSError as e:
            raise StorageError(e) from e

    def get_cache_file_path(self, cache_key: str) -> Path:
        return self.directory / f"{cache_key}.json"

    def _is_stale(self, state: IncrementalState) -> bool:
        if not self.max_cache_age:
            return False
        return datetime.now(timezone.utc) - state.last_full_sync > self.max_cache_age

    def _remove(self, cache_file: Path) -> None:
        try:
            cache_file.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(e) from e
