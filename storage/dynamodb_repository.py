"""DynamoDB-backed incremental state storage."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from processor.errors import InvalidArgumentError, StorageError
from processor.models import IncrementalState
from storage.state_codec import STATE_SCHEMA_VERSION, deserialize_state, serialize_state

logger = logging.getLogger(__name__)


class IncrementalStateDynamoDBRepository:
    """Stores one item per cache key in a DynamoDB table."""

    KEY_ATTRIBUTE = 'cache_key'

    def __init__(self, table_name: str, max_cache_age: timedelta = timedelta(0)):
        """
        Initialize DynamoDB table reference.

        Args:
            table_name: Name of the DynamoDB table (hash key ``cache_key``)
            max_cache_age: Snapshots whose last full sync is older than this
                are discarded; zero disables expiry
        """
        if max_cache_age < timedelta(0):
            raise InvalidArgumentError(
                'max_cache_age', 'must be greater than or equal to 0'
            )
        self.table_name = table_name
        self.max_cache_age = max_cache_age
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized state repository for table: {table_name}")

    def get(self, cache_key: str) -> Optional[IncrementalState]:
        """
        Load state for a cache key.

        Unparsable, mismatched or stale items are deleted and reported as
        absent.

        Raises:
            StorageError: If the table cannot be read
        """
        try:
            response = self.table.get_item(Key={self.KEY_ATTRIBUTE: cache_key})
        except ClientError as e:
            logger.error(f"Error reading state item {cache_key}: {e}")
            raise StorageError(e) from e

        item = response.get('Item')
        if item is None:
            return None

        try:
            state = deserialize_state(item['state'])
        except (KeyError, ValueError) as e:
            logger.warning(f"Discarding unreadable state item {cache_key}: {e}")
            self._delete(cache_key)
            return None

        if self._is_stale(state):
            logger.info(f"Discarding stale state item {cache_key}")
            self._delete(cache_key)
            return None

        return state

    def set(self, cache_key: str, state: IncrementalState) -> None:
        """
        Write state for a cache key.

        Raises:
            StorageError: If the item cannot be written
        """
        try:
            self.table.put_item(Item=self._state_to_item(cache_key, state))
        except ClientError as e:
            logger.error(f"Error writing state item {cache_key}: {e}")
            raise StorageError(e) from e

    def _state_to_item(self, cache_key: str, state: IncrementalState) -> Dict[str, Any]:
        """
        Convert state to a DynamoDB item.

        The snapshot is kept as one JSON string so that the codec, not
        DynamoDB's number types, decides how dates round-trip.
        """
        item = {
            self.KEY_ATTRIBUTE: cache_key,
            'schema_version': STATE_SCHEMA_VERSION,
            'last_full_sync': state.last_full_sync.isoformat(),
            'state': serialize_state(state)
        }

        # Let DynamoDB TTL clean up items that get() would discard anyway
        if self.max_cache_age:
            item['expires_at'] = int((state.last_full_sync + self.max_cache_age).timestamp())

        return item

    def _is_stale(self, state: IncrementalState) -> bool:
        if not self.max_cache_age:
            return False
        return datetime.now(timezone.utc) - state.last_full_sync > self.max_cache_age

    def _delete(self, cache_key: str) -> None:
        try:
            self.table.delete_item(Key={self.KEY_ATTRIBUTE: cache_key})
        except ClientError as e:
            raise StorageError(e) from e
