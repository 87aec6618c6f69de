"""Notion database API client."""
import logging
import time
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

import requests

from processor.errors import InvalidArgumentError
from processor.models import DateValue, PropertyValue, QueryPage, RawRecord

logger = logging.getLogger(__name__)


class RecordSource(Protocol):
    """Paginated source of raw records."""

    def query_database(
        self,
        database_id: str,
        page_size: int,
        start_cursor: Optional[str] = None,
        filter: Optional[Dict[str, Any]] = None
    ) -> QueryPage:
        ...


class NotionDatabaseClient:
    """Client for querying Notion databases over the REST API."""

    BASE_URL = "https://api.notion.com/v1"
    NOTION_VERSION = "2022-06-28"
    RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        token: str,
        timeout: int = 30,
        max_retries: int = 3,
        base_delay: float = 1
    ):
        """
        Initialize the Notion client.

        Args:
            token: Notion integration token
            timeout: HTTP request timeout in seconds (default: 30)
            max_retries: Attempts per query before giving up (default: 3)
            base_delay: First backoff delay in seconds (default: 1)

        Raises:
            InvalidArgumentError: If max_retries is less than 1
        """
        if max_retries < 1:
            raise InvalidArgumentError('max_retries', 'must be at least 1')

        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {token}',
            'Notion-Version': self.NOTION_VERSION,
            'Content-Type': 'application/json'
        })

    def query_database(
        self,
        database_id: str,
        page_size: int,
        start_cursor: Optional[str] = None,
        filter: Optional[Dict[str, Any]] = None
    ) -> QueryPage:
        """
        Fetch one page of database records.

        Args:
            database_id: Notion database ID
            page_size: Maximum number of records in the page
            start_cursor: Cursor returned by the previous page, if any
            filter: Notion filter object, if any

        Returns:
            QueryPage with parsed records and the next cursor

        Raises:
            requests.RequestException: If all retry attempts fail
            ValueError: If the response body is malformed
        """
        body: Dict[str, Any] = {'page_size': page_size}
        if start_cursor:
            body['start_cursor'] = start_cursor
        if filter:
            body['filter'] = filter

        payload = self._post(f"{self.BASE_URL}/databases/{database_id}/query", body)
        records = [self._parse_page(page) for page in payload.get('results', [])]
        next_cursor = payload.get('next_cursor') if payload.get('has_more', True) else None

        logger.debug(
            f"Fetched {len(records)} records from database {database_id}"
        )
        return QueryPage(records=records, next_cursor=next_cursor)

    def _post(self, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST with exponential backoff on transient failures.

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        for attempt in range(self.max_retries):
            try:
                response = self.session.post(url, json=body, timeout=self.timeout)
                response.raise_for_status()
                return response.json()

            except requests.RequestException as e:
                if attempt < self.max_retries - 1 and self._is_retryable(e):
                    delay = self.base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"Notion query failed after {attempt + 1} attempt(s): {e}"
                    )
                    raise

    def _is_retryable(self, error: requests.RequestException) -> bool:
        if error.response is None:
            return True
        return error.response.status_code in self.RETRYABLE_STATUS_CODES

    def _parse_page(self, page: Dict[str, Any]) -> RawRecord:
        """
        Convert a Notion page object into a RawRecord.

        Raises:
            ValueError: If required keys are missing or timestamps are invalid
        """
        try:
            properties = {
                name: self._parse_property(prop)
                for name, prop in page['properties'].items()
            }
            return RawRecord(
                id=page['id'],
                created_time=datetime.fromisoformat(page['created_time']),
                last_edited_time=datetime.fromisoformat(page['last_edited_time']),
                properties=properties
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Malformed page object: {e!r}") from e

    def _parse_property(self, prop: Dict[str, Any]) -> PropertyValue:
        prop_type = prop['type']
        if prop_type in ('title', 'rich_text'):
            runs = prop.get(prop_type) or []
            return PropertyValue(
                type=prop_type,
                text=[run.get('plain_text', '') for run in runs]
            )
        if prop_type == 'date':
            raw_date = prop.get('date')
            date_value = None
            if raw_date:
                date_value = DateValue(
                    start=raw_date.get('start'),
                    end=raw_date.get('end'),
                    time_zone=raw_date.get('time_zone')
                )
            return PropertyValue(type=prop_type, date=date_value)
        return PropertyValue(type=prop_type)
