"""AWS Lambda handler serving a Notion database as an iCalendar feed."""
import json
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from converter import NotionCalendarConverter
from fetcher.notion_api import NotionDatabaseClient
from processor.errors import InvalidArgumentError
from storage.dynamodb_repository import IncrementalStateDynamoDBRepository
from storage.file_repository import IncrementalStateFileRepository

# Attributes every LogRecord has; anything else came in through ``extra``
_RESERVED_LOG_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_LOG_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class HandlerConfig:
    """Deployment settings read from the environment."""
    notion_token: str
    database_id: str
    title_property: str = 'Name'
    date_property: str = 'Date'
    description_property: Optional[str] = None
    calendar_name: str = 'Notion'
    default_duration: timedelta = timedelta(hours=1)
    from_date: Optional[datetime] = None
    until_date: Optional[datetime] = None
    page_size: int = NotionCalendarConverter.DEFAULT_PAGE_SIZE
    timeout_seconds: int = 30
    state_table_name: Optional[str] = None
    state_directory: Optional[str] = None
    max_cache_age: timedelta = timedelta(0)
    log_level: str = 'INFO'


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidArgumentError(name, f"must be an integer, got {raw!r}") from None


def _env_datetime(name: str) -> Optional[datetime]:
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise InvalidArgumentError(name, f"must be an ISO-8601 date, got {raw!r}") from None


def _env_required(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise InvalidArgumentError(name, 'is required')
    return value


def load_config() -> HandlerConfig:
    """
    Read handler configuration from environment variables.

    Raises:
        InvalidArgumentError: If a required variable is missing or a value
            is malformed
    """
    return HandlerConfig(
        notion_token=_env_required('NOTION_TOKEN'),
        database_id=_env_required('NOTION_DATABASE_ID'),
        title_property=os.environ.get('TITLE_PROPERTY', 'Name'),
        date_property=os.environ.get('DATE_PROPERTY', 'Date'),
        description_property=os.environ.get('DESCRIPTION_PROPERTY') or None,
        calendar_name=os.environ.get('CALENDAR_NAME', 'Notion'),
        default_duration=timedelta(minutes=_env_int('DEFAULT_DURATION_MINUTES', 60)),
        from_date=_env_datetime('FROM_DATE'),
        until_date=_env_datetime('UNTIL_DATE'),
        page_size=_env_int('PAGE_SIZE', NotionCalendarConverter.DEFAULT_PAGE_SIZE),
        timeout_seconds=_env_int('TIMEOUT_SECONDS', 30),
        state_table_name=os.environ.get('STATE_TABLE_NAME') or None,
        state_directory=os.environ.get('STATE_DIRECTORY') or None,
        max_cache_age=timedelta(hours=_env_int('MAX_CACHE_AGE_HOURS', 0)),
        log_level=os.environ.get('LOG_LEVEL', 'INFO')
    )


def build_state_repository(config: HandlerConfig):
    """Pick the configured state backend, preferring DynamoDB."""
    if config.state_table_name:
        return IncrementalStateDynamoDBRepository(
            config.state_table_name, max_cache_age=config.max_cache_age
        )
    if config.state_directory:
        return IncrementalStateFileRepository(
            config.state_directory, max_cache_age=config.max_cache_age
        )
    return None


def _error_response(
    status_code: int,
    message: str,
    error: Exception,
    start_time: float
) -> Dict[str, Any]:
    duration = time.time() - start_time
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps({
            'message': message,
            'error': str(error),
            'error_type': type(error).__name__,
            'duration_seconds': round(duration, 2)
        })
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the calendar feed.

    Args:
        event: Function URL or API Gateway event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and the calendar as body
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)
    start_time = time.time()

    try:
        config = load_config()
    except InvalidArgumentError as e:
        logger.error(f"Invalid configuration: {e}")
        return _error_response(400, 'Invalid configuration', e, start_time)

    logger.info(
        "Lambda execution started",
        extra={
            'database_id': config.database_id,
            'state_table_name': config.state_table_name,
            'state_directory': config.state_directory
        }
    )

    try:
        client = NotionDatabaseClient(
            config.notion_token, timeout=config.timeout_seconds
        )
        converter = NotionCalendarConverter(
            client,
            page_size=config.page_size,
            state_repository=build_state_repository(config)
        )

        calendar = converter.convert(
            config.database_id,
            config.title_property,
            config.date_property,
            config.description_property,
            config.calendar_name,
            config.default_duration,
            from_date=config.from_date,
            until_date=config.until_date
        )

    except InvalidArgumentError as e:
        logger.error(f"Invalid argument: {e}")
        return _error_response(400, 'Invalid argument', e, start_time)

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _error_response(500, 'Calendar conversion failed', e, start_time)

    duration = time.time() - start_time
    logger.info(
        "Lambda execution completed successfully",
        extra={'duration_seconds': round(duration, 2)}
    )

    return {
        'statusCode': 200,
        'headers': {'Content-Type': 'text/calendar; charset=utf-8'},
        'body': calendar
    }
