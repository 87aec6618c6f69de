"""Error types raised during conversion."""
from typing import Optional


class ConversionError(Exception):
    """Base class for all conversion errors."""


class InvalidArgumentError(ConversionError, ValueError):
    """Raised for bad constructor or call parameters."""

    def __init__(self, argument_name: str, reason: str):
        super().__init__(f'Invalid argument "{argument_name}": {reason}')
        self.argument_name = argument_name
        self.reason = reason


class WrappedError(ConversionError):
    """Error that wraps the underlying cause of a failure."""

    prefix = "Operation failed"

    def __init__(self, cause: BaseException):
        super().__init__(f"{self.prefix}: {cause}")
        self.cause = cause


class RemoteQueryError(WrappedError):
    prefix = "Remote query failed"


class StorageError(WrappedError):
    prefix = "Storage operation failed"


class CalendarBuildError(WrappedError):
    prefix = "Calendar build failed"


class PaginationError(ConversionError):
    def __init__(self, message: str):
        super().__init__(f"Pagination error: {message}")


class RecordError(ConversionError):
    """Error tied to a single record; routed through the error hook."""

    def __init__(self, message: str, record_id: str):
        super().__init__(message)
        self.record_id = record_id


class DuplicateEventError(RecordError):
    def __init__(self, record_id: str):
        super().__init__(f'Duplicate event ID detected: "{record_id}"', record_id)


class RecordParseError(RecordError):
    """Record failed validation or extraction."""

    def __init__(
        self,
        message: str,
        record_id: str,
        property_name: Optional[str] = None
    ):
        super().__init__(message, record_id)
        self.property_name = property_name


class MissingPropertyError(RecordParseError):
    def __init__(self, record_id: str, property_name: str):
        super().__init__(
            f'Missing property "{property_name}"', record_id, property_name
        )


class InvalidPropertyTypeError(RecordParseError):
    def __init__(
        self,
        record_id: str,
        property_name: str,
        actual_type: str,
        expected_type: str
    ):
        super().__init__(
            f'Property "{property_name}" is type "{actual_type}", '
            f'expected "{expected_type}"',
            record_id,
            property_name
        )
        self.actual_type = actual_type
        self.expected_type = expected_type


class EmptyDateError(RecordParseError):
    def __init__(self, record_id: str, property_name: str):
        super().__init__(
            f'Date property empty: no start date provided for property '
            f'"{property_name}"',
            record_id,
            property_name
        )


class DateValueError(RecordParseError):
    def __init__(self, record_id: str, property_name: str, detail: str):
        super().__init__(
            f"Date property invalid: {detail}", record_id, property_name
        )


class ConversionAbortedError(ConversionError):
    """Raised when the error hook asks to abort the run."""

    def __init__(self, reason: str, error: RecordError):
        super().__init__(
            f"Conversion aborted on record {error.record_id}: {reason}"
        )
        self.reason = reason
        self.error = error
        self.record_id = error.record_id
