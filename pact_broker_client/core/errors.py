"""
Structured error taxonomy for the pact broker client.

Every failure the merge and publish operations can report carries a
structured detail so that callers can triage it without parsing messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ErrorCategory(str, Enum):
    """High-level error categories."""
    READ = "READ"
    MERGE = "MERGE"
    PUBLISH = "PUBLISH"
    CONFIG = "CONFIG"


class ErrorSeverity(str, Enum):
    """Error severity levels."""
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class PactErrorCode(str, Enum):
    """
    Structured error codes.

    Format: {CATEGORY}_{SPECIFIC_CODE}
    """

    # Reading pact files (READ_xx)
    READ_FILE_NOT_FOUND = "READ_001"
    READ_FILE_UNREADABLE = "READ_002"
    READ_INVALID_JSON = "READ_003"
    READ_SCHEMA_INVALID = "READ_004"

    # Merging pacts (MERGE_xx)
    MERGE_CONFLICT = "MERGE_001"
    MERGE_DOCUMENT_TOO_DEEP = "MERGE_002"
    MERGE_PARTICIPANT_MISMATCH = "MERGE_003"

    # Publishing to the broker (PUBLISH_xx)
    PUBLISH_FAILED = "PUBLISH_001"

    # Configuration (CONFIG_xx)
    CONFIG_MISSING_REQUIRED = "CONFIG_001"


class PactErrorDetail(BaseModel):
    """Actionable information about a single failure."""
    code: PactErrorCode
    severity: ErrorSeverity
    message: str
    details: Optional[str] = None
    location: Optional[str] = None  # pact file the error relates to
    context: Dict[str, Any] = {}

    @property
    def category(self) -> ErrorCategory:
        """Extract error category from code."""
        return ErrorCategory(self.code.value.split("_")[0])

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and reports."""
        result = {
            "error_code": self.code.value,
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message
        }

        if self.details:
            result["details"] = self.details
        if self.location:
            result["location"] = self.location
        if self.context:
            result["context"] = self.context

        return result


class PactBrokerClientException(Exception):
    """
    Base exception class with structured error information.

    All client-specific exceptions inherit from this to ensure
    consistent error handling and reporting.
    """

    def __init__(
        self,
        error_detail: PactErrorDetail,
        cause: Optional[BaseException] = None
    ):
        self.error_detail = error_detail
        self.cause = cause
        super().__init__(error_detail.message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def code(self) -> PactErrorCode:
        return self.error_detail.code

    @property
    def category(self) -> ErrorCategory:
        return self.error_detail.category

    @property
    def severity(self) -> ErrorSeverity:
        return self.error_detail.severity

    @property
    def location(self) -> Optional[str]:
        return self.error_detail.location


class PactMergeError(PactBrokerClientException):
    """Errors while merging pact documents."""
    pass


class ConflictError(PactMergeError):
    """
    Two records share a provider state and description but differ elsewhere.

    Always fatal to the merge: no partially merged document is produced.
    """

    def __init__(
        self,
        error_detail: PactErrorDetail,
        stream: str,
        provider_state: Any,
        description: Any,
        differing_fields: List[str],
        existing: Dict[str, Any],
        incoming: Dict[str, Any],
    ):
        super().__init__(error_detail)
        self.stream = stream
        self.provider_state = provider_state
        self.description = description
        self.differing_fields = differing_fields
        self.existing = existing
        self.incoming = incoming


class FileReadError(PactBrokerClientException):
    """A pact file is missing, unreadable or not a valid pact document."""
    pass


class PublishError(PactBrokerClientException):
    """The broker client reported a failure publishing a pact."""
    pass


class PactConfigurationError(PactBrokerClientException):
    """Invalid arguments or settings supplied by the caller."""
    pass


# Convenience functions for creating common errors

def create_conflict_error(
    message: str,
    stream: str,
    provider_state: Any,
    description: Any,
    differing_fields: List[str],
    existing: Dict[str, Any],
    incoming: Dict[str, Any],
) -> ConflictError:
    """Create a structured merge conflict error."""
    return ConflictError(
        PactErrorDetail(
            code=PactErrorCode.MERGE_CONFLICT,
            severity=ErrorSeverity.ERROR,
            message=message,
            context={
                "stream": stream,
                "providerState": provider_state,
                "description": description,
                "differing_fields": differing_fields,
            }
        ),
        stream=stream,
        provider_state=provider_state,
        description=description,
        differing_fields=differing_fields,
        existing=existing,
        incoming=incoming,
    )


def create_merge_error(
    code: PactErrorCode,
    message: str,
    details: Optional[str] = None,
    cause: Optional[BaseException] = None
) -> PactMergeError:
    """Create a structured merge error other than a conflict."""
    return PactMergeError(PactErrorDetail(
        code=code,
        severity=ErrorSeverity.ERROR,
        message=message,
        details=details
    ), cause=cause)


def create_participant_mismatch_warning(role: str, expected: Optional[str], actual: str) -> PactErrorDetail:
    """Describe a later pact naming a different consumer or provider."""
    return PactErrorDetail(
        code=PactErrorCode.MERGE_PARTICIPANT_MISMATCH,
        severity=ErrorSeverity.WARNING,
        message=(
            f"Merging pacts with different {role} names ({expected!r} and {actual!r}); "
            f"keeping {expected!r}"
        ),
        context={"role": role, "kept": expected, "ignored": actual}
    )


def create_read_error(
    code: PactErrorCode,
    message: str,
    location: str,
    details: Optional[str] = None,
    cause: Optional[BaseException] = None
) -> FileReadError:
    """Create a structured pact file read error."""
    return FileReadError(PactErrorDetail(
        code=code,
        severity=ErrorSeverity.ERROR,
        message=message,
        details=details,
        location=location
    ), cause=cause)


def create_publish_error(
    message: str,
    location: Optional[str],
    cause: Optional[BaseException] = None,
    pact_name: Optional[str] = None
) -> PublishError:
    """Create a structured publish error."""
    context = {}
    if pact_name:
        context["pact_name"] = pact_name
    if cause is not None:
        context["cause_type"] = type(cause).__name__

    return PublishError(PactErrorDetail(
        code=PactErrorCode.PUBLISH_FAILED,
        severity=ErrorSeverity.ERROR,
        message=message,
        details=str(cause) if cause is not None else None,
        location=location,
        context=context
    ), cause=cause)


def create_configuration_error(message: str, setting: Optional[str] = None) -> PactConfigurationError:
    """Create a structured configuration error."""
    context = {}
    if setting:
        context["setting"] = setting

    return PactConfigurationError(PactErrorDetail(
        code=PactErrorCode.CONFIG_MISSING_REQUIRED,
        severity=ErrorSeverity.CRITICAL,
        message=message,
        context=context
    ))


# Error code mapping for quick lookup
ERROR_MESSAGES = {
    PactErrorCode.READ_FILE_NOT_FOUND: "Pact file does not exist",
    PactErrorCode.READ_FILE_UNREADABLE: "Pact file could not be read",
    PactErrorCode.READ_INVALID_JSON: "Pact file is not valid JSON",
    PactErrorCode.READ_SCHEMA_INVALID: "Pact file is not a valid pact document",
    PactErrorCode.MERGE_CONFLICT: "Pacts contain conflicting interactions",
    PactErrorCode.MERGE_DOCUMENT_TOO_DEEP: "Pact is nested too deeply to merge",
    PactErrorCode.MERGE_PARTICIPANT_MISMATCH: "Merged pacts name different participants",
    PactErrorCode.PUBLISH_FAILED: "Pact broker rejected or failed to accept the pact",
    PactErrorCode.CONFIG_MISSING_REQUIRED: "Required publish argument missing",
}


def get_error_message(code: PactErrorCode) -> str:
    """Get standard error message for error code."""
    return ERROR_MESSAGES.get(code, f"Unknown error: {code.value}")
