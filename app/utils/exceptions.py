"""Custom exceptions for the webhook service with standardized error codes."""
from enum import Enum
from fastapi import HTTPException, status
from typing import Optional, Any


class ErrorCode(str, Enum):
    """Standardized error codes for the API."""

    # Record errors
    WEBHOOK_NOT_FOUND = "WEBHOOK_NOT_FOUND"
    FILE_NOT_AVAILABLE = "FILE_NOT_AVAILABLE"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"

    # Pipeline errors
    FETCH_FAILED = "FETCH_FAILED"
    STORE_FAILED = "STORE_FAILED"
    NOTIFY_FAILED = "NOTIFY_FAILED"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Server errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class WebhookServiceException(Exception):
    """Base exception for the webhook service with standardized error format."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to standardized error response dict."""
        response = {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
            }
        }
        if self.details:
            response["error"]["details"] = self.details
        return response


class WebhookNotFoundError(WebhookServiceException):
    """Raised when a webhook record is not found."""

    def __init__(self, webhook_id: str):
        super().__init__(
            message=f"Webhook #{webhook_id} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.WEBHOOK_NOT_FOUND,
            details={"webhook_id": webhook_id},
        )


class FileNotAvailableError(WebhookServiceException):
    """Raised when a download URL is requested for a file that was never stored."""

    def __init__(self, webhook_id: str, download_status: str):
        super().__init__(
            message="File not available for download",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.FILE_NOT_AVAILABLE,
            details={"webhook_id": webhook_id, "download_status": download_status},
        )


class PreconditionFailedError(WebhookServiceException):
    """Raised when an action is invoked on a record in the wrong state."""

    def __init__(self, message: str, webhook_id: str, download_status: Optional[str] = None):
        details = {"webhook_id": webhook_id}
        if download_status is not None:
            details["download_status"] = download_status

        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorCode.PRECONDITION_FAILED,
            details=details,
        )


class FetchError(WebhookServiceException):
    """Raised when the remote file cannot be downloaded or written locally."""

    def __init__(self, url: str, cause: str):
        self.url = url
        self.cause = cause
        super().__init__(
            message=f"Failed to download file from {url}: {cause}",
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code=ErrorCode.FETCH_FAILED,
            details={"url": url},
        )


class StoreError(WebhookServiceException):
    """Raised when blob storage rejects a write or a signing request."""

    def __init__(self, key: str, cause: str):
        self.key = key
        self.cause = cause
        super().__init__(
            message=f"Failed to store {key}: {cause}",
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code=ErrorCode.STORE_FAILED,
            details={"key": key},
        )


class NotifyError(WebhookServiceException):
    """Raised when the orchestrator rejects a DAG run trigger."""

    def __init__(self, message: str, response_body: Optional[str] = None):
        self.response_body = response_body
        details = {}
        if response_body is not None:
            details["response_body"] = response_body

        super().__init__(
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code=ErrorCode.NOTIFY_FAILED,
            details=details if details else None,
        )


class CycleSupersededError(Exception):
    """Raised when a processing cycle no longer owns the record it is updating."""

    def __init__(self, webhook_id: str, expected: int, current: int):
        self.webhook_id = webhook_id
        self.expected = expected
        self.current = current
        super().__init__(
            f"Cycle generation {expected} for webhook {webhook_id} superseded by {current}"
        )


def handle_service_exception(exc: WebhookServiceException) -> HTTPException:
    """Convert service exception to HTTP exception."""
    return HTTPException(
        status_code=exc.status_code,
        detail=exc.message
    )
