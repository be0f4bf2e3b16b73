"""Application error hierarchy and boundary normalization."""

import httpx
import openai


class AppError(Exception):
    """Base class for application errors."""

    code = "APP_ERROR"
    retryable = False

    def __init__(self, message: str, **metadata: object) -> None:
        super().__init__(message)
        self.message = message
        self.metadata = metadata


class AIRateLimitError(AppError):
    """AI service signalled backpressure (HTTP 429)."""

    code = "AI_RATE_LIMIT"
    retryable = True

    def __init__(self, retry_after: float | None = None) -> None:
        super().__init__(
            "Service is busy. Please wait a moment and try again.",
            retry_after=retry_after,
        )


class AITimeoutError(AppError, TimeoutError):
    """An AI call did not settle within its deadline."""

    code = "AI_TIMEOUT"

    def __init__(self, operation: str) -> None:
        super().__init__(
            "Analysis is taking longer than expected.",
            operation=operation,
        )
        self.operation = operation


class ServerError(AppError):
    """Remote service failed with a 5xx status."""

    code = "SERVER_ERROR"
    retryable = True

    def __init__(self, message: str, status: int) -> None:
        super().__init__(message, status=status)
        self.status = status


class ClientError(AppError):
    """Request rejected with a non-retryable 4xx status."""

    code = "CLIENT_ERROR"

    def __init__(self, message: str, status: int) -> None:
        super().__init__(message, status=status)
        self.status = status


class NetworkError(AppError):
    """Connectivity problem reaching a remote service."""

    code = "NETWORK_ERROR"
    retryable = True

    def __init__(
        self,
        message: str = "Unable to connect. Check your internet connection.",
    ) -> None:
        super().__init__(message)


class StorageError(AppError):
    """Local or remote storage failure that needs user action."""

    code = "STORAGE_ERROR"


class StorageFullError(StorageError):
    """Device free space is below the capture threshold."""

    code = "STORAGE_FULL"

    def __init__(self, available_bytes: int | None = None) -> None:
        super().__init__(
            "Storage space is running low. Free up space or adjust photo quality.",
            available_bytes=available_bytes,
        )


class DecryptionError(StorageError):
    """Encrypted blob could not be authenticated with the user's key."""

    code = "DECRYPTION_FAILED"


class ValidationError(AppError):
    """Local input problem."""

    code = "VALIDATION_ERROR"


class BackupDisabledError(ValidationError):
    """Operation needs cloud backup but the user has not opted in."""

    code = "BACKUP_DISABLED"

    def __init__(self, user_id: str) -> None:
        super().__init__("Cloud backup is not enabled for this user", user_id=user_id)


class InvalidSessionStateError(ValidationError):
    """Routine session transition not allowed from the current state."""

    code = "INVALID_SESSION_STATE"


class AIResponseParseError(ValidationError):
    """AI response did not contain decodable JSON."""

    code = "AI_PARSE_ERROR"


def error_from_status(status: int, message: str) -> AppError:
    """Map an HTTP status code onto the error hierarchy."""
    if status == 429:  # noqa: PLR2004
        return AIRateLimitError()
    if 500 <= status <= 504:  # noqa: PLR2004
        return ServerError(message, status)
    if 400 <= status < 500:  # noqa: PLR2004
        return ClientError(message, status)
    return AppError(message, status=status)


def normalize_error(exc: BaseException) -> AppError:
    """Convert SDK and transport exceptions into application errors."""
    if isinstance(exc, AppError):
        return exc
    if isinstance(exc, openai.RateLimitError):
        retry_after = exc.response.headers.get("retry-after")
        return AIRateLimitError(float(retry_after) if retry_after else None)
    if isinstance(exc, openai.APIStatusError):
        return error_from_status(exc.status_code, exc.message)
    if isinstance(exc, openai.APIConnectionError | httpx.TransportError):
        return NetworkError(str(exc) or NetworkError().message)
    if isinstance(exc, httpx.HTTPStatusError):
        return error_from_status(exc.response.status_code, str(exc))
    status = _status_from_payload(exc)
    if status is not None:
        return error_from_status(status, str(exc))
    # TimeoutError and ConnectionError are OSError subclasses, check them first.
    if isinstance(exc, TimeoutError | ConnectionError):
        return NetworkError(str(exc) or NetworkError().message)
    if isinstance(exc, OSError):
        return StorageError(str(exc))
    return AppError(str(exc) or exc.__class__.__name__)


def _status_from_payload(exc: BaseException) -> int | None:
    """Pull a status out of storage SDK errors, which carry it in their payload."""
    for attr in ("status", "statusCode", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def user_friendly_message(exc: BaseException) -> str:
    """Return a message suitable for showing to the user."""
    if isinstance(exc, AppError) and not isinstance(exc, ServerError | ClientError):
        return exc.message
    if isinstance(exc, ServerError):
        return (
            "We're experiencing technical difficulties. "
            "Please try again in a few minutes."
        )
    return "Something went wrong. Please try again."
