from __future__ import annotations

from typing import Optional


class NovelAIError(Exception):
    """Base class for failures raised by a generation stage."""

    pass


class ApiError(NovelAIError):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        message = f"API request failed with status {status_code}"
        if body:
            message += f": {body}"
        super().__init__(message)


class RequestTimeoutError(NovelAIError):
    def __init__(self, timeout_sec: Optional[float] = None):
        self.timeout_sec = timeout_sec
        if timeout_sec is None:
            message = "API request timed out"
        else:
            message = f"API request timed out after {timeout_sec:g}s"
        super().__init__(message)


class TransportError(NovelAIError):
    """Raised when the request could not reach the API at all."""

    pass


class GenerationCancelled(NovelAIError):
    """Raised when a cancel token fires before the request is dispatched."""

    pass


class ArchiveError(NovelAIError):
    """Raised when the response body is not a readable ZIP archive."""

    pass


class NoImageFoundError(NovelAIError):
    """Raised when the archive holds no file entries."""

    pass


class NoSavePathError(NovelAIError):
    """Raised when no save directory can be resolved."""

    pass


class WriteError(NovelAIError):
    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Failed to write image to {path}: {reason}")


class UnknownError(NovelAIError):
    def __init__(self, cause: BaseException):
        self.cause = cause
        detail = str(cause) or type(cause).__name__
        super().__init__(f"Unknown error: {detail}")


class ParameterError(NovelAIError):
    """Raised when merged parameters fail validation for their model family."""

    pass
