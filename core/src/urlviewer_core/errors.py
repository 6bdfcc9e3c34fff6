from __future__ import annotations


class ViewerError(Exception):
    """Base class for failures that are reported back to the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UpstreamError(ViewerError):
    """The upstream could not be reached or answered with a non-2xx status.

    ``status_code`` is None when no HTTP response was received at all.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SizeLimitError(ViewerError):
    """Declared or observed payload size exceeds the transfer cap."""


class UnsupportedTypeError(ViewerError):
    def __init__(self, content_type: str) -> None:
        super().__init__(f"Unsupported content-type: {content_type}")
        self.content_type = content_type


class ValidationError(ViewerError):
    """A required request parameter is missing."""
