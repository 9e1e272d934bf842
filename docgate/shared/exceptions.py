"""Custom exceptions for the document gateway.

Every exception carries the wire ``error_code`` and the HTTP status it maps to,
so the error handlers never have to guess how to classify a failure.
"""

from typing import Any, Dict, Optional


class DocGateException(Exception):
    """Base exception for all gateway errors."""

    error_code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


# ==================== Request Exceptions ====================

class RequestException(DocGateException):
    """Base exception for problems with the client's request."""
    pass


class BadRequestError(RequestException):
    """Raised for empty uploads, invalid parameters or inputs already in the target format."""

    error_code = "BAD_REQUEST"
    status_code = 400


class InvalidArgumentError(RequestException):
    """Raised when an internal operation receives a malformed argument."""

    error_code = "INVALID_ARGUMENT"
    status_code = 400


class PayloadTooLargeError(RequestException):
    """Raised when an upload exceeds the configured size limit."""

    error_code = "PAYLOAD_TOO_LARGE"
    status_code = 413

    def __init__(self, size_mb: float, max_size_mb: int):
        super().__init__(
            f"File size {size_mb}MB exceeds maximum allowed size of {max_size_mb}MB",
            details={"size_mb": size_mb, "max_size_mb": max_size_mb}
        )


class UnsupportedMediaTypeError(RequestException):
    """Raised when a file category has no pipeline for the requested operation."""

    error_code = "UNSUPPORTED_MEDIA_TYPE"
    status_code = 415


# ==================== Conversion Exceptions ====================

class ConversionError(DocGateException):
    """Base exception for local conversion failures."""

    status_code = 422


class ConversionFailedError(ConversionError):
    """Raised when the office daemon fails to convert a document."""

    error_code = "CONVERSION_FAILED"


class ImageConversionFailedError(ConversionError):
    """Raised when the PDF rasterizer fails."""

    error_code = "IMAGE_CONVERSION_FAILED"


class TextExtractionFailedError(ConversionError):
    """Raised when no text can be extracted from a document."""

    error_code = "TEXT_EXTRACTION_FAILED"


# ==================== Upstream Exceptions ====================

class UpstreamError(DocGateException):
    """Base exception for failures of remote parser back-ends."""

    status_code = 502


class ParseError(UpstreamError):
    """Raised when the structured document parser fails or answers unexpectedly."""

    error_code = "PARSE_ERROR"


class VLMError(UpstreamError):
    """Raised when the vision-language model endpoint fails or answers unexpectedly."""

    error_code = "VLM_ERROR"
