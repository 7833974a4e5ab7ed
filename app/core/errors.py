"""
Error taxonomy for the image pipeline.

Every failure raised while resolving, fetching or converting an image is a
GatewayError; the request pipeline catches them in one place and answers with
the fallback image.
"""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_REQUEST = "invalid_request"
    UNSUPPORTED_MODE = "unsupported_mode"
    CRYPTO = "crypto"
    TRANSFORMATION_NOT_FOUND = "transformation_not_found"
    PATTERN_MISMATCH = "pattern_mismatch"
    FETCH = "fetch"
    CONVERSION = "conversion"
    STORAGE = "storage"


class GatewayError(Exception):
    """Base class for pipeline failures."""

    kind: ErrorKind = ErrorKind.INVALID_REQUEST


class InvalidRequest(GatewayError):
    kind = ErrorKind.INVALID_REQUEST


class UnsupportedMode(GatewayError):
    kind = ErrorKind.UNSUPPORTED_MODE


class CryptoError(GatewayError):
    kind = ErrorKind.CRYPTO


class TransformationNotFound(GatewayError):
    kind = ErrorKind.TRANSFORMATION_NOT_FOUND


class PatternMismatch(GatewayError):
    kind = ErrorKind.PATTERN_MISMATCH


class FetchError(GatewayError):
    kind = ErrorKind.FETCH


class ConversionError(GatewayError):
    """Processor exited non-zero; `output` holds its diagnostics verbatim."""

    kind = ErrorKind.CONVERSION

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


class StorageError(GatewayError):
    kind = ErrorKind.STORAGE
