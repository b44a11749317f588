# meter_app/core/exceptions.py

from typing import Optional


class MeterAppError(Exception):
    """Base for errors that the API renders as JSON with a fixed status code."""

    http_status: int = 500

    def __init__(self, message: str, image_url: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.image_url = image_url


class InvalidInputError(MeterAppError):
    """Client sent a value the API cannot use (400)."""

    http_status = 400


class IngestionValidationError(InvalidInputError):
    """Missing image/building/room, empty image or a location that doesn't belong to the caller."""


class StorageWriteError(MeterAppError):
    http_status = 500


class RecognitionTransportFailure(MeterAppError):
    """OCR service answered with an error status (or the connection broke) without a timeout signature."""

    http_status = 500

    def __init__(self, message: str, image_url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, image_url=image_url)
        self.status_code = status_code


class PersistenceError(MeterAppError):
    http_status = 500


class CorrectionNotFound(MeterAppError):
    http_status = 404
