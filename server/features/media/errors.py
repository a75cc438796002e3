from __future__ import annotations


class MediaDomainError(Exception):
    """Base exception for media ingestion and extraction."""


class MediaValidationError(MediaDomainError):
    pass


class MediaStorageError(MediaDomainError):
    pass


class MediaNotFoundError(MediaDomainError):
    pass


class ServiceUnavailableError(MediaDomainError):
    """A recognition service cannot be called because its credential is missing."""


class ExtractionError(MediaDomainError):
    """Text could not be extracted from the uploaded media."""


class RecognitionServiceError(ExtractionError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        api_message: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.api_message = api_message


class UnsupportedDocumentFormatError(RecognitionServiceError):
    pass
