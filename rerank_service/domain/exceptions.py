# rerank_service/domain/exceptions.py
from typing import Optional


class RerankServiceError(Exception):
    """
    Base class for every error that aborts a rerank request.

    `error_title` is the short, caller-facing summary used in the
    `{error, message, type}` failure body.
    """
    error_title: str = "Internal server error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedRequest(RerankServiceError):
    """The inbound payload cannot be parsed into a rank request."""
    error_title = "Invalid request"


class UnsupportedDocumentType(RerankServiceError):
    """A document is neither a plain string nor a record of named fields."""
    error_title = "Invalid request"

    def __init__(self, type_name: str):
        super().__init__(f"Unsupported document type: {type_name}")
        self.type_name = type_name


class InvalidTopN(RerankServiceError):
    error_title = "Invalid request"

    def __init__(self, top_n: int):
        super().__init__(f"top_n must be a non-negative integer, got {top_n}")
        self.top_n = top_n


class ScoringFailure(RerankServiceError):
    """The ranking model raised or returned output that cannot be used."""
    error_title = "Internal server error"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class RankerNotReady(RerankServiceError):
    error_title = "Service unavailable"
