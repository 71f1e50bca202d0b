"""
Error taxonomy shared by the extraction, search and ingestion paths.

Every failure a caller can see is one of these. Messages are written for
humans and never carry raw model output, generated SQL or credentials.
"""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    INVALID_MODEL_OUTPUT = "invalid_model_output"
    UNSAFE_QUERY = "unsafe_query"
    UPSTREAM_SERVICE_ERROR = "upstream_service_error"


class PipelineError(Exception):
    """Base class for failures of a single unit of work."""

    default_kind = ErrorKind.UPSTREAM_SERVICE_ERROR

    def __init__(self, message: str, kind: ErrorKind = None):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind


class ExtractionError(PipelineError):
    default_kind = ErrorKind.INVALID_MODEL_OUTPUT


class UnsafeQueryError(PipelineError):
    default_kind = ErrorKind.UNSAFE_QUERY


class UpstreamServiceError(PipelineError):
    """A model, store, transcription or storage call itself failed."""

    default_kind = ErrorKind.UPSTREAM_SERVICE_ERROR


class UploadRejectedError(PipelineError):
    default_kind = ErrorKind.INVALID_INPUT
