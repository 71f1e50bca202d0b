from fastapi import HTTPException, status

from zeroclick.core.errors import ErrorKind, PipelineError

STATUS_BY_KIND = {
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_MODEL_OUTPUT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.UNSAFE_QUERY: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.UPSTREAM_SERVICE_ERROR: status.HTTP_502_BAD_GATEWAY,
}


def to_http_exception(error: PipelineError) -> HTTPException:
    """Only the human-readable message and the kind reach the client."""
    return HTTPException(
        status_code=STATUS_BY_KIND[error.kind],
        detail={"error": error.message, "kind": error.kind.value},
    )
