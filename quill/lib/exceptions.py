import logging

from litestar import Request, Response
from litestar.exceptions import HTTPException
from litestar.status_codes import HTTP_500_INTERNAL_SERVER_ERROR

from quill.lib import observability

logger = logging.getLogger(__name__)


def http_exception_handler(request: Request, exc: HTTPException) -> Response:
    """Render HTTP exceptions (404, 400, ...) as a JSON body."""
    status_code = exc.status_code
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    content = {"status_code": status_code, "detail": detail}
    # Machine-readable error code, e.g. REVISION_NOT_FOUND
    if isinstance(exc.extra, dict) and "code" in exc.extra:
        content["code"] = exc.extra["code"]

    return Response(
        content=content,
        status_code=status_code,
        media_type="application/json",
    )


def internal_server_error_handler(request: Request, exc: Exception) -> Response:
    """Log unexpected exceptions and hide their details from API clients."""
    logged = observability.exception(
        "Unhandled exception on {method} {path}", method=request.method, path=request.url.path
    )
    if not logged:
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)

    return Response(
        content={"status_code": HTTP_500_INTERNAL_SERVER_ERROR, "detail": "Internal Server Error"},
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/json",
    )


EXCEPTION_HANDLERS = {
    HTTPException: http_exception_handler,
    Exception: internal_server_error_handler,
}
