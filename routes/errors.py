"""
Error conversion shared by all route modules.
"""

from fastapi.responses import JSONResponse
import structlog

from exceptions import AppError

logger = structlog.get_logger(__name__)


def _error_content(e: Exception) -> tuple[int, dict]:
    if isinstance(e, AppError):
        return e.status_code, e.to_dict()
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return 500, {
        "error": {
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred"
        }
    }


def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    status_code, content = _error_content(e)
    return JSONResponse(status_code=status_code, content=content)


def handle_sync_error(e: Exception) -> JSONResponse:
    """
    Convert exception to a sync-shaped JSON response.

    Sync endpoints always answer {success, message, result}; the error
    block is kept alongside for clients that read it.
    """
    status_code, content = _error_content(e)
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": content["error"]["message"],
            "result": None,
            **content
        }
    )
