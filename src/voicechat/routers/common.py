"""Response helpers shared by the API routers."""

from __future__ import annotations

from typing import Optional

from fastapi.responses import JSONResponse

from ..services.errors import UpstreamError


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def upstream_error_response(
    exc: UpstreamError, message: Optional[str] = None
) -> JSONResponse:
    """Translate an upstream failure into a 500 carrying its status text."""

    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    text = f"{message} ({exc.status_code}: {detail})" if message else detail
    return error_response(text, 500)


__all__ = ["error_response", "upstream_error_response"]
