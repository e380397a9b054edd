"""Errors shared by the upstream service clients."""

from __future__ import annotations

from typing import Any


class UpstreamError(Exception):
    """Wrap transport or API failures when communicating with a hosted API."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


def extract_error_detail(raw: bytes, fallback: str) -> Any:
    if not raw:
        return fallback
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        text = raw.decode("utf-8", errors="ignore")
    return text.strip() or fallback


__all__ = ["UpstreamError", "extract_error_detail"]
