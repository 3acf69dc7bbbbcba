"""Pydantic 응답 스키마."""

from .download_schema import DownloadResponse, ErrorResponse, HealthResponse

__all__ = ["DownloadResponse", "ErrorResponse", "HealthResponse"]
