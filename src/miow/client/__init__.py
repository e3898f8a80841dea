"""Miow API Client - Request layer for the backend."""

from miow.client.api_client import (
    ContextResponse,
    FileInfo,
    FilesResponse,
    GenerateResponse,
    HealthResponse,
    MiowAPIClient,
    SearchFilesResponse,
    SignatureResponse,
)

__all__ = [
    "MiowAPIClient",
    "HealthResponse",
    "SignatureResponse",
    "ContextResponse",
    "FilesResponse",
    "FileInfo",
    "SearchFilesResponse",
    "GenerateResponse",
]
