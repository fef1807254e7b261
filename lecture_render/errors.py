from __future__ import annotations

from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse


class MediaPipelineError(Exception):
    """Structured failure raised by clients and services, rendered as a JSON error payload."""

    kind = "media_pipeline_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        body: dict[str, Any] = {"kind": self.kind, "message": self.message}
        body.update(self.details)
        return {"error": body}


class ConfigError(MediaPipelineError):
    kind = "config_error"


class InvalidInputError(MediaPipelineError):
    kind = "invalid_input"
    status_code = status.HTTP_400_BAD_REQUEST


class BundleError(MediaPipelineError):
    kind = "bundle_error"


class DispatchError(MediaPipelineError):
    kind = "dispatch_error"
    status_code = status.HTTP_502_BAD_GATEWAY


class ProgressQueryError(MediaPipelineError):
    kind = "progress_query_error"
    status_code = status.HTTP_502_BAD_GATEWAY


class SynthesisError(MediaPipelineError):
    kind = "synthesis_error"
    status_code = status.HTTP_502_BAD_GATEWAY


class EmptyAudioError(MediaPipelineError):
    kind = "empty_audio"
    status_code = status.HTTP_502_BAD_GATEWAY


class StorageError(MediaPipelineError):
    kind = "storage_error"
    status_code = status.HTTP_502_BAD_GATEWAY


class UploadError(StorageError):
    kind = "upload_error"


class NotFoundError(MediaPipelineError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class FetchError(MediaPipelineError):
    """Upstream fetch failed; an upstream error status is passed through, otherwise 502."""

    kind = "fetch_error"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, upstream_status: int | None = None) -> None:
        passthrough = upstream_status if upstream_status and upstream_status >= 400 else None
        details = {"upstream_status": upstream_status} if upstream_status is not None else None
        super().__init__(message, status_code=passthrough, details=details)
        self.upstream_status = upstream_status


async def media_pipeline_error_handler(_: Request, exc: MediaPipelineError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


__all__ = [
    "BundleError",
    "ConfigError",
    "DispatchError",
    "EmptyAudioError",
    "FetchError",
    "InvalidInputError",
    "MediaPipelineError",
    "NotFoundError",
    "ProgressQueryError",
    "StorageError",
    "SynthesisError",
    "UploadError",
    "media_pipeline_error_handler",
]
