"""Server-side relay for media that browsers cannot fetch directly across origins."""

from __future__ import annotations

import logging
import mimetypes
import posixpath
import re
from typing import Dict, Optional
from urllib.parse import unquote, urlparse

import httpx

from lecture_render.errors import FetchError, InvalidInputError, StorageError
from lecture_render.models.domain import MediaObject, ProxiedResource
from lecture_render.services.media_resolver import BucketResolver

DEFAULT_CONTENT_TYPE = "application/octet-stream"
PREFLIGHT_MAX_AGE = "86400"

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

_FILENAME_RE = re.compile(r"^[^/\\\"\x00-\x1f]+\.[A-Za-z0-9]{1,8}$")
_CORS_PRONE_MARKERS = ("supabase.co/storage/v1/object/public",)


def extract_filename(url: str) -> Optional[str]:
    """Return the last path segment of ``url`` when it looks like ``name.ext``."""
    try:
        path = urlparse(url).path
    except ValueError:
        return None
    name = unquote(posixpath.basename(path or "")).strip()
    if not name or not name.isascii() or not _FILENAME_RE.match(name):
        return None
    return name


def might_have_cors_issues(url: str) -> bool:
    if not url:
        return False
    return any(marker in url for marker in _CORS_PRONE_MARKERS)


def preflight_headers() -> Dict[str, str]:
    return {**CORS_HEADERS, "Access-Control-Max-Age": PREFLIGHT_MAX_AGE}


def _is_absolute_http(url: str) -> bool:
    try:
        parsed = urlparse(url or "")
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class ProxyService:
    def __init__(
        self,
        http_client: httpx.Client,
        resolver: BucketResolver,
        cache_max_age: int = 3600,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.http_client = http_client
        self.resolver = resolver
        self.cache_max_age = cache_max_age
        self.log = logger or logging.getLogger(__name__)

    def fetch(self, url: str) -> ProxiedResource:
        target = (url or "").strip()
        if not target:
            raise InvalidInputError("URL parameter is required")
        if not _is_absolute_http(target):
            raise InvalidInputError("URL must be an absolute http(s) URL")
        try:
            response = self.http_client.get(target, follow_redirects=True)
        except httpx.HTTPError as exc:
            self.log.error("proxy fetch failed", extra={"url": target}, exc_info=True)
            raise FetchError(f"Failed to fetch resource: {exc}") from exc
        if not response.is_success:
            self.log.error(
                "proxy upstream error",
                extra={"url": target, "status": response.status_code},
            )
            raise FetchError(
                f"Failed to fetch resource: {response.status_code} {response.reason_phrase}",
                upstream_status=response.status_code,
            )
        return ProxiedResource(
            content=response.content,
            content_type=response.headers.get("content-type") or DEFAULT_CONTENT_TYPE,
            status_code=response.status_code,
            filename=extract_filename(target),
        )

    def fetch_media(self, media_id: str) -> ProxiedResource:
        media = self.resolver.resolve(media_id)
        if _is_absolute_http(media.url):
            return self.fetch(media.url)
        return self._read_from_storage(media)

    def _read_from_storage(self, media: MediaObject) -> ProxiedResource:
        # storage without a public host (in-memory mode) hands out path-only URLs
        try:
            content = self.resolver.storage.download_bytes(media.bucket, media.media_id)
        except StorageError as exc:
            self.log.error(
                "storage read failed",
                extra={"bucket": media.bucket, "media_id": media.media_id},
                exc_info=True,
            )
            raise FetchError(f"Failed to fetch resource: {exc}") from exc
        name = posixpath.basename(media.media_id)
        return ProxiedResource(
            content=content,
            content_type=mimetypes.guess_type(name)[0] or DEFAULT_CONTENT_TYPE,
            filename=name if name.isascii() and _FILENAME_RE.match(name) else None,
        )

    def response_headers(self, resource: ProxiedResource) -> Dict[str, str]:
        headers = {
            **CORS_HEADERS,
            "Content-Type": resource.content_type,
            "Content-Length": str(len(resource.content)),
            "Cache-Control": f"public, max-age={self.cache_max_age}",
        }
        if resource.filename:
            headers["Content-Disposition"] = f'inline; filename="{resource.filename}"'
        return headers
