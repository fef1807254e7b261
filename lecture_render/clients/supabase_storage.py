from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import httpx

from lecture_render.errors import StorageError, UploadError

# Supabase answers 400 for missing public objects on some deployments
_MISSING_STATUSES = (400, 404)


class SupabaseStorageClient:
    def __init__(
        self,
        api_url: str | None,
        api_key: str | None,
        public_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.api_url = (api_url or "").rstrip("/")
        self.public_url_base = (public_url or "").rstrip("/")
        self.api_key = (api_key or "").strip()
        self.timeout = timeout
        self.transport = transport
        self.log = logger or logging.getLogger(__name__)
        self._memory: Dict[Tuple[str, str], bytes] = {}

    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key)

    def upload_bytes(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        cache_control: str | None = None,
        upsert: bool = False,
    ) -> str:
        object_path = self._normalize_path(path)
        if not self.is_configured():
            self._memory[(bucket, object_path)] = content
            return self.public_url(bucket, object_path)

        url = f"{self.api_url}/storage/v1/object/{bucket}/{object_path}"
        headers = {
            **self._auth_headers(),
            "Content-Type": content_type,
            "x-upsert": "true" if upsert else "false",
        }
        if cache_control:
            headers["cache-control"] = f"max-age={cache_control}"
        try:
            with self._client() as client:
                response = client.post(url, headers=headers, content=content)
        except httpx.HTTPError as exc:
            raise UploadError(f"Supabase upload failed: {exc}") from exc
        if response.status_code not in (200, 201):
            raise UploadError(f"Supabase upload failed: {response.status_code} {response.text}")
        self.log.info(
            "supabase object uploaded",
            extra={"bucket": bucket, "path": object_path, "content_length": len(content)},
        )
        return self.public_url(bucket, object_path)

    def lookup_public_url(self, bucket: str, path: str) -> str | None:
        """Return the public URL of ``bucket/path`` or ``None`` when the object does not exist."""
        object_path = self._normalize_path(path)
        if not object_path:
            return None
        url = self.public_url(bucket, object_path)
        if not self.is_configured():
            return url if (bucket, object_path) in self._memory else None
        try:
            with self._client() as client:
                response = client.head(url, headers=self._auth_headers())
        except httpx.HTTPError as exc:
            raise StorageError(f"Supabase lookup failed: {exc}") from exc
        if response.status_code in _MISSING_STATUSES:
            return None
        if response.status_code >= 400:
            raise StorageError(f"Supabase lookup failed: {response.status_code}")
        return url

    def download_bytes(self, bucket: str, path: str) -> bytes:
        object_path = self._normalize_path(path)
        if not self.is_configured():
            if (bucket, object_path) not in self._memory:
                raise StorageError("object not found in memory storage")
            return self._memory[(bucket, object_path)]
        try:
            with self._client() as client:
                response = client.get(self.public_url(bucket, object_path))
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise StorageError(f"Supabase download failed: {exc}") from exc
        return response.content

    def public_url(self, bucket: str, path: str) -> str:
        base = self.public_url_base or f"{self.api_url}/storage/v1/object/public"
        joined_path = "/".join(part.strip("/") for part in (bucket, path))
        return f"{base.rstrip('/')}/{joined_path}"

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self.transport)

    def _auth_headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
        }

    def _normalize_path(self, path: str | None) -> str:
        return (path or "").strip().lstrip("/")
