from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from lecture_render.errors import StorageError, UploadError

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


class S3StorageClient:
    def __init__(
        self,
        access_key: str | None,
        secret_key: str | None,
        endpoint_url: str | None = None,
        region_name: str | None = None,
        public_url: str | None = None,
        addressing_style: str | None = None,
        client: Any = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.access_key = (access_key or "").strip()
        self.secret_key = (secret_key or "").strip()
        self.endpoint_url = (endpoint_url or "").rstrip("/") or None
        self.region_name = (region_name or "").strip() or None
        self.public_url_base = (public_url or "").rstrip("/")
        self.log = logger or logging.getLogger(__name__)
        self._memory: Dict[Tuple[str, str], bytes] = {}
        self._client = client
        if self._client is None and self.is_configured():
            session = boto3.session.Session(
                aws_access_key_id=self.access_key,
                aws_secret_access_key=self.secret_key,
                region_name=self.region_name,
            )
            config = BotoConfig(
                s3={"addressing_style": (addressing_style or "virtual").lower()}
            )
            self._client = session.client("s3", endpoint_url=self.endpoint_url, config=config)

    def is_configured(self) -> bool:
        return bool(self.access_key and self.secret_key)

    def upload_bytes(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        cache_control: str | None = None,
        upsert: bool = False,
    ) -> str:
        # S3 PUT always overwrites, so ``upsert`` needs no translation
        key = self._normalize_path(path)
        if self._client is None:
            self._memory[(bucket, key)] = content
            return self.public_url(bucket, key)
        kwargs: Dict[str, Any] = {
            "Bucket": bucket,
            "Key": key,
            "Body": content,
            "ContentType": content_type,
        }
        if cache_control:
            kwargs["CacheControl"] = f"max-age={cache_control}"
        try:
            self._client.put_object(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise UploadError(f"S3 upload failed: {exc}") from exc
        return self.public_url(bucket, key)

    def lookup_public_url(self, bucket: str, path: str) -> str | None:
        key = self._normalize_path(path)
        if not key:
            return None
        if self._client is None:
            return self.public_url(bucket, key) if (bucket, key) in self._memory else None
        try:
            self._client.head_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                return None
            raise StorageError(f"S3 lookup failed: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"S3 lookup failed: {exc}") from exc
        return self.public_url(bucket, key)

    def download_bytes(self, bucket: str, path: str) -> bytes:
        key = self._normalize_path(path)
        if self._client is None:
            if (bucket, key) not in self._memory:
                raise StorageError("object not found in memory storage")
            return self._memory[(bucket, key)]
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
            body = response.get("Body")
            if body is None:
                return b""
            return body.read()
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"S3 download failed: {exc}") from exc

    def public_url(self, bucket: str, path: str) -> str:
        clean = self._normalize_path(path)
        if self.public_url_base:
            return f"{self.public_url_base}/{bucket}/{clean}"
        if self.endpoint_url:
            return f"{self.endpoint_url}/{bucket}/{clean}"
        if self.region_name:
            return f"https://{bucket}.s3.{self.region_name}.amazonaws.com/{clean}"
        return f"/{bucket}/{clean}"

    def _normalize_path(self, path: str | None) -> str:
        if not path:
            return ""
        return "/".join(part for part in path.strip().split("/") if part)
