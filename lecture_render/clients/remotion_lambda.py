from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError


class RemotionLambdaError(Exception):
    """Raised when the render function cannot be invoked or reports an error payload."""


class RemotionLambdaClient:
    """Talks to a deployed Remotion render function through the AWS Lambda invoke API.

    The function accepts a ``start`` payload that kicks off a distributed render and
    a ``status`` payload that returns the current progress document for a render id.
    """

    def __init__(
        self,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        version: str = "4.0.286",
        client_factory: Callable[[str], Any] | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.access_key_id = (access_key_id or "").strip() or None
        self.secret_access_key = (secret_access_key or "").strip() or None
        self.version = version
        self.log = logger or logging.getLogger(__name__)
        self._client_factory = client_factory or self._default_factory

    def start_render(
        self,
        *,
        region: str,
        function_name: str,
        serve_url: str,
        composition: str,
        input_props: dict[str, Any],
        bucket_name: str,
        out_name: str | None = None,
        codec: str = "h264",
        image_format: str = "jpeg",
        privacy: str = "public",
        max_retries: int = 3,
        frames_per_lambda: int | None = None,
        concurrency_per_lambda: int = 1,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": "start",
            "version": self.version,
            "serveUrl": serve_url,
            "composition": composition,
            "inputProps": {"type": "payload", "payload": json.dumps(input_props)},
            "codec": codec,
            "imageFormat": image_format,
            "privacy": privacy,
            "maxRetries": max_retries,
            "framesPerLambda": frames_per_lambda,
            "concurrencyPerLambda": concurrency_per_lambda,
            "bucketName": bucket_name,
            "forceBucketName": bucket_name,
            "outName": out_name,
            "logLevel": "info",
            "downloadBehavior": {"type": "play-in-browser"},
        }
        result = self._invoke(region, function_name, payload)
        if not result.get("renderId"):
            raise RemotionLambdaError("render function did not return a render id")
        self.log.info(
            "remotion render started",
            extra={"render_id": result["renderId"], "bucket": result.get("bucketName"), "composition": composition},
        )
        return result

    def render_progress(
        self,
        *,
        region: str,
        function_name: str,
        render_id: str,
        bucket_name: str,
    ) -> Dict[str, Any]:
        payload = {
            "type": "status",
            "version": self.version,
            "renderId": render_id,
            "bucketName": bucket_name,
            "logLevel": "info",
            "s3OutputProvider": None,
        }
        return self._invoke(region, function_name, payload)

    def _invoke(self, region: str, function_name: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        client = self._client_factory(region)
        try:
            response = client.invoke(
                FunctionName=function_name,
                InvocationType="RequestResponse",
                Payload=json.dumps(payload).encode("utf-8"),
            )
        except (BotoCoreError, ClientError) as exc:
            raise RemotionLambdaError(f"lambda invoke failed: {exc}") from exc

        raw = response.get("Payload")
        body = raw.read() if hasattr(raw, "read") else (raw or b"")
        try:
            result = json.loads(body or b"{}")
        except (TypeError, ValueError) as exc:
            raise RemotionLambdaError("render function returned malformed JSON") from exc
        if not isinstance(result, dict):
            raise RemotionLambdaError("render function returned an unexpected payload")

        if response.get("FunctionError") or "errorMessage" in result:
            raise RemotionLambdaError(result.get("errorMessage") or str(response.get("FunctionError")))
        if result.get("type") == "error":
            raise RemotionLambdaError(result.get("message") or "render function reported an error")
        return result

    def _default_factory(self, region: str) -> Any:
        session = boto3.session.Session(
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            region_name=region,
        )
        return session.client("lambda")
