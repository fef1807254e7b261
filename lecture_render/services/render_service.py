from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import uuid4

from fastapi import status

from lecture_render.clients.remotion_lambda import RemotionLambdaClient, RemotionLambdaError
from lecture_render.config import Settings
from lecture_render.errors import DispatchError, ProgressQueryError
from lecture_render.models.domain import Progress, RenderCosts, RenderJob, RenderTarget


def normalize_progress(render_id: str, raw: dict[str, Any]) -> Progress:
    """Fold a raw status document from the render function into a :class:`Progress`.

    A fatal error always reads as ``done`` and carries the joined error messages in
    ``error``; elapsed time is derived from the millisecond counter.
    """
    errors = [_error_message(item) for item in raw.get("errors") or []]
    fatal = bool(raw.get("fatalErrorEncountered"))
    done = bool(raw.get("done")) or fatal

    try:
        overall = float(raw.get("overallProgress") or 0.0)
    except (TypeError, ValueError):
        overall = 0.0
    overall = min(max(overall, 0.0), 1.0)

    millis = raw.get("timeRenderedInMilliseconds")
    if millis is None:
        millis = raw.get("timeToFinish")
    try:
        elapsed = float(millis or 0) / 1000
    except (TypeError, ValueError):
        elapsed = 0.0

    costs = raw.get("costs") or {}
    return Progress(
        render_id=render_id,
        done=done,
        overall_progress=overall,
        errors=errors,
        fatal_error_encountered=fatal,
        error=", ".join(errors) if fatal else None,
        costs=RenderCosts(
            accrued_so_far=float(costs.get("accruedSoFar") or 0.0),
            display_cost=costs.get("displayCost"),
            currency=costs.get("currency"),
            disclaimer=costs.get("disclaimer"),
        ),
        output_url=raw.get("outputFile") or None,
        elapsed_seconds=elapsed,
    )


def _error_message(item: Any) -> str:
    if isinstance(item, dict):
        return str(item.get("message") or item.get("name") or item)
    return str(item)


class RenderService:
    def __init__(
        self,
        lambda_client: RemotionLambdaClient,
        settings: Settings,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.lambda_client = lambda_client
        self.settings = settings
        self.log = logger or logging.getLogger(__name__)

    def resolve_target(self, target: RenderTarget | None = None) -> RenderTarget:
        target = target or RenderTarget()
        return RenderTarget(
            region=target.region or self.settings.remotion_region,
            function_name=target.function_name or self.settings.remotion_function_name,
            bucket_name=target.bucket_name or self.settings.remotion_bucket_name,
        )

    def dispatch(
        self,
        composition_id: str,
        input_props: dict[str, Any] | None = None,
        target: RenderTarget | None = None,
    ) -> RenderJob:
        resolved = self.resolve_target(target)
        missing = [
            name
            for name, value in (
                ("bucket_name", resolved.bucket_name),
                ("function_name", resolved.function_name),
                ("region", resolved.region),
                ("serve_url", self.settings.remotion_serve_url),
            )
            if not value
        ]
        if missing:
            raise DispatchError(
                f"render target is missing configuration: {', '.join(missing)}",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        props = dict(input_props or {})
        try:
            result = self.lambda_client.start_render(
                region=resolved.region,
                function_name=resolved.function_name,
                serve_url=self.settings.remotion_serve_url,
                composition=composition_id,
                input_props=props,
                bucket_name=resolved.bucket_name,
                out_name=f"{uuid4()}.mp4",
                codec=self.settings.remotion_codec,
                image_format=self.settings.remotion_image_format,
                privacy=self.settings.remotion_privacy,
                max_retries=self.settings.remotion_max_retries,
                frames_per_lambda=self.settings.remotion_frames_per_lambda,
                concurrency_per_lambda=self.settings.remotion_concurrency_per_lambda,
            )
        except RemotionLambdaError as exc:
            self.log.error(
                "render dispatch failed",
                extra={"composition": composition_id, "function": resolved.function_name},
            )
            raise DispatchError(f"Failed to start render: {exc}") from exc
        return RenderJob(
            render_id=result["renderId"],
            bucket_name=result.get("bucketName") or resolved.bucket_name,
            composition_id=composition_id,
            input_props=props,
        )

    def poll_progress(self, render_id: str, target: RenderTarget | None = None) -> Progress:
        resolved = self.resolve_target(target)
        if not resolved.bucket_name:
            raise ProgressQueryError(
                "render bucket is not configured",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        try:
            raw = self.lambda_client.render_progress(
                region=resolved.region,
                function_name=resolved.function_name,
                render_id=render_id,
                bucket_name=resolved.bucket_name,
            )
        except RemotionLambdaError as exc:
            raise ProgressQueryError(f"Failed to get render progress: {exc}") from exc
        progress = normalize_progress(render_id, raw)
        if progress.fatal_error_encountered:
            self.log.warning(
                "render reported fatal error",
                extra={"render_id": render_id, "error": progress.error},
            )
        return progress
