from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from fastapi import Depends, FastAPI, Query, Request, Response, status

from lecture_render.clients.bundler import RemotionBundler
from lecture_render.clients.remotion_lambda import RemotionLambdaClient
from lecture_render.clients.s3_storage import S3StorageClient
from lecture_render.clients.supabase_storage import SupabaseStorageClient
from lecture_render.clients.tts import ElevenLabsClient, PollyClient
from lecture_render.config import Settings, get_settings
from lecture_render.errors import InvalidInputError, MediaPipelineError, media_pipeline_error_handler
from lecture_render.models.api import (
    CompositionListResponse,
    MediaLocationResponse,
    PreviewVoiceRequest,
    PreviewVoiceResponse,
    RenderRequest,
    RenderResponse,
    VoiceInfo,
    VoiceListResponse,
)
from lecture_render.models.domain import BucketCategory, Progress, ProxiedResource, RenderTarget
from lecture_render.services.compositions import CompositionResolver
from lecture_render.services.media_resolver import BucketResolver
from lecture_render.services.preview_service import PreviewService
from lecture_render.services.proxy_service import ProxyService, might_have_cors_issues, preflight_headers
from lecture_render.services.render_service import RenderService


def resolve_log_level(name: str) -> int:
    level = logging.getLevelName((name or "").strip().upper())
    return level if isinstance(level, int) else logging.INFO


logging.basicConfig(
    level=resolve_log_level(get_settings().log_level),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title="lecture-render")
app.add_exception_handler(MediaPipelineError, media_pipeline_error_handler)


@dataclass
class Services:
    settings: Settings
    compositions: CompositionResolver
    renders: RenderService
    previews: PreviewService
    resolver: BucketResolver
    proxy: ProxyService


_services: Services | None = None


def build_services(settings: Settings) -> Services:
    log = logging.getLogger("lecture_render")
    if settings.storage_provider.lower() == "s3":
        storage = S3StorageClient(
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            endpoint_url=settings.s3_endpoint_url,
            region_name=settings.s3_region,
            public_url=settings.s3_public_url,
            addressing_style=settings.s3_addressing_style,
        )
    else:
        storage = SupabaseStorageClient(
            api_url=settings.supabase_url,
            api_key=settings.supabase_key,
            public_url=settings.supabase_public_url,
            timeout=settings.http_timeout_seconds,
        )

    if settings.tts_provider.lower() == "elevenlabs":
        tts = ElevenLabsClient(
            api_key=settings.elevenlabs_api_key,
            voice_id=settings.elevenlabs_voice_id,
            model_id=settings.elevenlabs_model_id,
            base_url=settings.elevenlabs_base_url,
            timeout=settings.http_timeout_seconds,
        )
        default_voice = settings.elevenlabs_voice_id
    else:
        tts = PollyClient(
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
            engine=settings.polly_engine,
            default_voice_id=settings.default_voice_id,
        )
        default_voice = settings.default_voice_id

    resolver = BucketResolver(
        storage=storage,
        buckets={
            BucketCategory.AUDIO: settings.audio_bucket,
            BucketCategory.VIDEO: settings.video_bucket,
        },
    )
    bundler = RemotionBundler(
        project_root=settings.remotion_project_root,
        entry_point=settings.remotion_entry_point,
        out_dir=settings.remotion_bundle_dir,
        npx_binary=settings.npx_binary,
        node_binary=settings.node_binary,
    )
    lambda_client = RemotionLambdaClient(
        access_key_id=settings.remotion_aws_access_key_id,
        secret_access_key=settings.remotion_aws_secret_access_key,
        version=settings.remotion_version,
    )
    log.info(
        "services configured",
        extra={"storage_provider": settings.storage_provider, "tts_provider": settings.tts_provider},
    )
    return Services(
        settings=settings,
        compositions=CompositionResolver(bundler),
        renders=RenderService(lambda_client, settings),
        previews=PreviewService(
            tts=tts,
            storage=storage,
            bucket=settings.audio_bucket,
            tmp_dir=settings.preview_tmp_dir or None,
            default_voice_id=default_voice,
            max_chars=settings.preview_max_chars,
            min_audio_bytes=settings.min_preview_audio_bytes,
            cache_control=settings.preview_cache_control,
        ),
        resolver=resolver,
        proxy=ProxyService(
            http_client=httpx.Client(timeout=settings.http_timeout_seconds),
            resolver=resolver,
            cache_max_age=settings.proxy_cache_max_age,
        ),
    )


def get_services(settings: Settings = Depends(get_settings)) -> Services:
    global _services
    if _services is None:
        _services = build_services(settings)
    return _services


def _proxied_response(services: Services, resource: ProxiedResource) -> Response:
    return Response(
        content=resource.content,
        status_code=resource.status_code,
        headers=services.proxy.response_headers(resource),
        media_type=resource.content_type,
    )


def _preflight_response() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=preflight_headers())


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/compositions", response_model=CompositionListResponse)
def list_compositions(services: Services = Depends(get_services)) -> CompositionListResponse:
    bundle = services.compositions.build_bundle()
    return CompositionListResponse(bundle_location=bundle.bundle_location, compositions=bundle.compositions)


@app.post("/renders", response_model=RenderResponse, status_code=status.HTTP_202_ACCEPTED)
def dispatch_render(payload: RenderRequest, services: Services = Depends(get_services)) -> RenderResponse:
    composition_id = payload.composition_id or services.settings.default_composition_id
    job = services.renders.dispatch(composition_id, payload.input_props, payload.target)
    return RenderResponse(
        render_id=job.render_id,
        bucket_name=job.bucket_name,
        composition_id=job.composition_id,
    )


@app.get("/renders/{render_id}/progress", response_model=Progress)
def render_progress(
    render_id: str,
    bucket_name: str | None = Query(default=None),
    region: str | None = Query(default=None),
    function_name: str | None = Query(default=None),
    services: Services = Depends(get_services),
) -> Progress:
    target = RenderTarget(region=region, function_name=function_name, bucket_name=bucket_name)
    return services.renders.poll_progress(render_id, target)


@app.post("/previews/voice", response_model=PreviewVoiceResponse)
def preview_voice(payload: PreviewVoiceRequest, services: Services = Depends(get_services)) -> PreviewVoiceResponse:
    audio_url = services.previews.synthesize_preview(payload.text, payload.voice_id)
    return PreviewVoiceResponse(audio_url=audio_url)


@app.get("/voices", response_model=VoiceListResponse)
def list_voices(services: Services = Depends(get_services)) -> VoiceListResponse:
    items = [VoiceInfo(**voice) for voice in services.settings.available_voices()]
    return VoiceListResponse(items=items)


@app.get("/media/{media_id:path}", response_model=MediaLocationResponse)
def locate_media(media_id: str, request: Request, services: Services = Depends(get_services)) -> MediaLocationResponse:
    media = services.resolver.resolve(media_id)
    proxy_url = str(request.url_for("proxy_media", media_id=media.media_id))
    return MediaLocationResponse(
        media=media,
        proxy_url=proxy_url,
        might_have_cors_issues=might_have_cors_issues(media.url),
    )


@app.get("/media-proxy/{media_id:path}", name="proxy_media")
def proxy_media(media_id: str, services: Services = Depends(get_services)) -> Response:
    return _proxied_response(services, services.proxy.fetch_media(media_id))


@app.options("/media-proxy/{media_id:path}")
def proxy_media_preflight(media_id: str) -> Response:
    return _preflight_response()


@app.get("/cors-proxy")
def cors_proxy(url: str | None = Query(default=None), services: Services = Depends(get_services)) -> Response:
    if not url:
        raise InvalidInputError("URL parameter is required")
    return _proxied_response(services, services.proxy.fetch(url))


@app.options("/cors-proxy")
def cors_proxy_preflight() -> Response:
    return _preflight_response()
