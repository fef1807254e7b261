from __future__ import annotations

import io
import json
import subprocess
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from lecture_render.clients.bundler import RemotionBundler
from lecture_render.clients.remotion_lambda import RemotionLambdaClient
from lecture_render.clients.supabase_storage import SupabaseStorageClient
from lecture_render.config import Settings
from lecture_render.main import Services
from lecture_render.models.domain import BucketCategory
from lecture_render.services.compositions import CompositionResolver
from lecture_render.services.media_resolver import BucketResolver
from lecture_render.services.preview_service import PreviewService
from lecture_render.services.proxy_service import ProxyService
from lecture_render.services.render_service import RenderService

PUBLIC_BASE = "https://project.supabase.co/storage/v1/object/public"
FAKE_MP3 = b"\xff\xfb\x90\x64" * 512


class FakeTTS:
    def __init__(self, payload: bytes = FAKE_MP3, enabled: bool = True, error: Exception | None = None) -> None:
        self.payload = payload
        self._enabled = enabled
        self.error = error
        self.calls: list[tuple[str, Path, str | None]] = []

    def enabled(self) -> bool:
        return self._enabled

    def synthesize_to_file(self, text: str, output_path: Path, voice_id: str | None = None) -> Path:
        self.calls.append((text, Path(output_path), voice_id))
        if self.error is not None:
            raise self.error
        Path(output_path).write_bytes(self.payload)
        return output_path


class FakeLambda:
    """Stands in for a boto3 ``lambda`` client; answers by payload ``type``."""

    def __init__(self, responses: dict[str, Any]) -> None:
        self.responses = responses
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.regions: list[str] = []

    def factory(self, region: str) -> "FakeLambda":
        self.regions.append(region)
        return self

    def invoke(self, FunctionName: str, InvocationType: str, Payload: bytes) -> dict[str, Any]:
        body = json.loads(Payload)
        self.calls.append((FunctionName, body))
        result = self.responses[body["type"]]
        if isinstance(result, Exception):
            raise result
        response: dict[str, Any] = {"StatusCode": 200, "Payload": io.BytesIO(json.dumps(result).encode("utf-8"))}
        if "errorMessage" in result:
            response["FunctionError"] = "Unhandled"
        return response


class RecordingStorage:
    def __init__(self, objects: dict[tuple[str, str], str] | None = None) -> None:
        self.objects = dict(objects or {})
        self.lookups: list[tuple[str, str]] = []

    def lookup_public_url(self, bucket: str, path: str) -> str | None:
        self.lookups.append((bucket, path))
        return self.objects.get((bucket, path))


def completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        supabase_url="",
        supabase_key="",
        supabase_public_url=PUBLIC_BASE,
        remotion_serve_url="https://remotionlambda.s3.amazonaws.com/sites/lecture/index.html",
        remotion_bucket_name="",
        remotion_region="us-east-1",
        preview_tmp_dir=str(tmp_path / "previews"),
        remotion_project_root=str(tmp_path),
    )


@pytest.fixture
def fake_lambda() -> FakeLambda:
    return FakeLambda(
        {
            "start": {"type": "success", "renderId": "r-8f2c1d", "bucketName": "my-bucket"},
            "status": {
                "overallProgress": 0.12,
                "done": False,
                "errors": [],
                "fatalErrorEncountered": False,
                "costs": {"accruedSoFar": 0.0021, "displayCost": "$0.0021", "currency": "USD"},
                "outputFile": None,
                "timeRenderedInMilliseconds": 2500,
            },
        }
    )


@pytest.fixture
def make_services(settings: Settings, fake_lambda: FakeLambda) -> Callable[..., Services]:
    def _build(
        tts: FakeTTS | None = None,
        storage: SupabaseStorageClient | None = None,
        handler: Callable[[httpx.Request], httpx.Response] | None = None,
        runner: Callable[..., subprocess.CompletedProcess] | None = None,
    ) -> Services:
        storage = storage or SupabaseStorageClient(api_url="", api_key="", public_url=PUBLIC_BASE)
        resolver = BucketResolver(
            storage=storage,
            buckets={BucketCategory.AUDIO: "audios", BucketCategory.VIDEO: "videos"},
        )
        http_client = httpx.Client(transport=httpx.MockTransport(handler or (lambda request: httpx.Response(404))))
        bundler = RemotionBundler(
            project_root=settings.remotion_project_root,
            entry_point=settings.remotion_entry_point,
            out_dir=settings.remotion_bundle_dir,
            runner=runner or (lambda *args, **kwargs: completed("[]")),
        )
        return Services(
            settings=settings,
            compositions=CompositionResolver(bundler),
            renders=RenderService(RemotionLambdaClient(client_factory=fake_lambda.factory), settings),
            previews=PreviewService(
                tts=tts or FakeTTS(),
                storage=storage,
                bucket="audios",
                tmp_dir=settings.preview_tmp_dir,
                default_voice_id="Matthew",
            ),
            resolver=resolver,
            proxy=ProxyService(http_client=http_client, resolver=resolver),
        )

    return _build
