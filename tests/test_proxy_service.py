import httpx
import pytest

from conftest import RecordingStorage
from lecture_render.clients.supabase_storage import SupabaseStorageClient
from lecture_render.errors import FetchError, InvalidInputError, NotFoundError
from lecture_render.models.domain import BucketCategory
from lecture_render.services.media_resolver import BucketResolver
from lecture_render.services.proxy_service import (
    ProxyService,
    extract_filename,
    might_have_cors_issues,
)

VIDEO_URL = "https://project.supabase.co/storage/v1/object/public/videos/lecture1.mp4"


def _proxy(handler, storage=None, cache_max_age=3600):
    resolver = BucketResolver(
        storage or RecordingStorage(),
        {BucketCategory.AUDIO: "audios", BucketCategory.VIDEO: "videos"},
    )
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ProxyService(http_client=client, resolver=resolver, cache_max_age=cache_max_age)


def test_fetch_relays_bytes_and_content_type():
    proxy = _proxy(lambda request: httpx.Response(200, content=b"video-bytes", headers={"content-type": "video/mp4"}))

    resource = proxy.fetch(VIDEO_URL)
    headers = proxy.response_headers(resource)

    assert resource.content == b"video-bytes"
    assert resource.status_code == 200
    assert headers["Content-Type"] == "video/mp4"
    assert headers["Content-Length"] == "11"
    assert headers["Access-Control-Allow-Origin"] == "*"
    assert headers["Cache-Control"] == "public, max-age=3600"
    assert headers["Content-Disposition"] == 'inline; filename="lecture1.mp4"'


def test_missing_content_type_defaults_to_binary():
    proxy = _proxy(lambda request: httpx.Response(200, content=b"\x00\x01"))

    resource = proxy.fetch("https://cdn.example.com/download")

    assert resource.content_type == "application/octet-stream"
    assert resource.filename is None
    assert "Content-Disposition" not in proxy.response_headers(resource)


def test_upstream_error_status_is_passed_through():
    proxy = _proxy(lambda request: httpx.Response(403, text="denied"))

    with pytest.raises(FetchError) as excinfo:
        proxy.fetch(VIDEO_URL)

    assert excinfo.value.upstream_status == 403
    assert excinfo.value.status_code == 403


def test_network_failure_is_bad_gateway():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchError) as excinfo:
        _proxy(handler).fetch(VIDEO_URL)

    assert excinfo.value.upstream_status is None
    assert excinfo.value.status_code == 502


def test_relative_url_is_rejected():
    proxy = _proxy(lambda request: httpx.Response(200))

    with pytest.raises(InvalidInputError):
        proxy.fetch("/videos/lecture1.mp4")


def test_fetch_media_resolves_before_fetching():
    storage = RecordingStorage({("audios", "lecture1.mp4"): "https://cdn.example.com/audios/lecture1.mp4"})
    fetched = []

    def handler(request):
        fetched.append(str(request.url))
        return httpx.Response(200, content=b"mp4", headers={"content-type": "video/mp4"})

    resource = _proxy(handler, storage).fetch_media("lecture1.mp4")

    assert fetched == ["https://cdn.example.com/audios/lecture1.mp4"]
    assert resource.filename == "lecture1.mp4"
    assert storage.lookups == [("videos", "lecture1.mp4"), ("audios", "lecture1.mp4")]


def test_fetch_media_not_found_skips_fetch():
    fetched = []

    def handler(request):
        fetched.append(request)
        return httpx.Response(200)

    with pytest.raises(NotFoundError):
        _proxy(handler).fetch_media("missing.mp4")

    assert fetched == []


def test_fetch_media_reads_hostless_storage_directly():
    storage = SupabaseStorageClient(api_url="", api_key="")
    storage.upload_bytes("audios", "intro.mp3", b"ID3-audio")
    fetched = []

    def handler(request):
        fetched.append(request)
        return httpx.Response(500)

    resource = _proxy(handler, storage).fetch_media("intro.mp3")

    assert fetched == []
    assert resource.content == b"ID3-audio"
    assert resource.content_type == "audio/mpeg"
    assert resource.status_code == 200
    assert resource.filename == "intro.mp3"


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://cdn.example.com/videos/lecture1.mp4", "lecture1.mp4"),
        ("https://cdn.example.com/a/intro%20take.mp3?token=abc", "intro take.mp3"),
        ("https://cdn.example.com/videos/", None),
        ("https://cdn.example.com/download", None),
    ],
)
def test_extract_filename(url, expected):
    assert extract_filename(url) == expected


def test_might_have_cors_issues():
    assert might_have_cors_issues(VIDEO_URL)
    assert not might_have_cors_issues("https://cdn.example.com/lecture1.mp4")
    assert not might_have_cors_issues("")
