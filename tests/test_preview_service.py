import httpx
import pytest

from conftest import PUBLIC_BASE, FakeTTS
from lecture_render.clients.supabase_storage import SupabaseStorageClient
from lecture_render.errors import (
    ConfigError,
    EmptyAudioError,
    InvalidInputError,
    SynthesisError,
    UploadError,
)
from lecture_render.services.preview_service import PreviewService, truncate_preview_text


def _memory_storage():
    return SupabaseStorageClient(api_url="", api_key="", public_url=PUBLIC_BASE)


def _leftovers(tmp_dir):
    return list(tmp_dir.iterdir()) if tmp_dir.exists() else []


def test_preview_is_stored_in_audio_bucket(tmp_path):
    storage = _memory_storage()
    tmp_dir = tmp_path / "previews"
    service = PreviewService(FakeTTS(), storage, bucket="audios", tmp_dir=tmp_dir, default_voice_id="Matthew")

    url = service.synthesize_preview("Hello world")

    assert url.startswith(f"{PUBLIC_BASE}/audios/preview-")
    assert url.endswith(".mp3")
    stored = storage.download_bytes("audios", url.rsplit("/", 1)[-1])
    assert len(stored) >= service.min_audio_bytes
    assert _leftovers(tmp_dir) == []


def test_repeated_previews_get_distinct_objects(tmp_path):
    storage = _memory_storage()
    service = PreviewService(FakeTTS(), storage, tmp_dir=tmp_path)

    first = service.synthesize_preview("Hello world")
    second = service.synthesize_preview("Hello world")

    assert first != second
    assert storage.lookup_public_url("audios", first.rsplit("/", 1)[-1]) == first
    assert storage.lookup_public_url("audios", second.rsplit("/", 1)[-1]) == second


def test_missing_credentials_fail_before_any_work(tmp_path):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200)

    storage = SupabaseStorageClient(
        api_url="https://project.supabase.co",
        api_key="service-key",
        transport=httpx.MockTransport(handler),
    )
    tts = FakeTTS(enabled=False)
    tmp_dir = tmp_path / "previews"
    service = PreviewService(tts, storage, tmp_dir=tmp_dir)

    with pytest.raises(ConfigError):
        service.synthesize_preview("Hello world")

    assert requests == []
    assert tts.calls == []
    assert not tmp_dir.exists()


def test_tiny_audio_is_rejected_and_cleaned_up(tmp_path):
    storage = _memory_storage()
    service = PreviewService(FakeTTS(payload=b"\x00" * 10), storage, tmp_dir=tmp_path)

    with pytest.raises(EmptyAudioError):
        service.synthesize_preview("Hello world")

    assert _leftovers(tmp_path) == []
    assert storage._memory == {}


def test_synthesis_failure_is_cleaned_up(tmp_path):
    tts = FakeTTS(error=SynthesisError("voice not available"))
    service = PreviewService(tts, _memory_storage(), tmp_dir=tmp_path)

    with pytest.raises(SynthesisError, match="voice not available"):
        service.synthesize_preview("Hello world")

    assert _leftovers(tmp_path) == []


def test_unexpected_tts_failure_becomes_synthesis_error(tmp_path):
    service = PreviewService(FakeTTS(error=RuntimeError("boom")), _memory_storage(), tmp_dir=tmp_path)

    with pytest.raises(SynthesisError, match="boom"):
        service.synthesize_preview("Hello world")

    assert _leftovers(tmp_path) == []


def test_upload_failure_is_cleaned_up(tmp_path):
    storage = SupabaseStorageClient(
        api_url="https://project.supabase.co",
        api_key="service-key",
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="bucket unavailable")),
    )
    service = PreviewService(FakeTTS(), storage, tmp_dir=tmp_path)

    with pytest.raises(UploadError, match="500"):
        service.synthesize_preview("Hello world")

    assert _leftovers(tmp_path) == []


def test_missing_public_url_is_an_upload_error(tmp_path):
    class NoUrlStorage:
        def upload_bytes(self, bucket, path, content, content_type="", cache_control=None, upsert=False):
            return ""

        def lookup_public_url(self, bucket, path):
            return None

    service = PreviewService(FakeTTS(), NoUrlStorage(), tmp_dir=tmp_path)

    with pytest.raises(UploadError):
        service.synthesize_preview("Hello world")

    assert _leftovers(tmp_path) == []


def test_failed_url_lookup_after_upload_is_an_upload_error(tmp_path):
    def handler(request):
        if request.method == "HEAD":
            return httpx.Response(503)
        return httpx.Response(200, json={"Key": "audios/preview.mp3"})

    storage = SupabaseStorageClient(
        api_url="https://project.supabase.co",
        api_key="service-key",
        transport=httpx.MockTransport(handler),
    )
    service = PreviewService(FakeTTS(), storage, tmp_dir=tmp_path)

    with pytest.raises(UploadError, match="503") as excinfo:
        service.synthesize_preview("Hello world")

    assert excinfo.value.kind == "upload_error"
    assert _leftovers(tmp_path) == []


def test_blank_text_is_rejected(tmp_path):
    service = PreviewService(FakeTTS(), _memory_storage(), tmp_dir=tmp_path)

    with pytest.raises(InvalidInputError):
        service.synthesize_preview("   ")


def test_long_text_is_truncated_and_default_voice_used(tmp_path):
    tts = FakeTTS()
    service = PreviewService(tts, _memory_storage(), tmp_dir=tmp_path, default_voice_id="Joanna", max_chars=20)

    service.synthesize_preview("a" * 50)

    text, _, voice = tts.calls[0]
    assert text == "a" * 20 + "..."
    assert voice == "Joanna"


def test_truncate_preview_text_keeps_short_text():
    assert truncate_preview_text("short", 500) == "short"
