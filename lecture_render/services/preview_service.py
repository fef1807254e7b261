from __future__ import annotations

import logging
import tempfile
import time
from pathlib import Path
from typing import Optional, Protocol
from uuid import uuid4

from lecture_render.clients.tts import SpeechSynthesizer
from lecture_render.errors import (
    ConfigError,
    EmptyAudioError,
    InvalidInputError,
    StorageError,
    SynthesisError,
    UploadError,
)


class PreviewStorage(Protocol):
    def upload_bytes(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str = ...,
        cache_control: str | None = ...,
        upsert: bool = ...,
    ) -> str: ...

    def lookup_public_url(self, bucket: str, path: str) -> str | None: ...


def generate_preview_name() -> str:
    # millisecond timestamp keeps names sortable; the random suffix separates same-millisecond calls
    return f"preview-{int(time.time() * 1000)}-{uuid4().hex[:8]}.mp3"


def truncate_preview_text(text: str, max_chars: int) -> str:
    if max_chars > 0 and len(text) > max_chars:
        return text[:max_chars] + "..."
    return text


class PreviewService:
    def __init__(
        self,
        tts: SpeechSynthesizer,
        storage: PreviewStorage,
        bucket: str = "audios",
        tmp_dir: str | Path | None = None,
        default_voice_id: str | None = None,
        max_chars: int = 500,
        min_audio_bytes: int = 1024,
        cache_control: str | None = "3600",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.tts = tts
        self.storage = storage
        self.bucket = bucket
        self.tmp_dir = Path(tmp_dir) if tmp_dir else Path(tempfile.gettempdir()) / "tts-preview"
        self.default_voice_id = default_voice_id
        self.max_chars = max_chars
        self.min_audio_bytes = min_audio_bytes
        self.cache_control = cache_control
        self.log = logger or logging.getLogger(__name__)

    def synthesize_preview(self, text: str, voice_id: str | None = None) -> str:
        """Synthesize ``text`` to speech, store it under a fresh name and return its public URL.

        The local audio file never outlives the call, whichever step fails.
        """
        cleaned = (text or "").strip()
        if not cleaned:
            raise InvalidInputError("Text is required")
        if not self.tts.enabled():
            raise ConfigError("text-to-speech credentials are not configured")

        filename = generate_preview_name()
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        local_path = self.tmp_dir / filename
        try:
            try:
                self.tts.synthesize_to_file(
                    truncate_preview_text(cleaned, self.max_chars),
                    local_path,
                    voice_id or self.default_voice_id,
                )
            except SynthesisError:
                raise
            except Exception as exc:
                raise SynthesisError(f"Text-to-speech conversion failed: {exc}") from exc

            size = local_path.stat().st_size if local_path.exists() else 0
            if size < self.min_audio_bytes:
                raise EmptyAudioError(
                    f"synthesized audio is too small ({size} bytes, expected at least {self.min_audio_bytes})"
                )

            self.storage.upload_bytes(
                self.bucket,
                filename,
                local_path.read_bytes(),
                content_type="audio/mpeg",
                cache_control=self.cache_control,
                upsert=True,
            )
            try:
                url = self.storage.lookup_public_url(self.bucket, filename)
            except StorageError as exc:
                raise UploadError(f"Failed to get public URL for the preview: {exc}") from exc
            if not url:
                raise UploadError("Failed to get public URL for the preview")
            self.log.info(
                "speech preview stored",
                extra={"bucket": self.bucket, "path": filename, "content_length": size},
            )
            return url
        finally:
            self._discard(local_path)

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            self.log.warning("failed to remove preview audio", extra={"path": str(path)}, exc_info=True)
