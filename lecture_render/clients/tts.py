from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Protocol

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from lecture_render.errors import SynthesisError


class SpeechSynthesizer(Protocol):
    def enabled(self) -> bool: ...

    def synthesize_to_file(self, text: str, output_path: Path, voice_id: str | None = None) -> Path: ...


class PollyClient:
    def __init__(
        self,
        access_key_id: str | None,
        secret_access_key: str | None,
        region_name: str = "us-east-1",
        engine: str = "neural",
        default_voice_id: str = "Matthew",
        client: Any = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.access_key_id = (access_key_id or "").strip()
        self.secret_access_key = (secret_access_key or "").strip()
        self.region_name = region_name
        self.engine = engine
        self.default_voice_id = default_voice_id
        self.log = logger or logging.getLogger(__name__)
        self._client = client

    def enabled(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    def synthesize_to_file(self, text: str, output_path: Path, voice_id: str | None = None) -> Path:
        if not self.enabled():
            raise RuntimeError("Polly client is not configured")
        voice = voice_id or self.default_voice_id
        try:
            response = self._polly().synthesize_speech(
                Text=text,
                VoiceId=voice,
                OutputFormat="mp3",
                Engine=self.engine,
            )
        except (BotoCoreError, ClientError) as exc:
            raise SynthesisError(f"Text-to-speech conversion failed: {exc}") from exc
        stream = response.get("AudioStream")
        if stream is None:
            raise SynthesisError("No audio stream received from Polly")
        written = 0
        with open(output_path, "wb") as handle:
            for chunk in stream.iter_chunks():
                handle.write(chunk)
                written += len(chunk)
        self.log.info(
            "polly synthesis completed",
            extra={"voice_id": voice, "engine": self.engine, "content_length": written},
        )
        return output_path

    def _polly(self) -> Any:
        if self._client is None:
            session = boto3.session.Session(
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                region_name=self.region_name,
            )
            self._client = session.client("polly")
        return self._client


class ElevenLabsClient:
    def __init__(
        self,
        api_key: str | None,
        voice_id: str | None,
        model_id: str = "eleven_multilingual_v2",
        base_url: str = "https://api.elevenlabs.io",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.voice_id = (voice_id or "").strip()
        self.model_id = model_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.log = logger or logging.getLogger(__name__)

    def enabled(self) -> bool:
        return bool(self.api_key and self.voice_id)

    def synthesize_to_file(self, text: str, output_path: Path, voice_id: str | None = None) -> Path:
        if not self.enabled():
            raise RuntimeError("ElevenLabs client is not configured")
        voice = voice_id or self.voice_id
        url = f"{self.base_url}/v1/text-to-speech/{voice}"
        payload = {
            "text": text,
            "model_id": self.model_id,
        }
        headers = {
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(url, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SynthesisError(f"Text-to-speech conversion failed: {exc}") from exc
        audio = response.content
        Path(output_path).write_bytes(audio)
        self.log.info(
            "elevenlabs synthesis completed",
            extra={
                "voice_id": voice,
                "model_id": self.model_id,
                "content_length": len(audio),
            },
        )
        return output_path
