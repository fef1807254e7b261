from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


def _polly_voice_catalog() -> list[dict[str, str]]:
    return [
        {"voice_id": "Matthew", "name": "Bilal - Male"},
        {"voice_id": "Joanna", "name": "Elohor - Female"},
        {"voice_id": "Stephen", "name": "Idris - Male"},
        {"voice_id": "Emma", "name": "Gabrielle - Female"},
        {"voice_id": "Brian", "name": "Bolaji - Male"},
    ]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LECTURE_RENDER_", env_file=".env", env_file_encoding="utf-8")

    app_name: str = "lecture-render"
    host: str = "0.0.0.0"
    port: int = 8100
    log_level: str = "INFO"

    # Object storage configuration
    storage_provider: str = "supabase"
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_public_url: str = ""
    s3_endpoint_url: str = ""
    s3_region: str | None = None
    s3_public_url: str = ""
    s3_access_key: str = ""
    s3_secret_key: str = ""
    s3_addressing_style: str | None = None
    audio_bucket: str = "audios"
    video_bucket: str = "videos"

    # Remote render (Remotion Lambda)
    remotion_region: str = "us-east-1"
    remotion_function_name: str = "remotion-render-4-0-286-mem3008mb-disk2048mb-300sec"
    remotion_serve_url: str = ""
    remotion_bucket_name: str = ""
    remotion_version: str = "4.0.286"
    remotion_codec: str = "h264"
    remotion_image_format: str = "jpeg"
    remotion_privacy: str = "public"
    remotion_max_retries: int = 3
    remotion_frames_per_lambda: int = 100
    remotion_concurrency_per_lambda: int = 2
    remotion_aws_access_key_id: str = ""
    remotion_aws_secret_access_key: str = ""
    default_composition_id: str = "VideoLecture"

    # Bundler
    remotion_project_root: str = "."
    remotion_entry_point: str = "app/remotion/index.tsx"
    remotion_bundle_dir: str = "build/remotion-bundle"
    npx_binary: str = "npx"
    node_binary: str = "node"

    # Text-to-speech
    tts_provider: str = "polly"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "us-east-1"
    polly_engine: str = "neural"
    default_voice_id: str = "Matthew"
    elevenlabs_api_key: str = ""
    elevenlabs_voice_id: str = ""
    elevenlabs_model_id: str = "eleven_multilingual_v2"
    elevenlabs_base_url: str = "https://api.elevenlabs.io"
    # explicit catalog; when unset the list follows tts_provider
    voice_catalog: Optional[list[dict[str, str]]] = None

    # Speech previews
    preview_tmp_dir: str = ""
    preview_max_chars: int = 500
    # ~3 MP3 frames at the lowest Polly bitrate; anything smaller is silence or a truncated stream
    min_preview_audio_bytes: int = 1024
    preview_cache_control: str = "3600"

    # Proxy / outbound HTTP
    http_timeout_seconds: float = 60.0
    proxy_cache_max_age: int = 3600

    def available_voices(self) -> list[dict[str, str]]:
        if self.voice_catalog is not None:
            return self.voice_catalog
        if self.tts_provider.lower() == "elevenlabs":
            if not self.elevenlabs_voice_id:
                return []
            return [{"voice_id": self.elevenlabs_voice_id, "name": "Default"}]
        return _polly_voice_catalog()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
