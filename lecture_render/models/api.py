from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain import Composition, MediaObject, RenderTarget


class CompositionListResponse(BaseModel):
    success: bool = True
    bundle_location: str
    compositions: List[Composition]


class RenderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    composition_id: Optional[str] = Field(default=None, validation_alias="composition_id")
    input_props: dict[str, Any] = Field(default_factory=dict, validation_alias="input_props")
    target: Optional[RenderTarget] = None


class RenderResponse(BaseModel):
    render_id: str
    bucket_name: str
    composition_id: str


class PreviewVoiceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(..., validation_alias="text")
    voice_id: Optional[str] = Field(default=None, validation_alias="voice_id")

    @field_validator("text")
    @classmethod
    def validate_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Text is required")
        return value


class PreviewVoiceResponse(BaseModel):
    audio_url: str


class VoiceInfo(BaseModel):
    voice_id: str
    name: Optional[str] = None


class VoiceListResponse(BaseModel):
    items: List[VoiceInfo]


class MediaLocationResponse(BaseModel):
    media: MediaObject
    proxy_url: str
    might_have_cors_issues: bool
