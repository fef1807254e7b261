from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field

AUDIO_EXTENSIONS = (".mp3", ".wav", ".ogg")


class BucketCategory(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"


class Composition(BaseModel):
    id: str = Field(..., min_length=1)
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    duration_in_frames: int = Field(..., gt=0)
    fps: int = Field(..., gt=0)


class CompositionBundle(BaseModel):
    bundle_location: str
    compositions: List[Composition] = Field(default_factory=list)


class RenderTarget(BaseModel):
    region: Optional[str] = None
    function_name: Optional[str] = None
    bucket_name: Optional[str] = None


class RenderJob(BaseModel):
    render_id: str
    bucket_name: str
    composition_id: str
    input_props: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RenderCosts(BaseModel):
    accrued_so_far: float = 0.0
    display_cost: Optional[str] = None
    currency: Optional[str] = None
    disclaimer: Optional[str] = None


class Progress(BaseModel):
    render_id: str
    done: bool
    overall_progress: float = Field(..., ge=0.0, le=1.0)
    errors: List[str] = Field(default_factory=list)
    fatal_error_encountered: bool = False
    error: Optional[str] = None
    costs: RenderCosts = Field(default_factory=RenderCosts)
    output_url: Optional[str] = None
    elapsed_seconds: float = 0.0


class MediaObject(BaseModel):
    media_id: str
    category: BucketCategory
    bucket: str
    url: str


@dataclass(frozen=True)
class ProxiedResource:
    content: bytes
    content_type: str
    status_code: int = 200
    filename: Optional[str] = None
