from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Mapping, Optional, Protocol, Tuple

from lecture_render.errors import InvalidInputError, NotFoundError
from lecture_render.models.domain import AUDIO_EXTENSIONS, BucketCategory, MediaObject


class PublicUrlLookup(Protocol):
    def lookup_public_url(self, bucket: str, path: str) -> str | None: ...


def classify_media(media_id: str) -> BucketCategory:
    if media_id.lower().endswith(AUDIO_EXTENSIONS):
        return BucketCategory.AUDIO
    return BucketCategory.VIDEO


def candidate_categories(media_id: str) -> List[BucketCategory]:
    """Primary category from the extension first, then every other category as fallback."""
    primary = classify_media(media_id)
    return [primary] + [category for category in BucketCategory if category is not primary]


def first_match(
    candidates: Iterable[BucketCategory],
    lookup: Callable[[BucketCategory], str | None],
) -> Optional[Tuple[BucketCategory, str]]:
    for category in candidates:
        url = lookup(category)
        if url:
            return category, url
    return None


class BucketResolver:
    def __init__(
        self,
        storage: PublicUrlLookup,
        buckets: Mapping[BucketCategory, str],
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.storage = storage
        self.buckets = dict(buckets)
        self.log = logger or logging.getLogger(__name__)

    def resolve(self, media_id: str) -> MediaObject:
        key = (media_id or "").strip().lstrip("/")
        if not key:
            raise InvalidInputError("Missing media ID")
        candidates = candidate_categories(key)
        match = first_match(
            candidates,
            lambda category: self.storage.lookup_public_url(self.buckets[category], key),
        )
        if match is None:
            self.log.warning(
                "media file not found",
                extra={"media_id": key, "buckets": [self.buckets[c] for c in candidates]},
            )
            raise NotFoundError("Media file not found", details={"media_id": key})
        category, url = match
        if category is not candidates[0]:
            self.log.info(
                "media resolved from fallback bucket",
                extra={"media_id": key, "bucket": self.buckets[category]},
            )
        return MediaObject(media_id=key, category=category, bucket=self.buckets[category], url=url)
