from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import ValidationError

from lecture_render.clients.bundler import RemotionBundler
from lecture_render.errors import BundleError
from lecture_render.models.domain import Composition, CompositionBundle


class CompositionResolver:
    def __init__(self, bundler: RemotionBundler, logger: Optional[logging.Logger] = None) -> None:
        self.bundler = bundler
        self.log = logger or logging.getLogger(__name__)

    def build_bundle(self) -> CompositionBundle:
        bundle_location = self.bundler.bundle()
        raw_items = self.bundler.list_compositions(bundle_location)
        compositions: List[Composition] = []
        for item in raw_items:
            try:
                compositions.append(
                    Composition(
                        id=item.get("id"),
                        width=item.get("width"),
                        height=item.get("height"),
                        duration_in_frames=item.get("durationInFrames"),
                        fps=item.get("fps"),
                    )
                )
            except (AttributeError, ValidationError) as exc:
                raise BundleError(f"invalid composition in bundle: {exc}") from exc
        self.log.info(
            "compositions resolved",
            extra={"bundle_location": bundle_location, "count": len(compositions)},
        )
        return CompositionBundle(bundle_location=bundle_location, compositions=compositions)

    def resolve_compositions(self) -> List[Composition]:
        return self.build_bundle().compositions
