"""Per-resource leaf task: fetch, check cache, generate, record."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Protocol, TypeVar

from assetgraph.cache.keys import hash_content, hash_resource
from assetgraph.cache.manager import CacheManager
from assetgraph.errors.exceptions import FetchFailedError, OpenFailedError
from assetgraph.pipeline import variants as vg
from assetgraph.types import (
    BreakpointSet,
    CacheEntry,
    ImageFormat,
    ImageVariant,
    ProcessingResult,
    ResourceIdentifier,
    ResultStatus,
    SourceImage,
)
from assetgraph.utils import image as imaging

logger = logging.getLogger(__name__)

T = TypeVar("T")

CpuRunner = Callable[..., Awaitable[Any]]
MetadataExtractor = Callable[[Any], dict[str, Any]]


class Fetcher(Protocol):
    async def fetch(self, url: str) -> bytes: ...

    def fetch_sync(self, url: str) -> bytes: ...


async def _inline(fn: Callable[..., T], *args: Any) -> T:
    return fn(*args)


class _Rendered:
    def __init__(
        self,
        source: SourceImage,
        has_transparency: bool,
        variants: list[ImageVariant],
        blur: str,
        metadata: dict[str, Any] | None,
    ) -> None:
        self.source = source
        self.has_transparency = has_transparency
        self.variants = variants
        self.blur = blur
        self.metadata = metadata


class ImageTaskRunner:
    """Runs the cache protocol for one source image.

    Steps run strictly in sequence for a resource; the scheduler guarantees
    only one runner is active per resource hash, which is what makes the
    stale delete followed by a fresh upsert safe. Errors propagate as
    ``ResourceError`` subclasses; cache failures degrade and are reported
    as warnings on the result.
    """

    def __init__(
        self,
        cache_manager: CacheManager,
        output_dir: Path | str,
        fetcher: Fetcher | None = None,
        cpu: CpuRunner | None = None,
        quality: int = 80,
        blur_width: int = 20,
        extract_metadata: bool = False,
        metadata_extractor: MetadataExtractor = imaging.extract_metadata,
    ) -> None:
        self._cache = cache_manager
        self._output_dir = Path(output_dir)
        self._fetcher = fetcher
        self._cpu = cpu or _inline
        self._quality = quality
        self._blur_width = blur_width
        self._extract_metadata = extract_metadata
        self._metadata_extractor = metadata_extractor

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    async def run(
        self,
        identifier: ResourceIdentifier,
        breakpoints: BreakpointSet,
    ) -> ProcessingResult:
        resource_hash = hash_resource(identifier)
        data = await self._read_source(identifier)
        content_hash = hash_content(data)

        entry = self._cache.lookup(resource_hash, content_hash)
        if entry is not None:
            hit = self._from_entry(entry, breakpoints)
            if hit is not None:
                logger.debug("Cache hit for %s", identifier.source)
                return hit
        else:
            self._cache.evict_stale(resource_hash, content_hash)

        rendered: _Rendered = await self._cpu(
            self._render, data, identifier.source, resource_hash, breakpoints
        )

        warning = self._cache.store(
            CacheEntry(
                resource_hash=resource_hash,
                content_hash=content_hash,
                source_type=identifier.source_type,
                source=identifier.source,
                has_transparency=rendered.has_transparency,
                original_width=rendered.source.width,
                original_height=rendered.source.height,
                source_format=rendered.source.format,
                is_animated=rendered.source.is_animated,
                tier_widths=_tier_widths(breakpoints),
            )
        )
        return ProcessingResult(
            source=identifier.source,
            hash=resource_hash,
            status=ResultStatus.REGENERATED,
            variants=rendered.variants,
            blur_placeholder=rendered.blur,
            metadata=rendered.metadata,
            warnings=[warning] if warning else [],
            original_width=rendered.source.width,
            original_height=rendered.source.height,
            has_transparency=rendered.has_transparency,
        )

    async def _read_source(self, identifier: ResourceIdentifier) -> bytes:
        if identifier.is_remote:
            if self._fetcher is None:
                raise FetchFailedError(
                    f"No fetcher configured for {identifier.source}", source=identifier.source
                )
            return await self._fetcher.fetch(identifier.source)
        return await self._cpu(_read_local, identifier.source)

    def _render(
        self,
        data: bytes,
        source: str,
        resource_hash: str,
        breakpoints: BreakpointSet,
    ) -> _Rendered:
        img = imaging.decode_image(data, source)
        described = imaging.describe_image(img, resource_hash)
        transparent = imaging.detect_transparency(img)
        planned = vg.generate(described, breakpoints, transparent, self._output_dir)
        imaging.render_variants(
            img,
            planned,
            quality=self._quality,
            animated=described.is_animated,
        )
        blur = imaging.render_blur_placeholder(
            img, self._output_dir / vg.blur_filename(resource_hash), width=self._blur_width
        )
        metadata = self._read_metadata(img, source) if self._extract_metadata else None
        return _Rendered(described, transparent, planned, blur, metadata)

    def _read_metadata(self, img: Any, source: str) -> dict[str, Any] | None:
        try:
            return self._metadata_extractor(img)
        except Exception as e:
            logger.warning("Metadata extraction failed for %s: %s", source, e)
            return None

    def _from_entry(
        self,
        entry: CacheEntry,
        breakpoints: BreakpointSet,
    ) -> ProcessingResult | None:
        """Rebuild a hit result from the record.

        Returns None when the record was rendered for other tier widths or
        any variant file is gone; file names carry the tier tag only.
        """
        if entry.tier_widths != _tier_widths(breakpoints):
            logger.info("Tier widths changed for %s, regenerating", entry.source)
            return None
        fmt = entry.source_format or (
            ImageFormat.PNG if entry.has_transparency else ImageFormat.JPEG
        )
        source = SourceImage(
            resource_hash=entry.resource_hash,
            width=entry.original_width,
            height=entry.original_height,
            format=fmt,
            is_animated=entry.is_animated,
        )
        planned = vg.generate(source, breakpoints, entry.has_transparency, self._output_dir)
        blur_path = self._output_dir / vg.blur_filename(entry.resource_hash)
        if not blur_path.is_file() or not all(Path(v.path).is_file() for v in planned):
            logger.info("Variant files missing for %s, regenerating", entry.source)
            return None
        return ProcessingResult(
            source=entry.source,
            hash=entry.resource_hash,
            status=ResultStatus.HIT,
            variants=planned,
            blur_placeholder=imaging.read_data_uri(blur_path),
            original_width=entry.original_width,
            original_height=entry.original_height,
            has_transparency=entry.has_transparency,
        )


def _read_local(source: str) -> bytes:
    try:
        return Path(source).read_bytes()
    except OSError as e:
        raise OpenFailedError(f"Cannot read {source}: {e}", source=source) from e


def _tier_widths(breakpoints: BreakpointSet) -> list[int]:
    return [tier.width for tier in vg.derive_tiers(breakpoints)]
