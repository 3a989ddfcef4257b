"""Variant derivation: tier widths, format sets and output names.

Everything here is pure: it maps image dimensions and breakpoint
configuration to the ordered list of variants to produce, without touching
pixels or the filesystem. ``assetgraph.utils.image`` does the rendering.
"""

from __future__ import annotations

from pathlib import Path

from assetgraph.cache.keys import hash_resource
from assetgraph.types import (
    BreakpointSet,
    FormatSlot,
    ImageFormat,
    ImageVariant,
    ResourceIdentifier,
    SourceImage,
    Tier,
    VariantJob,
)

TIER_NAMES = ("micro", "xs", "sm", "md", "lg", "xl", "xxl")

# Tiers above xs target high-density displays
_DENSITY = 2

MODERN_FORMATS = (ImageFormat.AVIF, ImageFormat.WEBP)
OPAQUE_FALLBACK = ImageFormat.JPEG
ALPHA_FALLBACK = ImageFormat.PNG

# Resized within their own format only
PASSTHROUGH_FORMATS = frozenset({ImageFormat.GIF})

BLUR_TAG = "blur"


def derive_tiers(breakpoints: BreakpointSet) -> list[Tier]:
    """Return the named tier table, smallest first."""
    xs = breakpoints.xs
    return [
        Tier(name="micro", width=_half_up(xs, 2)),
        Tier(name="xs", width=xs),
        Tier(name="sm", width=breakpoints.sm * _DENSITY),
        Tier(name="md", width=breakpoints.md * _DENSITY),
        Tier(name="lg", width=breakpoints.lg * _DENSITY),
        Tier(name="xl", width=breakpoints.xl * _DENSITY),
        Tier(name="xxl", width=breakpoints.xxl * _DENSITY),
    ]


def scaled_height(original_width: int, original_height: int, width: int) -> int:
    """Height preserving aspect ratio, rounded half up, never below 1."""
    if original_width <= 0:
        raise ValueError("original_width must be positive")
    return max(1, _half_up(original_height * width, original_width))


def effective_width(target_width: int, original_width: int) -> int:
    """Clamp a tier target to the source width; never upsample."""
    return min(target_width, original_width)


def is_passthrough(source_format: ImageFormat | None, is_animated: bool) -> bool:
    return is_animated or source_format in PASSTHROUGH_FORMATS


def select_formats(
    has_transparency: bool,
    source_format: ImageFormat | None = None,
    is_animated: bool = False,
) -> list[ImageFormat]:
    """Two modern codecs plus exactly one fallback.

    Animated and special-case sources skip conversion and keep their format.
    """
    if is_passthrough(source_format, is_animated) and source_format is not None:
        return [source_format]
    fallback = ALPHA_FALLBACK if has_transparency else OPAQUE_FALLBACK
    return [*MODERN_FORMATS, fallback]


def variant_filename(resource_hash: str, size_tag: str, fmt: ImageFormat) -> str:
    return f"{resource_hash}-{size_tag}.{fmt.extension}"


def blur_filename(resource_hash: str) -> str:
    return f"{resource_hash}-{BLUR_TAG}.{ImageFormat.JPEG.extension}"


def generate(
    image: SourceImage,
    breakpoints: BreakpointSet,
    has_transparency: bool,
    output_dir: Path | str = ".",
) -> list[ImageVariant]:
    """Map a source image to its ordered variants (tier-major, then format)."""
    formats = select_formats(has_transparency, image.format, image.is_animated)
    out = Path(output_dir)
    variants: list[ImageVariant] = []
    for tier in derive_tiers(breakpoints):
        width = effective_width(tier.width, image.width)
        height = scaled_height(image.width, image.height, width)
        for fmt in formats:
            variants.append(
                ImageVariant(
                    size_tag=tier.name,
                    format=fmt,
                    path=str(out / variant_filename(image.resource_hash, tier.name, fmt)),
                    width=width,
                    height=height,
                )
            )
    return variants


def expand_image(
    identifier: ResourceIdentifier,
    breakpoints: BreakpointSet,
) -> list[VariantJob]:
    """Replace one image reference with its plan-time leaf jobs.

    Formats depend on decoded pixels, so jobs name a format slot that is
    bound to a concrete codec when the task runs.
    """
    resource_hash = hash_resource(identifier)
    return [
        VariantJob(
            resource_hash=resource_hash,
            identifier=identifier,
            size_tag=tier.name,
            target_width=tier.width,
            slot=slot,
        )
        for tier in derive_tiers(breakpoints)
        for slot in FormatSlot
    ]


def _half_up(numerator: int, denominator: int) -> int:
    return (2 * numerator + denominator) // (2 * denominator)
