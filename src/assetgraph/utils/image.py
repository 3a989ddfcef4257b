"""Image decoding, transparency detection, and variant rendering."""

from __future__ import annotations

import base64
import io
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import numpy as np
from PIL import ExifTags, Image, ImageFilter, ImageSequence, UnidentifiedImageError

from assetgraph.errors.exceptions import (
    EncodeFailedError,
    OpenFailedError,
    UnsupportedFormatError,
)
from assetgraph.types import ImageFormat, ImageVariant, SourceImage

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".avif", ".bmp", ".tif", ".tiff"}

# Decoded source formats we can convert; anything else is rejected
_DECODABLE = {"PNG", "JPEG", "GIF", "WEBP", "AVIF", "BMP", "TIFF", "MPO"}

_MAX_IMAGE_PIXELS = 100_000_000
_ENCODE_OPTIONS: dict[ImageFormat, dict[str, Any]] = {
    ImageFormat.AVIF: {},
    ImageFormat.WEBP: {"method": 4},
    ImageFormat.JPEG: {"optimize": True, "progressive": True},
    ImageFormat.PNG: {"optimize": True},
}

_BLUR_RADIUS = 2
_BLUR_QUALITY = 50


def decode_image(data: bytes, source: str = "") -> Image.Image:
    """Decode raw bytes, rejecting formats we cannot process."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise OpenFailedError(f"Cannot decode image {source}: {e}", source=source) from e

    if img.format not in _DECODABLE:
        raise UnsupportedFormatError(
            f"Unsupported image format {img.format!r} for {source}", source=source
        )
    if img.width * img.height > _MAX_IMAGE_PIXELS:
        raise UnsupportedFormatError(
            f"Image too large ({img.width}x{img.height}) for {source}", source=source
        )
    return img


def describe_image(img: Image.Image, resource_hash: str) -> SourceImage:
    fmt = ImageFormat.from_pil(img.format)
    if fmt is None:
        # BMP, TIFF and friends are converted like any opaque/alpha raster
        fmt = ImageFormat.PNG if has_alpha_band(img) else ImageFormat.JPEG
    return SourceImage(
        resource_hash=resource_hash,
        width=img.width,
        height=img.height,
        format=fmt,
        is_animated=bool(getattr(img, "is_animated", False)),
    )


def has_alpha_band(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA", "RGBa", "La") or (
        img.mode == "P" and "transparency" in img.info
    )


def detect_transparency(img: Image.Image) -> bool:
    """True if any pixel is not fully opaque."""
    if not has_alpha_band(img):
        return False
    rgba = img if img.mode == "RGBA" else img.convert("RGBA")
    alpha = np.asarray(rgba.getchannel("A"))
    return bool(alpha.size and alpha.min() < 255)


def resize_to_width(img: Image.Image, width: int, height: int) -> Image.Image:
    if (width, height) == img.size:
        return img.copy()
    return img.resize((width, height), Image.Resampling.LANCZOS)


def encode_image(img: Image.Image, fmt: ImageFormat, quality: int = 80) -> bytes:
    """Encode a still image to ``fmt``."""
    buf = io.BytesIO()
    frame = _prepare_mode(img, fmt)
    options = dict(_ENCODE_OPTIONS.get(fmt, {}))
    if fmt in (ImageFormat.AVIF, ImageFormat.WEBP, ImageFormat.JPEG):
        options["quality"] = quality
    try:
        frame.save(buf, format=fmt.pil_format, **options)
    except (OSError, KeyError, ValueError) as e:
        raise EncodeFailedError(f"Failed to encode {fmt.value}: {e}") from e
    return buf.getvalue()


def encode_animated(img: Image.Image, fmt: ImageFormat, width: int, height: int) -> bytes:
    """Resize every frame, keeping the source format and timing."""
    frames = [
        resize_to_width(frame.convert("RGBA"), width, height)
        for frame in ImageSequence.Iterator(img)
    ]
    buf = io.BytesIO()
    options: dict[str, Any] = {
        "save_all": True,
        "append_images": frames[1:],
        "loop": img.info.get("loop", 0),
        "duration": img.info.get("duration", 100),
    }
    if fmt == ImageFormat.GIF:
        options["disposal"] = 2
    try:
        frames[0].save(buf, format=fmt.pil_format, **options)
    except (OSError, KeyError, ValueError) as e:
        raise EncodeFailedError(f"Failed to encode animated {fmt.value}: {e}") from e
    return buf.getvalue()


def render_variants(
    img: Image.Image,
    variants: list[ImageVariant],
    quality: int = 80,
    animated: bool = False,
) -> None:
    """Write every variant file, resizing once per distinct size."""
    resized: dict[tuple[int, int], Image.Image] = {}
    for variant in variants:
        size = (variant.width, variant.height)
        if animated:
            data = encode_animated(img, variant.format, *size)
        else:
            if size not in resized:
                resized[size] = resize_to_width(img, *size)
            data = encode_image(resized[size], variant.format, quality)
        write_atomic(Path(variant.path), data)
    logger.debug("Rendered %d variants", len(variants))


def render_blur_placeholder(img: Image.Image, path: Path, width: int = 20) -> str:
    """Write a tiny blurred JPEG and return it as a data URI."""
    target = min(width, img.width)
    height = max(1, round(img.height * target / img.width))
    tiny = resize_to_width(img.convert("RGBA"), target, height)
    tiny = tiny.filter(ImageFilter.GaussianBlur(_BLUR_RADIUS))
    data = encode_image(tiny, ImageFormat.JPEG, quality=_BLUR_QUALITY)
    write_atomic(path, data)
    return to_data_uri(data, ImageFormat.JPEG)


def to_data_uri(data: bytes, fmt: ImageFormat) -> str:
    return f"data:{fmt.mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def read_data_uri(path: Path, fmt: ImageFormat = ImageFormat.JPEG) -> str:
    return to_data_uri(path.read_bytes(), fmt)


def extract_metadata(img: Image.Image) -> dict[str, Any]:
    """Loose EXIF attribute bag, keyed by tag name."""
    exif = img.getexif()
    metadata: dict[str, Any] = {}
    for tag_id, value in exif.items():
        name = ExifTags.TAGS.get(tag_id, str(tag_id))
        if isinstance(value, bytes):
            continue
        metadata[name] = value if isinstance(value, (int, float, str)) else str(value)
    return metadata


def write_atomic(path: Path, data: bytes) -> None:
    """Write via a temp file in the same directory, then replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise EncodeFailedError(f"Failed to write {path}: {e}") from e


def _prepare_mode(img: Image.Image, fmt: ImageFormat) -> Image.Image:
    if fmt == ImageFormat.JPEG:
        if has_alpha_band(img):
            # Flatten onto white; JPEG has no alpha channel
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        return img if img.mode == "RGB" else img.convert("RGB")
    if img.mode in ("RGB", "RGBA"):
        return img
    return img.convert("RGBA" if has_alpha_band(img) else "RGB")
