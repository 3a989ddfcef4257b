"""Tests for image decoding and rendering helpers."""

import base64
import io

import pytest
from PIL import Image

from assetgraph.errors.exceptions import OpenFailedError, UnsupportedFormatError
from assetgraph.types import ImageFormat, ImageVariant
from assetgraph.utils.image import (
    decode_image,
    describe_image,
    detect_transparency,
    encode_image,
    extract_metadata,
    render_blur_placeholder,
    render_variants,
    write_atomic,
)


def _png(mode="RGB", color=(10, 20, 30), size=(40, 20)):
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format="PNG")
    return buf.getvalue()


def _animated_gif(frames=3, size=(40, 20)):
    images = [Image.new("RGB", size, (i * 80, 0, 0)) for i in range(frames)]
    buf = io.BytesIO()
    images[0].save(buf, format="GIF", save_all=True, append_images=images[1:], duration=50, loop=0)
    return buf.getvalue()


class TestDecodeImage:
    def test_decode_png(self, sample_image_bytes):
        img = decode_image(sample_image_bytes, "x.png")
        assert img.size == (1, 1)

    def test_garbage_raises_open_failed(self):
        with pytest.raises(OpenFailedError):
            decode_image(b"definitely not an image", "x.png")

    def test_unsupported_format(self):
        buf = io.BytesIO()
        Image.new("RGB", (4, 4)).save(buf, format="PPM")
        with pytest.raises(UnsupportedFormatError):
            decode_image(buf.getvalue(), "image.ppm")


class TestDescribeImage:
    def test_png(self):
        described = describe_image(decode_image(_png()), "h")
        assert described.format == ImageFormat.PNG
        assert (described.width, described.height) == (40, 20)
        assert described.is_animated is False

    def test_animated_gif(self):
        described = describe_image(decode_image(_animated_gif()), "h")
        assert described.format == ImageFormat.GIF
        assert described.is_animated is True

    def test_bmp_maps_to_jpeg(self):
        buf = io.BytesIO()
        Image.new("RGB", (4, 4)).save(buf, format="BMP")
        assert describe_image(decode_image(buf.getvalue()), "h").format == ImageFormat.JPEG


class TestDetectTransparency:
    def test_opaque_rgb(self):
        assert detect_transparency(decode_image(_png())) is False

    def test_opaque_rgba(self):
        img = decode_image(_png("RGBA", (10, 20, 30, 255)))
        assert detect_transparency(img) is False

    def test_translucent_rgba(self):
        img = decode_image(_png("RGBA", (10, 20, 30, 0)))
        assert detect_transparency(img) is True

    def test_single_transparent_pixel(self):
        img = Image.new("RGBA", (10, 10), (255, 255, 255, 255))
        img.putpixel((3, 3), (0, 0, 0, 128))
        assert detect_transparency(img) is True

    def test_palette_with_transparency(self):
        img = Image.new("P", (4, 4), 0)
        img.putpalette([0, 0, 0] * 256)
        buf = io.BytesIO()
        img.save(buf, format="PNG", transparency=0)
        decoded = decode_image(buf.getvalue())
        assert decoded.mode == "P"
        assert detect_transparency(decoded) is True


class TestRenderVariants:
    def test_writes_each_variant(self, tmp_path):
        img = decode_image(_png(size=(80, 40)))
        variants = [
            ImageVariant(size_tag="xs", format=fmt, path=str(tmp_path / f"h-xs.{fmt.extension}"),
                         width=40, height=20)
            for fmt in (ImageFormat.WEBP, ImageFormat.JPEG, ImageFormat.PNG)
        ]
        render_variants(img, variants)
        for variant in variants:
            with Image.open(variant.path) as out:
                assert out.size == (40, 20)
                assert out.format == variant.format.pil_format

    def test_avif_encoding(self, tmp_path):
        img = decode_image(_png(size=(32, 16)))
        path = tmp_path / "h-xs.avif"
        render_variants(img, [ImageVariant(size_tag="xs", format=ImageFormat.AVIF,
                                           path=str(path), width=16, height=8)])
        with Image.open(path) as out:
            assert out.format == "AVIF"

    def test_animated_keeps_frames(self, tmp_path):
        img = decode_image(_animated_gif(frames=3))
        path = tmp_path / "h-xs.gif"
        render_variants(
            img,
            [ImageVariant(size_tag="xs", format=ImageFormat.GIF, path=str(path), width=20, height=10)],
            animated=True,
        )
        with Image.open(path) as out:
            assert out.size == (20, 10)
            assert out.n_frames == 3

    def test_no_temp_files_left(self, tmp_path):
        img = decode_image(_png())
        variant = ImageVariant(size_tag="xs", format=ImageFormat.PNG,
                               path=str(tmp_path / "h-xs.png"), width=40, height=20)
        render_variants(img, [variant])
        assert [p.name for p in tmp_path.iterdir()] == ["h-xs.png"]


class TestEncodeImage:
    def test_jpeg_flattens_alpha(self):
        img = decode_image(_png("RGBA", (0, 0, 0, 0)))
        data = encode_image(img, ImageFormat.JPEG)
        with Image.open(io.BytesIO(data)) as out:
            assert out.mode == "RGB"


class TestBlurPlaceholder:
    def test_data_uri_and_file(self, tmp_path):
        img = decode_image(_png(size=(200, 100)))
        path = tmp_path / "h-blur.jpg"
        uri = render_blur_placeholder(img, path)

        assert uri.startswith("data:image/jpeg;base64,")
        assert path.is_file()
        assert base64.b64decode(uri.split(",", 1)[1]) == path.read_bytes()
        with Image.open(path) as out:
            assert out.size == (20, 10)

    def test_smaller_than_width(self, tmp_path):
        img = decode_image(_png(size=(8, 8)))
        path = tmp_path / "h-blur.jpg"
        render_blur_placeholder(img, path)
        with Image.open(path) as out:
            assert out.size == (8, 8)


class TestExtractMetadata:
    def test_exif_tags_by_name(self):
        img = Image.new("RGB", (4, 4))
        exif = Image.Exif()
        exif[0x010F] = "Acme Cameras"  # Make
        buf = io.BytesIO()
        img.save(buf, format="JPEG", exif=exif.tobytes())
        metadata = extract_metadata(decode_image(buf.getvalue()))
        assert metadata["Make"] == "Acme Cameras"

    def test_no_exif(self):
        assert extract_metadata(decode_image(_png())) == {}


class TestWriteAtomic:
    def test_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "nested" / "out.bin"
        write_atomic(path, b"data")
        assert path.read_bytes() == b"data"

    def test_replaces_existing(self, tmp_path):
        path = tmp_path / "out.bin"
        path.write_bytes(b"old")
        write_atomic(path, b"new")
        assert path.read_bytes() == b"new"
