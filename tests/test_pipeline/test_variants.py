"""Tests for tier derivation, format selection, and variant planning."""

import pytest

from assetgraph.pipeline.variants import (
    blur_filename,
    derive_tiers,
    effective_width,
    expand_image,
    generate,
    scaled_height,
    select_formats,
    variant_filename,
)
from assetgraph.types import (
    BreakpointSet,
    FormatSlot,
    ImageFormat,
    ResourceIdentifier,
    SourceImage,
)


def _source(width=3000, height=2000, fmt=ImageFormat.JPEG, animated=False):
    return SourceImage(
        resource_hash="abcdef0123456789",
        width=width,
        height=height,
        format=fmt,
        is_animated=animated,
    )


class TestDeriveTiers:
    def test_default_breakpoints(self):
        tiers = {t.name: t.width for t in derive_tiers(BreakpointSet())}
        assert tiers == {
            "micro": 320,
            "xs": 640,
            "sm": 1280,
            "md": 1536,
            "lg": 2048,
            "xl": 2560,
            "xxl": 3072,
        }

    def test_order(self):
        names = [t.name for t in derive_tiers(BreakpointSet())]
        assert names == ["micro", "xs", "sm", "md", "lg", "xl", "xxl"]

    def test_micro_rounds_half_up(self):
        bp = BreakpointSet(xs=41, sm=41, md=48, lg=64, xl=80, xxl=96)
        assert derive_tiers(bp)[0].width == 21


class TestScaledHeight:
    def test_exact(self):
        assert scaled_height(3000, 2000, 1500) == 1000

    def test_rounds_half_up(self):
        # 3 * 5 / 2 = 7.5
        assert scaled_height(2, 3, 5) == 8

    def test_minimum_one(self):
        assert scaled_height(5000, 1, 10) == 1

    def test_invalid_width(self):
        with pytest.raises(ValueError):
            scaled_height(0, 10, 5)


class TestEffectiveWidth:
    def test_never_upsamples(self):
        assert effective_width(3072, 3000) == 3000
        assert effective_width(640, 3000) == 640


class TestSelectFormats:
    def test_opaque(self):
        assert select_formats(False) == [ImageFormat.AVIF, ImageFormat.WEBP, ImageFormat.JPEG]

    def test_transparent_uses_png(self):
        formats = select_formats(True)
        assert formats == [ImageFormat.AVIF, ImageFormat.WEBP, ImageFormat.PNG]
        assert ImageFormat.JPEG not in formats

    def test_gif_passthrough(self):
        assert select_formats(True, ImageFormat.GIF) == [ImageFormat.GIF]

    def test_animated_webp_passthrough(self):
        assert select_formats(False, ImageFormat.WEBP, is_animated=True) == [ImageFormat.WEBP]


class TestGenerate:
    def test_large_opaque_jpeg(self):
        variants = generate(_source(), BreakpointSet(), has_transparency=False, output_dir="out")
        assert len(variants) == 21

        xxl = [v for v in variants if v.size_tag == "xxl"]
        assert {v.width for v in xxl} == {3000}
        assert {v.height for v in xxl} == {2000}

        micro = [v for v in variants if v.size_tag == "micro"]
        assert {(v.width, v.height) for v in micro} == {(320, 213)}
        assert {v.format for v in variants} == {
            ImageFormat.AVIF,
            ImageFormat.WEBP,
            ImageFormat.JPEG,
        }

    def test_never_wider_than_source(self):
        variants = generate(_source(width=700, height=350), BreakpointSet(), False)
        assert all(v.width <= 700 for v in variants)
        assert all(v.height == scaled_height(700, 350, v.width) for v in variants)

    def test_tier_major_order(self):
        variants = generate(_source(), BreakpointSet(), False)
        assert [v.size_tag for v in variants[:3]] == ["micro"] * 3
        assert [v.format for v in variants[:3]] == [
            ImageFormat.AVIF,
            ImageFormat.WEBP,
            ImageFormat.JPEG,
        ]

    def test_paths_named_by_hash_tag_ext(self, tmp_path):
        variants = generate(_source(), BreakpointSet(), False, output_dir=tmp_path)
        assert variants[2].path == str(tmp_path / "abcdef0123456789-micro.jpg")

    def test_transparent_png_set(self):
        variants = generate(_source(fmt=ImageFormat.PNG), BreakpointSet(), True)
        assert ImageFormat.JPEG not in {v.format for v in variants}

    def test_animated_gif_single_format(self):
        variants = generate(_source(fmt=ImageFormat.GIF, animated=True), BreakpointSet(), True)
        assert len(variants) == 7
        assert all(v.path.endswith(".gif") for v in variants)


class TestFilenames:
    def test_variant_filename(self):
        assert variant_filename("abc", "md", ImageFormat.JPEG) == "abc-md.jpg"
        assert variant_filename("abc", "md", ImageFormat.AVIF) == "abc-md.avif"

    def test_blur_filename(self):
        assert blur_filename("abc") == "abc-blur.jpg"


class TestExpandImage:
    def test_one_job_per_tier_and_slot(self):
        ident = ResourceIdentifier.parse("/img/a.png")
        jobs = expand_image(ident, BreakpointSet())
        assert len(jobs) == 21
        assert {j.slot for j in jobs} == set(FormatSlot)
        assert len({j.resource_hash for j in jobs}) == 1
        assert jobs[-1].size_tag == "xxl"
        assert jobs[-1].target_width == 3072
