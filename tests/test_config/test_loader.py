"""Tests for YAML loading and settings validation."""

import pytest

from assetgraph.config.loader import load_breakpoints_yaml, load_yaml
from assetgraph.config.schema import PipelineSettings
from assetgraph.types import BreakpointSet


class TestLoadYaml:
    def test_load_mapping(self, tmp_path):
        path = tmp_path / "a.yaml"
        path.write_text("key: value\n")
        assert load_yaml(path) == {"key": "value"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml(tmp_path / "missing.yaml")

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "a.yaml"
        path.write_text("- 1\n")
        with pytest.raises(ValueError, match="Expected YAML mapping"):
            load_yaml(path)


class TestLoadBreakpointsYaml:
    def test_bare_mapping(self, tmp_path):
        path = tmp_path / "bp.yaml"
        path.write_text("xs: 320\nsm: 480\nmd: 768\nlg: 1024\nxl: 1280\nxxl: 1536\n")
        bp = load_breakpoints_yaml(path)
        assert bp.xs == 320
        assert bp.sm == 480

    def test_nested_under_key_with_defaults(self, tmp_path):
        path = tmp_path / "bp.yaml"
        path.write_text("breakpoints:\n  xxl: 2000\n")
        bp = load_breakpoints_yaml(path)
        assert bp.xxl == 2000
        assert bp.xs == BreakpointSet().xs

    def test_decreasing_rejected(self, tmp_path):
        path = tmp_path / "bp.yaml"
        path.write_text("xs: 900\nsm: 640\n")
        with pytest.raises(ValueError, match="Invalid breakpoints"):
            load_breakpoints_yaml(path)


class TestPipelineSettings:
    def test_defaults(self):
        settings = PipelineSettings.load()
        assert settings.max_concurrency is None
        assert settings.breakpoints == BreakpointSet()
        assert settings.cache_disabled is False

    def test_overrides(self, tmp_path):
        settings = PipelineSettings.load(output_dir=str(tmp_path), max_concurrency=2)
        assert settings.output_dir == tmp_path
        assert settings.max_concurrency == 2

    def test_breakpoints_override_object(self):
        bp = BreakpointSet(xs=100, sm=200, md=300, lg=400, xl=500, xxl=600)
        assert PipelineSettings.load(breakpoints=bp).breakpoints == bp

    def test_invalid_quality(self):
        with pytest.raises(ValueError):
            PipelineSettings(quality=0)

    def test_unknown_keys_ignored(self):
        assert PipelineSettings(model="whatever").max_depth == 32
