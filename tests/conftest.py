import io

import pytest
from PIL import Image

from assetgraph.cache.manager import CacheManager
from assetgraph.cache.memory import MemoryCacheStore
from assetgraph.types import BreakpointSet


@pytest.fixture
def sample_image_bytes():
    """Minimal valid PNG for testing (1x1 white pixel)."""
    import base64
    return base64.b64decode(
        "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR4"
        "nGP4z8BQDwAEgAF/pooBPQAAAABJRU5ErkJggg=="
    )


@pytest.fixture
def small_breakpoints():
    """Tiny breakpoints: tiers micro=20, xs=40, sm=80, md=96, lg=128, xl=160, xxl=192."""
    return BreakpointSet(xs=40, sm=40, md=48, lg=64, xl=80, xxl=96)


def make_image_bytes(
    width: int = 120,
    height: int = 80,
    mode: str = "RGB",
    fmt: str = "PNG",
    color: tuple = (200, 30, 30),
) -> bytes:
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def image_factory(tmp_path):
    """Write a generated image under tmp_path/src and return its path."""
    src = tmp_path / "src"
    src.mkdir(exist_ok=True)

    def _make(name: str = "photo.png", **kwargs):
        fmt = kwargs.pop("fmt", None) or (
            "JPEG" if name.endswith((".jpg", ".jpeg")) else name.rsplit(".", 1)[-1].upper()
        )
        path = src / name
        path.write_bytes(make_image_bytes(fmt=fmt, **kwargs))
        return path

    return _make


@pytest.fixture
def memory_cache():
    return CacheManager(MemoryCacheStore())


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, tmp_path_factory, monkeypatch):
    """Keep user-level config files and ASSETGRAPH_* variables out of tests."""
    from assetgraph.config import hierarchy

    monkeypatch.setattr(hierarchy, "_GLOBAL_CONFIG_PATH", tmp_path / "no-global" / "config.yaml")
    for key in list(hierarchy._ENV_MAP):
        monkeypatch.delenv(key, raising=False)
    workdir = tmp_path_factory.mktemp("cwd")
    monkeypatch.chdir(workdir)


@pytest.fixture
def png_bytes():
    """A 120x80 opaque PNG."""
    return make_image_bytes(width=120, height=80)
