"""Package-level default configuration values."""

from __future__ import annotations

from typing import Any

# Default concurrency settings (None means min(cpu_count, 8))
DEFAULT_MAX_CONCURRENCY = None
DEFAULT_TASK_TIMEOUT = None

# Default output settings
DEFAULT_OUTPUT_DIR = "assetgraph-out"
DEFAULT_QUALITY = 80
DEFAULT_BLUR_WIDTH = 20
DEFAULT_EXTRACT_METADATA = False

# Default cache settings
DEFAULT_CACHE_DISABLED = False
DEFAULT_CACHE_DB_PATH = None

# Default remote fetch settings
DEFAULT_FETCH_TIMEOUT = 30.0
DEFAULT_FETCH_RETRIES = 3

# Default graph settings
DEFAULT_MAX_DEPTH = 32

# Default breakpoints (CSS pixels)
DEFAULT_BREAKPOINTS: dict[str, int] = {
    "xs": 640,
    "sm": 640,
    "md": 768,
    "lg": 1024,
    "xl": 1280,
    "xxl": 1536,
}


def get_defaults() -> dict[str, Any]:
    """Return all defaults as a flat dictionary for merging."""
    return {
        "max_concurrency": DEFAULT_MAX_CONCURRENCY,
        "task_timeout": DEFAULT_TASK_TIMEOUT,
        "output_dir": DEFAULT_OUTPUT_DIR,
        "quality": DEFAULT_QUALITY,
        "blur_width": DEFAULT_BLUR_WIDTH,
        "extract_metadata": DEFAULT_EXTRACT_METADATA,
        "cache_disabled": DEFAULT_CACHE_DISABLED,
        "cache_db_path": DEFAULT_CACHE_DB_PATH,
        "fetch_timeout": DEFAULT_FETCH_TIMEOUT,
        "fetch_retries": DEFAULT_FETCH_RETRIES,
        "max_depth": DEFAULT_MAX_DEPTH,
        "breakpoints": dict(DEFAULT_BREAKPOINTS),
    }
