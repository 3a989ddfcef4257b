"""YAML config loading and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from assetgraph.types import BreakpointSet


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Load any YAML file safely."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Expected YAML mapping, got {type(raw).__name__} in {path}")

    return raw


def load_breakpoints_yaml(path: str | Path) -> BreakpointSet:
    """Load a breakpoints file and return a validated BreakpointSet.

    Accepts either a bare mapping (``xs: 640``...) or one nested under a
    top-level ``breakpoints`` key. Tiers left out keep their defaults.
    """
    raw = load_yaml(path)
    data = raw.get("breakpoints", raw)
    if not isinstance(data, dict):
        raise ValueError(f"Invalid breakpoints YAML: 'breakpoints' is not a mapping in {path}")
    try:
        return BreakpointSet(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid breakpoints in {path}: {e}") from e
