"""Shared Pydantic models for assetgraph."""

from __future__ import annotations

import time
from enum import StrEnum
from pathlib import Path, PurePosixPath
from typing import Any, Literal
from urllib.parse import urljoin, urlparse

from pydantic import BaseModel, Field, model_validator

# ── Enums ──


class SourceType(StrEnum):
    LOCAL = "local"
    REMOTE = "remote"


class Requirement(StrEnum):
    REQUIRED = "required"
    OPTIONAL = "optional"
    DEFAULT = "default"


class LeafKind(StrEnum):
    DOCUMENT = "document"
    PDF = "pdf"
    OPTIMIZED_IMAGE = "optimized_image"


class FormatSlot(StrEnum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    FALLBACK = "fallback"


class ResultStatus(StrEnum):
    HIT = "hit"
    REGENERATED = "regenerated"
    FAILED = "failed"


class ImageFormat(StrEnum):
    AVIF = "avif"
    WEBP = "webp"
    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"

    @property
    def extension(self) -> str:
        return "jpg" if self is ImageFormat.JPEG else self.value

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @property
    def pil_format(self) -> str:
        """Format name understood by Pillow's ``Image.save``."""
        return self.value.upper()

    @classmethod
    def from_pil(cls, name: str | None) -> ImageFormat | None:
        if not name:
            return None
        try:
            return cls(name.lower())
        except ValueError:
            return None


# ── Identifiers ──

_REMOTE_PREFIXES = ("http://", "https://")


class ResourceIdentifier(BaseModel):
    """Path or URL naming a source, independent of its content."""

    model_config = {"frozen": True}

    source: str
    source_type: SourceType = SourceType.LOCAL
    requirement: Requirement = Requirement.DEFAULT

    @classmethod
    def parse(cls, token: str) -> ResourceIdentifier:
        """Parse a raw reference token; ``!`` marks required, ``?`` optional."""
        raw = token.strip()
        requirement = Requirement.DEFAULT
        if raw.endswith("!"):
            raw, requirement = raw[:-1], Requirement.REQUIRED
        elif raw.endswith("?"):
            raw, requirement = raw[:-1], Requirement.OPTIONAL

        source_type = SourceType.REMOTE if raw.startswith(_REMOTE_PREFIXES) else SourceType.LOCAL
        return cls(source=raw, source_type=source_type, requirement=requirement)

    @property
    def is_remote(self) -> bool:
        return self.source_type == SourceType.REMOTE

    @property
    def suffix(self) -> str:
        """Lower-cased file extension, ignoring any URL query string."""
        path = urlparse(self.source).path if self.is_remote else self.source
        return PurePosixPath(path).suffix.lower()

    def resolve_against(self, base: ResourceIdentifier | None) -> ResourceIdentifier:
        """Resolve this (possibly relative) reference against its referrer."""
        if self.is_remote:
            return self
        if base is not None and base.is_remote:
            url = urljoin(base.source, self.source)
            return self.model_copy(update={"source": url, "source_type": SourceType.REMOTE})

        path = Path(self.source).expanduser()
        if not path.is_absolute() and base is not None:
            path = Path(base.source).parent / path
        return self.model_copy(update={"source": str(path.resolve())})

    def __str__(self) -> str:
        return self.source


# ── Configuration models ──


class BreakpointSet(BaseModel):
    """Named width thresholds (CSS pixels), mobile first."""

    xs: int = 640
    sm: int = 640
    md: int = 768
    lg: int = 1024
    xl: int = 1280
    xxl: int = 1536

    @model_validator(mode="after")
    def _check_order(self) -> BreakpointSet:
        values = [self.xs, self.sm, self.md, self.lg, self.xl, self.xxl]
        if any(v <= 0 for v in values):
            raise ValueError("Breakpoints must be positive")
        if any(a > b for a, b in zip(values, values[1:], strict=False)):
            raise ValueError("Breakpoints must be non-decreasing from xs to xxl")
        return self


class Tier(BaseModel):
    name: str
    width: int


# ── Image models ──


class SourceImage(BaseModel):
    """Dimensions and format of a decoded source image."""

    resource_hash: str
    width: int
    height: int
    format: ImageFormat
    is_animated: bool = False


class ImageVariant(BaseModel):
    size_tag: str
    format: ImageFormat
    path: str
    width: int
    height: int


class VariantJob(BaseModel):
    """One plan-time leaf task: a (tier, format slot) pair of one image."""

    resource_hash: str
    identifier: ResourceIdentifier
    size_tag: str
    target_width: int
    slot: FormatSlot


# ── Graph models ──


class LeafNode(BaseModel):
    node_type: Literal["leaf"] = "leaf"
    kind: LeafKind
    identifier: ResourceIdentifier
    jobs: list[VariantJob] = Field(default_factory=list)


class CompositeNode(BaseModel):
    node_type: Literal["composite"] = "composite"
    identifier: ResourceIdentifier
    children: list[GraphNode] = Field(default_factory=list)


GraphNode = LeafNode | CompositeNode
CompositeNode.model_rebuild()


class PlanBatch(BaseModel):
    root: ResourceIdentifier
    jobs: list[VariantJob] = Field(default_factory=list)


class ImageTask(BaseModel):
    """All variant jobs of one image, dispatched as a single scheduler task."""

    identifier: ResourceIdentifier
    resource_hash: str
    jobs: list[VariantJob] = Field(default_factory=list)


class ExecutionPlan(BaseModel):
    roots: list[ResourceIdentifier] = Field(default_factory=list)
    nodes: list[GraphNode] = Field(default_factory=list)
    batches: list[PlanBatch] = Field(default_factory=list)
    documents: list[ResourceIdentifier] = Field(default_factory=list)
    pdfs: list[ResourceIdentifier] = Field(default_factory=list)

    @property
    def total_jobs(self) -> int:
        return sum(len(b.jobs) for b in self.batches)

    def image_tasks(self) -> list[ImageTask]:
        """Group jobs per resource, preserving first-seen order."""
        tasks: dict[str, ImageTask] = {}
        for batch in self.batches:
            for job in batch.jobs:
                task = tasks.get(job.resource_hash)
                if task is None:
                    task = ImageTask(identifier=job.identifier, resource_hash=job.resource_hash)
                    tasks[job.resource_hash] = task
                task.jobs.append(job)
        return list(tasks.values())


# ── Runtime models ──


class CacheEntry(BaseModel):
    """Persisted record of one processed source image."""

    resource_hash: str
    content_hash: str
    created_at: float = Field(default_factory=time.time)
    source_type: SourceType = SourceType.LOCAL
    source: str = ""
    has_transparency: bool = False
    original_width: int
    original_height: int
    source_format: ImageFormat | None = None
    is_animated: bool = False
    # Tier widths the variant files were rendered at
    tier_widths: list[int] = Field(default_factory=list)


class ProcessingResult(BaseModel):
    source: str
    hash: str
    status: ResultStatus
    variants: list[ImageVariant] = Field(default_factory=list)
    blur_placeholder: str | None = None
    metadata: dict[str, Any] | None = None
    error: str | None = None
    error_type: str | None = None
    warnings: list[str] = Field(default_factory=list)
    original_width: int | None = None
    original_height: int | None = None
    has_transparency: bool | None = None

    @property
    def ok(self) -> bool:
        return self.status != ResultStatus.FAILED


class GraphFailure(BaseModel):
    root: str
    error: str
    error_type: str


class Manifest(BaseModel):
    """Per-input outcome of one ``process`` call."""

    results: list[ProcessingResult] = Field(default_factory=list)
    graph_errors: list[GraphFailure] = Field(default_factory=list)

    @property
    def hits(self) -> int:
        return sum(1 for r in self.results if r.status == ResultStatus.HIT)

    @property
    def regenerated(self) -> int:
        return sum(1 for r in self.results if r.status == ResultStatus.REGENERATED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == ResultStatus.FAILED)

    @property
    def exit_code(self) -> int:
        if self.graph_errors:
            return 1
        if self.results and self.failed == len(self.results):
            return 1
        return 0

    def merge(self, other: Manifest) -> Manifest:
        return Manifest(
            results=[*self.results, *other.results],
            graph_errors=[*self.graph_errors, *other.graph_errors],
        )
