"""Top-level entry points: process(), process_document(), AssetGraph."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from assetgraph.cache.base import CacheStore
from assetgraph.cache.disk import SqliteCacheStore
from assetgraph.cache.manager import CacheManager
from assetgraph.cache.memory import MemoryCacheStore
from assetgraph.concurrency.pool import Scheduler
from assetgraph.config.schema import PipelineSettings
from assetgraph.errors.exceptions import CacheError
from assetgraph.pipeline.engine import PipelineEngine
from assetgraph.pipeline.graph import DocumentLoader, GraphBuilder, ReferenceParser
from assetgraph.pipeline.image_task import Fetcher, ImageTaskRunner
from assetgraph.pipeline.references import extract_references
from assetgraph.remote.client import AsyncFetcher
from assetgraph.types import BreakpointSet, ExecutionPlan, Manifest, ResourceIdentifier

logger = logging.getLogger(__name__)

SourceRef = ResourceIdentifier | str


class AssetGraph:
    """Main pipeline object with full lifecycle control.

    Owns the settings, cache store, scheduler and fetcher. The scheduler's
    in-flight table is shared by every call on one instance, so concurrent
    ``process_async`` calls never optimize the same resource twice.
    """

    def __init__(
        self,
        settings: PipelineSettings | None = None,
        store: CacheStore | None = None,
        fetcher: Fetcher | None = None,
        parser: ReferenceParser = extract_references,
        **overrides: Any,
    ) -> None:
        if settings is None:
            settings = PipelineSettings.load(**overrides)
        elif overrides:
            updates = {k: v for k, v in overrides.items() if v is not None}
            settings = PipelineSettings(**{**settings.model_dump(), **updates})
        self._settings = settings

        if store is None:
            store = _open_store(settings)
        self._cache_manager = CacheManager(store, enabled=not settings.cache_disabled)

        self._owns_fetcher = fetcher is None
        self._fetcher: Fetcher = fetcher or AsyncFetcher(
            timeout=settings.fetch_timeout, retries=settings.fetch_retries
        )
        self._scheduler = Scheduler(
            max_concurrency=settings.max_concurrency,
            task_timeout=settings.task_timeout,
        )
        runner = ImageTaskRunner(
            self._cache_manager,
            output_dir=settings.output_dir,
            fetcher=self._fetcher,
            cpu=self._scheduler.run_cpu,
            quality=settings.quality,
            blur_width=settings.blur_width,
            extract_metadata=settings.extract_metadata,
        )
        graph_builder = GraphBuilder(
            loader=DocumentLoader(self._fetcher),
            parser=parser,
            max_depth=settings.max_depth,
        )
        self._engine = PipelineEngine(
            self._scheduler, self._cache_manager, runner, graph_builder
        )

    @property
    def settings(self) -> PipelineSettings:
        return self._settings

    @property
    def cache_manager(self) -> CacheManager:
        return self._cache_manager

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    async def process_async(
        self,
        inputs: Sequence[SourceRef | tuple[SourceRef, BreakpointSet]],
        breakpoints: BreakpointSet | None = None,
        max_concurrency: int | None = None,
    ) -> Manifest:
        """Optimize a flat list of images.

        Each input is a path/URL, or a ``(source, breakpoints)`` pair to
        override the breakpoints for that one image. Work is shared per
        resource: a source requested with other breakpoints while it is
        already being processed gets the running request's variants.
        """
        default_bp = breakpoints or self._settings.breakpoints
        pairs = [
            item if isinstance(item, tuple) else (item, default_bp)
            for item in inputs
        ]
        return await self._engine.process(pairs, max_concurrency=max_concurrency)

    async def process_documents_async(
        self,
        roots: Iterable[SourceRef],
        breakpoints: BreakpointSet | None = None,
        max_concurrency: int | None = None,
    ) -> Manifest:
        """Resolve each document's reference graph and optimize every image in it."""
        return await self._engine.process_documents(
            roots,
            breakpoints or self._settings.breakpoints,
            max_concurrency=max_concurrency,
        )

    def plan(
        self,
        roots: SourceRef | Iterable[SourceRef],
        breakpoints: BreakpointSet | None = None,
    ) -> ExecutionPlan:
        """Resolve reference graphs without processing anything."""
        if isinstance(roots, (str, ResourceIdentifier)):
            roots = [roots]
        return self._engine.plan(roots, breakpoints or self._settings.breakpoints)

    async def close(self) -> None:
        if self._owns_fetcher and isinstance(self._fetcher, AsyncFetcher):
            await self._fetcher.aclose()
        self._scheduler.close()
        self._cache_manager.close()


def _open_store(settings: PipelineSettings) -> CacheStore:
    if settings.cache_disabled:
        return MemoryCacheStore()
    try:
        return SqliteCacheStore(settings.cache_db_path)
    except CacheError as e:
        # Every lookup becomes a miss; the run still regenerates
        logger.warning("Cache unavailable, using in-memory store: %s", e.message)
        return MemoryCacheStore()


# ── Module-level convenience functions ──


def process(
    inputs: Sequence[SourceRef | tuple[SourceRef, BreakpointSet]],
    **overrides: Any,
) -> Manifest:
    """Optimize a flat list of images (sync wrapper)."""

    async def _run() -> Manifest:
        graph = AssetGraph(**overrides)
        try:
            return await graph.process_async(inputs)
        finally:
            await graph.close()

    return asyncio.run(_run())


def process_document(root: SourceRef, **overrides: Any) -> Manifest:
    """Resolve one document and optimize every image it references (sync wrapper)."""

    async def _run() -> Manifest:
        graph = AssetGraph(**overrides)
        try:
            return await graph.process_documents_async([root])
        finally:
            await graph.close()

    return asyncio.run(_run())
