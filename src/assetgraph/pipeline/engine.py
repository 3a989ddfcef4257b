"""Pipeline orchestration: plan the graph, then dispatch leaf tasks into a manifest."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from assetgraph.cache.keys import hash_resource
from assetgraph.cache.manager import CacheManager
from assetgraph.concurrency.pool import Scheduler, TaskResult
from assetgraph.errors.exceptions import AssetGraphError, GraphError
from assetgraph.pipeline.graph import GraphBuilder
from assetgraph.pipeline.image_task import ImageTaskRunner
from assetgraph.types import (
    BreakpointSet,
    ExecutionPlan,
    GraphFailure,
    Manifest,
    ProcessingResult,
    ResourceIdentifier,
    ResultStatus,
)

logger = logging.getLogger(__name__)

InputPair = tuple[ResourceIdentifier | str, BreakpointSet]


class PipelineEngine:
    """Connects the graph builder, scheduler, and per-resource runner.

    Flat inputs go straight to the scheduler. Documents are resolved one
    root at a time so a graph error aborts only that root, before any of
    its files are written.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        cache_manager: CacheManager,
        runner: ImageTaskRunner,
        graph_builder: GraphBuilder,
    ) -> None:
        self._scheduler = scheduler
        self._cache_manager = cache_manager
        self._runner = runner
        self._graph_builder = graph_builder

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def cache_manager(self) -> CacheManager:
        return self._cache_manager

    @property
    def graph_builder(self) -> GraphBuilder:
        return self._graph_builder

    async def process(
        self,
        inputs: Sequence[InputPair],
        max_concurrency: int | None = None,
    ) -> Manifest:
        """Process a flat batch; one result per input, in input order.

        Work is deduplicated per resource, not per breakpoint set: a
        resource requested again with other breakpoints while its first
        request is running receives that first result. Within one batch
        such results carry a warning.
        """
        pairs = [(_as_identifier(ref).resolve_against(None), bp) for ref, bp in inputs]
        results = await self._dispatch(pairs, max_concurrency)
        manifest = Manifest(results=results)
        _log_summary(manifest)
        return manifest

    async def process_documents(
        self,
        roots: Iterable[ResourceIdentifier | str],
        breakpoints: BreakpointSet,
        max_concurrency: int | None = None,
    ) -> Manifest:
        """Resolve each root's reference graph and process every image in it."""
        failures: list[GraphFailure] = []
        pairs: list[tuple[ResourceIdentifier, BreakpointSet]] = []
        seen: set[str] = set()

        for root in roots:
            try:
                plan = self.plan([root], breakpoints)
            except GraphError as e:
                logger.error("Graph error for %s: %s", root, e.message)
                failures.append(
                    GraphFailure(root=str(root), error=e.message, error_type=e.error_type)
                )
                continue
            for task in plan.image_tasks():
                if task.resource_hash not in seen:
                    seen.add(task.resource_hash)
                    pairs.append((task.identifier, breakpoints))

        results = await self._dispatch(pairs, max_concurrency)
        manifest = Manifest(results=results, graph_errors=failures)
        _log_summary(manifest)
        return manifest

    def plan(
        self,
        roots: Iterable[ResourceIdentifier | str],
        breakpoints: BreakpointSet,
    ) -> ExecutionPlan:
        return self._graph_builder.resolve(roots, breakpoints)

    async def _dispatch(
        self,
        pairs: list[tuple[ResourceIdentifier, BreakpointSet]],
        max_concurrency: int | None,
    ) -> list[ProcessingResult]:
        tasks = [
            (hash_resource(identifier), self._runner.run, (identifier, bp))
            for identifier, bp in pairs
        ]
        outcomes = await self._scheduler.execute(tasks, max_concurrency=max_concurrency)
        results = [
            _to_result(identifier, outcome)
            for (identifier, _), outcome in zip(pairs, outcomes, strict=True)
        ]

        # Attached callers receive the very object the first caller got
        first: dict[str, tuple[BreakpointSet, ProcessingResult]] = {}
        for i, ((key, _, _), (identifier, bp)) in enumerate(zip(tasks, pairs, strict=True)):
            result = results[i]
            owner_bp, owner = first.setdefault(key, (bp, result))
            if result is owner and owner_bp != bp and result.ok:
                logger.warning(
                    "%s requested with differing breakpoints; sharing the first result",
                    identifier.source,
                )
                results[i] = result.model_copy(
                    update={
                        "warnings": [
                            *result.warnings,
                            "Variants were rendered for the breakpoints of an earlier request",
                        ]
                    }
                )
        return results


def _to_result(identifier: ResourceIdentifier, outcome: TaskResult) -> ProcessingResult:
    if outcome.error is None:
        return outcome.value
    error = outcome.error
    if isinstance(error, AssetGraphError):
        message, error_type = error.message, error.error_type
    else:
        logger.exception("Unexpected error processing %s", identifier.source, exc_info=error)
        message, error_type = str(error), "internal"
    return ProcessingResult(
        source=identifier.source,
        hash=outcome.key,
        status=ResultStatus.FAILED,
        error=message,
        error_type=error_type,
    )


def _log_summary(manifest: Manifest) -> None:
    logger.info(
        "Processed %d resources: %d hits, %d regenerated, %d failed, %d graph errors",
        len(manifest.results),
        manifest.hits,
        manifest.regenerated,
        manifest.failed,
        len(manifest.graph_errors),
    )


def _as_identifier(value: ResourceIdentifier | str) -> ResourceIdentifier:
    return value if isinstance(value, ResourceIdentifier) else ResourceIdentifier.parse(value)
