"""Reference graph resolution with cycle detection and plan flattening."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol

from assetgraph.errors.exceptions import (
    CycleError,
    FetchFailedError,
    OpenFailedError,
    ResourceError,
    TooDeepError,
    UnresolvableReferenceError,
)
from assetgraph.pipeline.references import ReferenceToken, extract_references
from assetgraph.pipeline.variants import expand_image
from assetgraph.types import (
    BreakpointSet,
    CompositeNode,
    ExecutionPlan,
    GraphNode,
    LeafKind,
    LeafNode,
    PlanBatch,
    Requirement,
    ResourceIdentifier,
    VariantJob,
)
from assetgraph.utils.image import SUPPORTED_EXTENSIONS

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32

ReferenceParser = Callable[[str], list[ReferenceToken]]


class SyncFetcher(Protocol):
    def fetch_sync(self, url: str) -> bytes: ...


class DocumentLoader:
    """Reads document text from disk, or over the network via a fetcher."""

    def __init__(self, fetcher: SyncFetcher | None = None, encoding: str = "utf-8") -> None:
        self._fetcher = fetcher
        self._encoding = encoding

    def __call__(self, identifier: ResourceIdentifier) -> str:
        if identifier.is_remote:
            if self._fetcher is None:
                raise FetchFailedError(
                    f"No fetcher configured for {identifier.source}", source=identifier.source
                )
            data = self._fetcher.fetch_sync(identifier.source)
            return data.decode(self._encoding, errors="replace")

        try:
            return Path(identifier.source).read_text(encoding=self._encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise OpenFailedError(
                f"Cannot read document {identifier.source}: {e}", source=identifier.source
            ) from e


def classify(identifier: ResourceIdentifier) -> LeafKind:
    """Classify a reference by extension."""
    suffix = identifier.suffix
    if suffix == ".pdf":
        return LeafKind.PDF
    if suffix in SUPPORTED_EXTENSIONS:
        return LeafKind.OPTIMIZED_IMAGE
    return LeafKind.DOCUMENT


class _Resolution:
    """Mutable state for one ``resolve`` call."""

    def __init__(self, breakpoints: BreakpointSet, limit: int) -> None:
        self.breakpoints = breakpoints
        self.limit = limit
        self.path: list[str] = []
        self.active: set[str] = set()
        self.documents: dict[str, GraphNode] = {}
        self.images: dict[str, LeafNode] = {}
        self.pdfs: dict[str, LeafNode] = {}


class GraphBuilder:
    """Resolves root documents into an acyclic reference graph and flat plan.

    Documents are read through ``loader`` and tokenized by ``parser``. Image
    references are expanded into variant jobs; PDFs are terminal and never
    read. Resolution is synchronous: no job is produced for a root until its
    whole graph is known to be acyclic and within the depth guard.
    """

    def __init__(
        self,
        loader: Callable[[ResourceIdentifier], str] | None = None,
        parser: ReferenceParser = extract_references,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._loader = loader or DocumentLoader()
        self._parser = parser
        self._max_depth = max_depth

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def resolve(
        self,
        roots: Iterable[ResourceIdentifier | str],
        breakpoints: BreakpointSet,
        depth_guard: int | None = None,
    ) -> ExecutionPlan:
        """Build an ``ExecutionPlan`` with one flat batch per root.

        Raises ``GraphError`` subclasses; no partial plan is returned.
        """
        limit = depth_guard if depth_guard is not None else self._max_depth
        state = _Resolution(breakpoints, limit)
        plan = ExecutionPlan()

        for root in roots:
            identifier = _as_identifier(root).resolve_against(None)
            node = self._visit(identifier, state, depth=0, is_root=True)
            if node is None:
                continue
            plan.roots.append(identifier)
            plan.nodes.append(node)
            plan.batches.append(PlanBatch(root=identifier, jobs=_collect_jobs(node)))

        plan.documents = [n.identifier for n in state.documents.values()]
        plan.pdfs = [n.identifier for n in state.pdfs.values()]
        logger.debug(
            "Resolved %d roots: %d documents, %d images, %d jobs",
            len(plan.roots), len(plan.documents), len(state.images), plan.total_jobs,
        )
        return plan

    def _visit(
        self,
        identifier: ResourceIdentifier,
        state: _Resolution,
        depth: int,
        is_root: bool = False,
    ) -> GraphNode | None:
        key = identifier.source
        kind = classify(identifier)

        if kind == LeafKind.OPTIMIZED_IMAGE:
            if key not in state.images:
                state.images[key] = LeafNode(
                    kind=kind,
                    identifier=identifier,
                    jobs=expand_image(identifier, state.breakpoints),
                )
            return state.images[key]

        if kind == LeafKind.PDF:
            return state.pdfs.setdefault(key, LeafNode(kind=kind, identifier=identifier))

        if key in state.active:
            start = state.path.index(key)
            raise CycleError(members=[*state.path[start:], key])
        if key in state.documents:
            return state.documents[key]
        if depth > state.limit:
            raise TooDeepError(depth=depth, limit=state.limit)

        try:
            text = self._loader(identifier)
        except ResourceError as e:
            return _missing(identifier, e, is_root)

        state.path.append(key)
        state.active.add(key)
        try:
            children = self._visit_children(identifier, text, state, depth)
        finally:
            state.path.pop()
            state.active.discard(key)

        node: GraphNode
        if children:
            node = CompositeNode(identifier=identifier, children=children)
        else:
            node = LeafNode(kind=LeafKind.DOCUMENT, identifier=identifier)
        state.documents[key] = node
        return node

    def _visit_children(
        self,
        parent: ResourceIdentifier,
        text: str,
        state: _Resolution,
        depth: int,
    ) -> list[GraphNode]:
        children: list[GraphNode] = []
        for token in self._parser(text):
            if not token.raw.strip().rstrip("!?"):
                raise UnresolvableReferenceError(
                    f"Empty reference in {parent.source} (line {token.line})",
                    reference=token.raw,
                )
            child = ResourceIdentifier.parse(token.raw).resolve_against(parent)
            node = self._visit(child, state, depth + 1)
            if node is not None:
                children.append(node)
        return children


def _missing(
    identifier: ResourceIdentifier,
    error: ResourceError,
    is_root: bool,
) -> GraphNode | None:
    if is_root or identifier.requirement == Requirement.REQUIRED:
        raise UnresolvableReferenceError(
            f"Cannot resolve {identifier.source}: {error.message}",
            reference=identifier.source,
        ) from error
    if identifier.requirement == Requirement.DEFAULT:
        logger.warning("Skipping missing reference %s: %s", identifier.source, error.message)
    return None


def _collect_jobs(node: GraphNode) -> list[VariantJob]:
    """Flatten a subtree into its variant jobs, each image once."""
    jobs: list[VariantJob] = []
    seen: set[str] = set()
    visited: set[int] = set()

    def walk(n: GraphNode) -> None:
        if id(n) in visited:
            return
        visited.add(id(n))
        if isinstance(n, CompositeNode):
            for child in n.children:
                walk(child)
            return
        if n.jobs and n.jobs[0].resource_hash not in seen:
            seen.add(n.jobs[0].resource_hash)
            jobs.extend(n.jobs)

    walk(node)
    return jobs


def _as_identifier(value: ResourceIdentifier | str) -> ResourceIdentifier:
    if isinstance(value, ResourceIdentifier):
        return value
    if not value.strip().rstrip("!?"):
        raise UnresolvableReferenceError("Empty root reference", reference=value)
    return ResourceIdentifier.parse(value)
