"""Responsive image variants for documents and their recursive references."""

from assetgraph.core import AssetGraph, process, process_document
from assetgraph.types import BreakpointSet, Manifest, ProcessingResult

__all__ = [
    "AssetGraph",
    "BreakpointSet",
    "Manifest",
    "ProcessingResult",
    "process",
    "process_document",
]
