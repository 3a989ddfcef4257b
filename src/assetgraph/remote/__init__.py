"""Remote source fetching."""

from assetgraph.remote.client import AsyncFetcher

__all__ = ["AsyncFetcher"]
