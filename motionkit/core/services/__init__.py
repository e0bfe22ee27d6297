"""Application services built on the cache, retry and pagination layers."""
