"""HTTP transport for the Motion API (httpx)."""
