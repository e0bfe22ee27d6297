"""Caching Service Implementation.

Provides the in-memory TTL + LRU implementation of the CacheService
interface, with single-flight deduplication of concurrent misses.
Bounded Context: Cache Management
"""
