"""
Cache tests.

Covers:
- Memory, Redis and file backends
- ExpiringCacheStore TTL boundary, envelope shape, degradation
"""
