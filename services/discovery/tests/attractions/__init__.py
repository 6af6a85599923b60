"""
Attraction tests.

Covers:
- Overpass query building, tag mapping, element parsing, HTTP failures
- Aggregator cache hits, expiry, distances, in-flight dedup
"""
