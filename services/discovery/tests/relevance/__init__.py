"""
Relevance tests.

Covers:
- merge() overlay rules
- Anthropic classifier parsing and error mapping
- Score caching, descriptions, Wikipedia lookups
"""
