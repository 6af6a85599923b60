"""
Nearby discovery core — find, cache and rank attractions around the user.

Entry points:
    from services.discovery.context import build_context
    from services.discovery.pipeline import DiscoveryPipeline
"""
