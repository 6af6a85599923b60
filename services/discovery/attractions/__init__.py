from services.discovery.attractions.aggregator import AttractionAggregator
from services.discovery.attractions.source import AttractionSource, OverpassAttractionSource

__all__ = ["AttractionAggregator", "AttractionSource", "OverpassAttractionSource"]
