"""
Location tests.

Covers:
- Tracker state machine, significance filter, cancellation
- Nominatim reverse geocoding and place search
"""
