from services.discovery.geo.distance import (
    MOVEMENT_THRESHOLD_M,
    bucket_key,
    distance_meters,
    haversine_distance,
    is_significant_movement,
)

__all__ = [
    "MOVEMENT_THRESHOLD_M",
    "bucket_key",
    "distance_meters",
    "haversine_distance",
    "is_significant_movement",
]
