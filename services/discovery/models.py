"""
Core data model for nearby discovery.

Coordinates are captured per location event and superseded, never mutated.
Attraction lists are rebuilt per discovery cycle; the interest fields are
only ever filled in by the relevance merger, on copies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")

# Bounds for Attraction.rating
RATING_MIN = 0.0
RATING_MAX = 5.0


@dataclass(frozen=True)
class Coordinates:
    """A single location fix in decimal degrees."""

    latitude: float
    longitude: float

    def to_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Coordinates":
        return cls(latitude=float(data["latitude"]), longitude=float(data["longitude"]))


@dataclass(frozen=True)
class CityInfo:
    """Reverse-geocoded place metadata attached to a location fix."""

    city: str
    country: str
    full_address: str
    latitude: float
    longitude: float
    state: str | None = None


@dataclass
class CacheEntry(Generic[T]):
    """Envelope stored by ExpiringCacheStore.set_cached().

    timestamp and expires_in are both epoch milliseconds / milliseconds.
    """

    data: T
    timestamp: int
    expires_in: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms - self.timestamp > self.expires_in

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "timestamp": self.timestamp, "expiresIn": self.expires_in}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CacheEntry":
        return cls(
            data=raw["data"],
            timestamp=int(raw["timestamp"]),
            expires_in=int(raw["expiresIn"]),
        )


@dataclass(frozen=True)
class ScoreResult:
    """One (name, score, reason) tuple returned by the relevance classifier."""

    name: str
    score: float
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "score": self.score, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScoreResult":
        return cls(
            name=str(data["name"]),
            score=float(data["score"]),
            reason=str(data.get("reason") or ""),
        )


@dataclass(frozen=True)
class Attraction:
    """A point of interest near a reference location.

    distance is in meters from the coordinates that triggered the discovery
    cycle and is computed once, by the aggregator.
    """

    id: str | int
    name: str
    coordinates: Coordinates
    category: str
    distance: float = 0.0
    rating: float = 0.0
    description: str | None = None
    interest_score: float | None = None
    interest_reason: str | None = None

    @property
    def latitude(self) -> float:
        return self.coordinates.latitude

    @property
    def longitude(self) -> float:
        return self.coordinates.longitude

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "latitude": self.coordinates.latitude,
            "longitude": self.coordinates.longitude,
            "category": self.category,
            "distance": self.distance,
            "rating": self.rating,
        }
        if self.description is not None:
            data["description"] = self.description
        if self.interest_score is not None:
            data["interestScore"] = self.interest_score
        if self.interest_reason is not None:
            data["interestReason"] = self.interest_reason
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Attraction":
        return cls(
            id=data["id"],
            name=data["name"],
            coordinates=Coordinates(
                latitude=float(data["latitude"]),
                longitude=float(data["longitude"]),
            ),
            category=data.get("category", ""),
            distance=float(data.get("distance", 0.0)),
            rating=float(data.get("rating", 0.0)),
            description=data.get("description"),
            interest_score=data.get("interestScore"),
            interest_reason=data.get("interestReason"),
        )
