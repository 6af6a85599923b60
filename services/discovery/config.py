"""
Application configuration via pydantic-settings.
All config read from environment variables with sensible defaults for local dev.
"""

from pydantic import Field
from pydantic_settings import BaseSettings

_MINUTE_MS = 60 * 1000
_HOUR_MS = 60 * _MINUTE_MS


class Settings(BaseSettings):
    # App
    app_name: str = "nearby-discovery"
    app_version: str = "0.1.0"
    environment: str = Field(default="development", pattern=r"^(development|staging|production)$")

    # Movement / tracking
    movement_threshold_m: float = Field(default=500.0, gt=0)
    tracking_min_distance_m: float = Field(default=500.0, ge=0)
    tracking_min_interval_ms: int = Field(default=2 * _MINUTE_MS, ge=0)

    # Cache
    cache_backend: str = Field(default="memory", pattern=r"^(memory|redis|file)$")
    redis_url: str = Field(default="redis://localhost:6379/0")
    cache_dir: str = "data/cache"
    cache_key_prefix: str = "discovery:"
    attractions_ttl_ms: int = Field(default=30 * _MINUTE_MS, gt=0)
    scores_ttl_ms: int = Field(default=_HOUR_MS, gt=0)
    descriptions_ttl_ms: int = Field(default=24 * _HOUR_MS, gt=0)
    bucket_precision: int = Field(default=3, ge=2, le=5)

    # Attraction discovery
    max_attractions: int = Field(default=50, gt=0)
    search_radius_m: int = Field(default=5000, gt=0)
    overpass_url: str = "https://overpass-api.de/api/interpreter"

    # Reverse geocoding (Nominatim)
    nominatim_url: str = "https://nominatim.openstreetmap.org"
    geocode_language: str = "de"
    user_agent: str = "nearby-discovery/0.1 (contact@example.com)"

    # Wikipedia ({language} is filled from geocode_language unless overridden)
    wikipedia_api_url: str = "https://{language}.wikipedia.org/w/api.php"
    wikipedia_ttl_ms: int = Field(default=24 * _HOUR_MS, gt=0)

    # HTTP
    http_timeout_s: float = 15.0

    # Anthropic
    anthropic_api_key: str = ""
    classifier_model: str = "claude-haiku-4-5-20251001"
    classifier_timeout_s: float = 10.0
    describer_model: str = "claude-haiku-4-5-20251001"
    describer_timeout_s: float = 15.0

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}


settings = Settings()
