"""Centralized settings for the routista backend."""
from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "ROUTISTA_"}

    # Redis: empty string means disabled
    redis_url: str = ""

    # Radar routing API: empty key means no credential
    radar_api_key: str = ""
    radar_base_url: str = "https://api.radar.io/v1"
    autocomplete_limit: int = 5
    # Dev/test only: route along straight lines when no credential is set
    allow_mock_routing: bool = False

    # HTTP transport
    http_timeout_s: int = 25
    http_tries: int = 1               # no automatic retry of routing calls
    http_backoff_s: float = 0.8
    user_agent: str = "Routista/0.1.0"

    # Route cache
    route_cache_ttl_s: int = 86400    # 24 h
    cache_scan_count: int = 100       # SCAN batch size when flushing

    # Chunking of routing requests
    chunk_size: int = 10              # legs per request (waypoints = chunk_size + 1)
    max_waypoints_per_request: int = 25
    chunk_delay_s: float = 0.2        # pause between sequential calls

    # Image processing
    max_image_dimension: int = 800
    default_num_points: int = 150
    min_significant_points: int = 50
    small_component_points: int = 500
    tiny_component_points: int = 200
    max_small_components: int = 3
    otsu_min_threshold: int = 20
    otsu_max_threshold: int = 235
    otsu_default_threshold: int = 128
    min_light_coverage_for_invert: float = 0.05
    centroid_tie_px: float = 20.0

    # Douglas-Peucker tolerances in degrees, per transport mode
    tolerance_driving_car: float = 0.0004
    tolerance_cycling_regular: float = 0.0001
    tolerance_foot_walking: float = 0.00005
    tolerance_default: float = 0.0001
    closed_loop_threshold_m: float = 100.0
    closed_loop_divisor: float = 20.0
    open_shape_divisor: float = 10.0

    # Accuracy metric
    accuracy_sample_m: float = 10.0
    max_tolerated_error_fraction: float = 0.5

    # River/highway crossing correction
    crossing_min_segment_m: float = 200.0
    crossing_max_probes: int = 5
    crossing_detour_ratio: float = 2.5
    crossing_bridge_points: int = 3

    # Per-client rate limit on the HTTP API
    rate_limit_requests: int = 10
    rate_limit_window_s: int = 60
    rate_limit_ttl_buffer_s: int = 10


settings = Settings()
