"""Configuration helpers for the graphpulse analytics pipeline."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_PATH = PROJECT_ROOT / ".env"

# Load environment variables early so downstream modules can rely on them.
load_dotenv(ENV_PATH, override=False)

LOUVAIN_MAX_PASSES_ENV = "GRAPHPULSE_LOUVAIN_MAX_PASSES"
LOUVAIN_RESOLUTION_ENV = "GRAPHPULSE_LOUVAIN_RESOLUTION"
LOUVAIN_MIN_GAIN_ENV = "GRAPHPULSE_LOUVAIN_MIN_GAIN"
LABEL_PROPAGATION_SEED_ENV = "GRAPHPULSE_LABEL_PROPAGATION_SEED"
PAGERANK_DAMPING_ENV = "GRAPHPULSE_PAGERANK_DAMPING"
PAGERANK_ITERATIONS_ENV = "GRAPHPULSE_PAGERANK_ITERATIONS"
PAGERANK_TOLERANCE_ENV = "GRAPHPULSE_PAGERANK_TOLERANCE"
ANOMALY_Z_THRESHOLD_ENV = "GRAPHPULSE_ANOMALY_Z_THRESHOLD"
TREND_RECENT_WINDOW_ENV = "GRAPHPULSE_TREND_RECENT_WINDOW_HOURS"
TREND_LOOKBACK_WINDOW_ENV = "GRAPHPULSE_TREND_LOOKBACK_WINDOW_HOURS"
TREND_MINIMUM_WEIGHT_ENV = "GRAPHPULSE_TREND_MINIMUM_WEIGHT"
EDGE_WEIGHTS_ENV = "GRAPHPULSE_EDGE_WEIGHTS"
SNAPSHOT_CACHE_SIZE_ENV = "GRAPHPULSE_SNAPSHOT_CACHE_SIZE"
SNAPSHOT_CACHE_TTL_ENV = "GRAPHPULSE_SNAPSHOT_CACHE_TTL_SECONDS"

DEFAULT_LOUVAIN_MAX_PASSES = 12
DEFAULT_LOUVAIN_RESOLUTION = 1.0
DEFAULT_LOUVAIN_MIN_GAIN = 1e-6
DEFAULT_LABEL_PROPAGATION_SEED = 0
DEFAULT_PAGERANK_DAMPING = 0.85
DEFAULT_PAGERANK_ITERATIONS = 40
DEFAULT_PAGERANK_TOLERANCE = 1e-6
DEFAULT_ANOMALY_Z_THRESHOLD = 2.5
DEFAULT_TREND_RECENT_WINDOW_HOURS = 24.0
DEFAULT_TREND_LOOKBACK_WINDOW_HOURS = 168.0
DEFAULT_TREND_MINIMUM_WEIGHT = 0.01
DEFAULT_SNAPSHOT_CACHE_SIZE = 32
DEFAULT_SNAPSHOT_CACHE_TTL_SECONDS = 3600


@dataclass(frozen=True)
class AnalyticsSettings:
    """Tunable parameters for every stage of the clustering pipeline."""

    louvain_max_passes: int = DEFAULT_LOUVAIN_MAX_PASSES
    louvain_resolution: float = DEFAULT_LOUVAIN_RESOLUTION
    louvain_min_gain: float = DEFAULT_LOUVAIN_MIN_GAIN
    label_propagation_seed: int = DEFAULT_LABEL_PROPAGATION_SEED
    pagerank_damping: float = DEFAULT_PAGERANK_DAMPING
    pagerank_iterations: int = DEFAULT_PAGERANK_ITERATIONS
    pagerank_tolerance: float = DEFAULT_PAGERANK_TOLERANCE
    anomaly_z_threshold: float = DEFAULT_ANOMALY_Z_THRESHOLD
    trend_recent_window_hours: float = DEFAULT_TREND_RECENT_WINDOW_HOURS
    trend_lookback_window_hours: float = DEFAULT_TREND_LOOKBACK_WINDOW_HOURS
    trend_minimum_weight: float = DEFAULT_TREND_MINIMUM_WEIGHT
    edge_weight_overrides: Dict[str, Dict[str, float]] = field(default_factory=dict)
    snapshot_cache_size: int = DEFAULT_SNAPSHOT_CACHE_SIZE
    snapshot_cache_ttl_seconds: int = DEFAULT_SNAPSHOT_CACHE_TTL_SECONDS


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_int(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer; received '{raw}'.") from exc


def _get_float(name: str, default: float) -> float:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number; received '{raw}'.") from exc


def get_edge_weight_overrides() -> Dict[str, Dict[str, float]]:
    """Parse per-kind decay overrides from ``GRAPHPULSE_EDGE_WEIGHTS``.

    The variable holds a JSON object such as
    ``{"mention": {"base_weight": 1.5, "half_life_hours": 12}}``. Kinds that are
    not listed keep their defaults.
    """

    raw = _get_env(EDGE_WEIGHTS_ENV)
    if raw is None:
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"{EDGE_WEIGHTS_ENV} must be a JSON object; received '{raw}'.") from exc
    if not isinstance(payload, dict):
        raise RuntimeError(f"{EDGE_WEIGHTS_ENV} must be a JSON object; received '{raw}'.")

    overrides: Dict[str, Dict[str, float]] = {}
    for kind, settings in payload.items():
        if not isinstance(settings, dict):
            raise RuntimeError(f"{EDGE_WEIGHTS_ENV} entry for '{kind}' must be an object.")
        parsed: Dict[str, float] = {}
        for key in ("base_weight", "half_life_hours"):
            if key not in settings:
                continue
            try:
                parsed[key] = float(settings[key])
            except (TypeError, ValueError) as exc:
                raise RuntimeError(
                    f"{EDGE_WEIGHTS_ENV} entry '{kind}.{key}' must be numeric; received '{settings[key]}'."
                ) from exc
        overrides[str(kind)] = parsed
    return overrides


def get_analytics_settings() -> AnalyticsSettings:
    """Resolve pipeline settings from the environment with sensible defaults."""

    return AnalyticsSettings(
        louvain_max_passes=_get_int(LOUVAIN_MAX_PASSES_ENV, DEFAULT_LOUVAIN_MAX_PASSES),
        louvain_resolution=_get_float(LOUVAIN_RESOLUTION_ENV, DEFAULT_LOUVAIN_RESOLUTION),
        louvain_min_gain=_get_float(LOUVAIN_MIN_GAIN_ENV, DEFAULT_LOUVAIN_MIN_GAIN),
        label_propagation_seed=_get_int(
            LABEL_PROPAGATION_SEED_ENV, DEFAULT_LABEL_PROPAGATION_SEED
        ),
        pagerank_damping=_get_float(PAGERANK_DAMPING_ENV, DEFAULT_PAGERANK_DAMPING),
        pagerank_iterations=_get_int(PAGERANK_ITERATIONS_ENV, DEFAULT_PAGERANK_ITERATIONS),
        pagerank_tolerance=_get_float(PAGERANK_TOLERANCE_ENV, DEFAULT_PAGERANK_TOLERANCE),
        anomaly_z_threshold=_get_float(ANOMALY_Z_THRESHOLD_ENV, DEFAULT_ANOMALY_Z_THRESHOLD),
        trend_recent_window_hours=_get_float(TREND_RECENT_WINDOW_ENV, DEFAULT_TREND_RECENT_WINDOW_HOURS),
        trend_lookback_window_hours=_get_float(
            TREND_LOOKBACK_WINDOW_ENV, DEFAULT_TREND_LOOKBACK_WINDOW_HOURS
        ),
        trend_minimum_weight=_get_float(TREND_MINIMUM_WEIGHT_ENV, DEFAULT_TREND_MINIMUM_WEIGHT),
        edge_weight_overrides=get_edge_weight_overrides(),
        snapshot_cache_size=_get_int(SNAPSHOT_CACHE_SIZE_ENV, DEFAULT_SNAPSHOT_CACHE_SIZE),
        snapshot_cache_ttl_seconds=_get_int(SNAPSHOT_CACHE_TTL_ENV, DEFAULT_SNAPSHOT_CACHE_TTL_SECONDS),
    )
