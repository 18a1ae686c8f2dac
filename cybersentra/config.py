from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """Central configuration for the anomaly-scoring pipeline.

    Every field can be overridden with a CYBERSENTRA_* environment variable.
    """

    # Scoring
    baseline_percentile: float = 0.99
    min_baseline_rows: int = 10
    fallback_min_target: int = 3
    pca_rank: int = 3
    random_seed: int = 1

    # Windows
    hourly_lookback_hours: int = 24
    baseline_hours: int = 168

    # Explanation
    max_reasons: int = 3

    # Optional JSON file replacing the built-in indicator table
    indicator_rules_path: str = ""


def _env_int(name: str, default: int) -> int:
    v = os.environ.get(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    v = os.environ.get(name)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    v = os.environ.get(name)
    if v is None:
        return default
    return v.strip()


@dataclass(frozen=True)
class Thresholds:
    """Cutoffs used when turning scores into threat records."""

    severity_high: float = 0.8
    normalize_epsilon: float = 1e-6


def load_settings() -> Settings:
    return Settings(
        baseline_percentile=_env_float("CYBERSENTRA_BASELINE_PERCENTILE", 0.99),
        min_baseline_rows=_env_int("CYBERSENTRA_MIN_BASELINE_ROWS", 10),
        fallback_min_target=_env_int("CYBERSENTRA_FALLBACK_MIN_TARGET", 3),
        pca_rank=_env_int("CYBERSENTRA_PCA_RANK", 3),
        random_seed=_env_int("CYBERSENTRA_RANDOM_SEED", 1),
        hourly_lookback_hours=_env_int("CYBERSENTRA_HOURLY_LOOKBACK_HOURS", 24),
        baseline_hours=_env_int("CYBERSENTRA_BASELINE_HOURS", 168),
        max_reasons=_env_int("CYBERSENTRA_MAX_REASONS", 3),
        indicator_rules_path=_env_str("CYBERSENTRA_INDICATOR_RULES", ""),
    )


def load_thresholds() -> Thresholds:
    return Thresholds(
        severity_high=_env_float("CYBERSENTRA_SEVERITY_HIGH", 0.8),
    )


SETTINGS = load_settings()
THRESHOLDS = load_thresholds()
