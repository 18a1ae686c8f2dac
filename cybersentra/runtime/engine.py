from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from cybersentra.config import SETTINGS
from cybersentra.detection.explain import build_ml_threats
from cybersentra.features.indicators import IndicatorRules, load_indicator_rules
from cybersentra.features.user_windows import (
    FeatureRow,
    build_per_user_features,
    build_per_user_hourly_features,
)
from cybersentra.logs.records import EventRecord
from cybersentra.models.scoring import AnomalyScorer, ScoringReport
from cybersentra.runtime.state import ML_CACHE, MlSnapshot, ResultCache
from cybersentra.schemas import ThreatRecord
from cybersentra.utils.time import safe_parse_ts

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PipelineRun:
    mode: str
    baseline_rows: int
    target_rows: int
    report: ScoringReport
    snapshot: MlSnapshot
    threats: List[ThreatRecord]


def compute_mean(rows: Sequence[FeatureRow]) -> np.ndarray:
    if not rows:
        return np.zeros((0,), dtype=np.float64)
    return np.stack([r.x for r in rows], axis=0).mean(axis=0)


def split_windows(
    events: Sequence[EventRecord],
    target_hours: int,
    baseline_hours: int,
    now: Optional[datetime] = None,
) -> Tuple[List[EventRecord], List[EventRecord]]:
    """Split one event stream into (baseline, target) by time.

    Target is the trailing ``target_hours``; baseline is the ``baseline_hours``
    immediately before it. Unparseable or older events are dropped.
    """
    now = now or _now_utc()
    target_start = now - timedelta(hours=target_hours)
    baseline_start = target_start - timedelta(hours=baseline_hours)

    baseline: List[EventRecord] = []
    target: List[EventRecord] = []
    for e in events:
        dt = safe_parse_ts(e.time)
        if dt is None or dt < baseline_start:
            continue
        if dt >= target_start:
            target.append(e)
        else:
            baseline.append(e)
    return baseline, target


def _default_rules() -> IndicatorRules:
    return load_indicator_rules(SETTINGS.indicator_rules_path or None)


def score_rows(
    mode: str,
    baseline_rows: List[FeatureRow],
    target_rows: List[FeatureRow],
    cache: ResultCache,
    percentile: Optional[float] = None,
    now: Optional[datetime] = None,
) -> PipelineRun:
    """Score prepared rows and publish the result to ``cache``.

    The target map and baseline mean keep raw (pre-normalization) values so
    explanations quote real counts.
    """
    target_map: Dict[str, FeatureRow] = {r.key: r.copy() for r in target_rows}
    dims = {r.dims for r in baseline_rows}
    baseline_mean = compute_mean(baseline_rows) if len(dims) == 1 else np.zeros((0,), dtype=np.float64)

    scorer = AnomalyScorer() if percentile is None else AnomalyScorer(percentile=percentile)
    report = scorer.run(baseline_rows, target_rows)

    snap = cache.update(report.results, target_map, baseline_mean)
    threats = build_ml_threats(snap.scored, snap.target_map, snap.baseline_mean, now=now)
    logger.info(
        "ML run mode=%s baseline_rows=%d target_rows=%d threats=%d",
        mode,
        len(baseline_rows),
        len(target_rows),
        len(threats),
    )
    return PipelineRun(
        mode=mode,
        baseline_rows=len(baseline_rows),
        target_rows=len(target_rows),
        report=report,
        snapshot=snap,
        threats=threats,
    )


def run_user_pipeline(
    baseline_events: Sequence[EventRecord],
    target_events: Sequence[EventRecord],
    cache: ResultCache = ML_CACHE,
    percentile: Optional[float] = None,
) -> PipelineRun:
    """Whole-window mode: one row per user in each window."""
    baseline_rows = build_per_user_features(baseline_events)
    target_rows = build_per_user_features(target_events)
    return score_rows("user", baseline_rows, target_rows, cache, percentile=percentile)


def run_hourly_pipeline(
    events: Sequence[EventRecord],
    cache: ResultCache = ML_CACHE,
    target_hours: Optional[int] = None,
    baseline_hours: Optional[int] = None,
    now: Optional[datetime] = None,
    percentile: Optional[float] = None,
    rules: Optional[IndicatorRules] = None,
) -> PipelineRun:
    """Hourly mode over a single stream: earlier hours form the baseline."""
    target_hours = target_hours or SETTINGS.hourly_lookback_hours
    baseline_hours = baseline_hours or SETTINGS.baseline_hours
    now = now or _now_utc()
    rules = rules or _default_rules()

    baseline_events, target_events = split_windows(events, target_hours, baseline_hours, now=now)
    baseline_rows = build_per_user_hourly_features(
        baseline_events, last_hours=target_hours + baseline_hours, now=now, rules=rules
    )
    target_rows = build_per_user_hourly_features(target_events, last_hours=target_hours, now=now, rules=rules)
    return score_rows("hourly", baseline_rows, target_rows, cache, percentile=percentile, now=now)
