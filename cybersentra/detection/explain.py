from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional, Sequence

import numpy as np

from cybersentra.config import SETTINGS, THRESHOLDS
from cybersentra.features.user_windows import FEATURE_LABELS, HOURLY_FEATURE_NAMES, FeatureRow
from cybersentra.models.scoring import AnomalyResult
from cybersentra.schemas import ThreatRecord
from cybersentra.utils.time import to_iso_utc


# Fixed tags so ML detections are distinguishable from rule-based ones.
ML_SOURCE = "ML"
ML_TECHNIQUE = "ML"
ML_NAME = "ML: Unusual activity"
ML_TACTIC = "Anomaly Detection"

FEATURE_DISPLAY_NAMES: List[str] = [FEATURE_LABELS[name] for name in HOURLY_FEATURE_NAMES]

NO_DEVIATION_REASON = "No strong feature deviation from baseline (score-based anomaly)."
NO_BREAKDOWN = "Reasons: (no feature breakdown available)"


def severity_for_score(score: float, high: float | None = None) -> str:
    high = THRESHOLDS.severity_high if high is None else high
    return "High" if score >= high else "Medium"


def _fmt(v: float) -> str:
    s = f"{v:.3f}".rstrip("0").rstrip(".")
    return "0" if s in ("", "-0") else s


def _feature_name(i: int) -> str:
    if i < len(FEATURE_DISPLAY_NAMES):
        return FEATURE_DISPLAY_NAMES[i]
    return f"Feature {i}"


def build_reasons(x: Sequence[float], mean: Sequence[float], k: int | None = None) -> List[str]:
    """Top-k features above the baseline mean, largest delta first."""
    k = SETTINGS.max_reasons if k is None else k
    xv = np.asarray(x, dtype=np.float64)
    deltas = xv - np.asarray(mean, dtype=np.float64)
    order = sorted(range(len(deltas)), key=lambda i: -deltas[i])[:k]

    out: List[str] = []
    for i in order:
        if deltas[i] <= 0:
            continue
        out.append(f"{_feature_name(i)} is higher than baseline (value {_fmt(float(xv[i]))}).")
    if not out:
        out.append(NO_DEVIATION_REASON)
    return out


def explain_result(
    result: AnomalyResult,
    target_map: Mapping[str, FeatureRow],
    baseline_mean: Sequence[float],
) -> str:
    details = f"ML anomaly score: {result.score:.3f}\n"
    row = target_map.get(result.key)
    if row is not None and len(baseline_mean) > 0 and len(baseline_mean) == row.dims:
        reasons = build_reasons(row.x, baseline_mean)
        details += "\nReasons:\n- " + "\n- ".join(reasons)
    else:
        details += "\n" + NO_BREAKDOWN
    return details


def build_ml_threats(
    scored: Iterable[AnomalyResult],
    target_map: Mapping[str, FeatureRow],
    baseline_mean: Sequence[float],
    now: Optional[datetime] = None,
) -> List[ThreatRecord]:
    """One ThreatRecord per flagged result, in the order given."""
    ts = to_iso_utc(now or datetime.now(timezone.utc))
    out: List[ThreatRecord] = []
    for a in scored:
        if not a.is_anomaly:
            continue
        out.append(
            ThreatRecord(
                time=ts,
                user=a.key,
                source=ML_SOURCE,
                technique=ML_TECHNIQUE,
                name=ML_NAME,
                tactic=ML_TACTIC,
                severity=severity_for_score(a.score),
                details=explain_result(a, target_map, baseline_mean),
            )
        )
    return out
