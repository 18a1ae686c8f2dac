from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Sequence

import numpy as np

from cybersentra.config import SETTINGS, THRESHOLDS
from cybersentra.features.user_windows import FeatureRow
from cybersentra.models.pca import PcaArtifact, score_pca, train_pca

logger = logging.getLogger(__name__)


NormalizationReason = Literal["ok", "empty_baseline", "dimension_mismatch"]


@dataclass(frozen=True)
class AnomalyResult:
    key: str
    score: float
    is_anomaly: bool


@dataclass(frozen=True)
class NormalizationReport:
    applied: bool
    reason: NormalizationReason
    dims: int = 0


@dataclass(frozen=True)
class ScoringReport:
    results: List[AnomalyResult]
    threshold: float = 0.0
    normalization: Optional[NormalizationReport] = None
    insufficient_data: bool = False
    model: Optional[PcaArtifact] = field(default=None, repr=False)


def sanitize_score(score: float) -> float:
    s = float(score)
    if math.isnan(s) or math.isinf(s):
        return 0.0
    return s


def percentile(values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile, p in [0, 1] (0.99 = 99th percentile)."""
    if not values:
        return 0.0
    p = min(max(float(p), 0.0), 1.0)
    ordered = sorted(values)
    idx = int(round((len(ordered) - 1) * p))
    idx = min(max(idx, 0), len(ordered) - 1)
    return ordered[idx]


def normalize_using_reference(
    baseline: List[FeatureRow],
    target: Optional[List[FeatureRow]] = None,
    eps: float = THRESHOLDS.normalize_epsilon,
) -> NormalizationReport:
    """Min/max-scale baseline and target with statistics from the baseline only.

    Rows are rescaled in place. Nothing is touched when the baseline is empty
    or when any row disagrees on dimensionality; the report says which.
    """
    if not baseline:
        return NormalizationReport(applied=False, reason="empty_baseline")
    target = target if target is not None else []

    dims = baseline[0].dims
    bad = [r.key for r in list(baseline) + list(target) if r.x is None or r.x.ndim != 1 or r.dims != dims]
    if bad:
        logger.warning(
            "Skipping normalization: %d rows disagree with dims=%d (first: %s)", len(bad), dims, bad[0]
        )
        return NormalizationReport(applied=False, reason="dimension_mismatch", dims=dims)

    B = np.stack([r.x for r in baseline], axis=0)
    lo = B.min(axis=0)
    denom = B.max(axis=0) - lo
    flat = denom < eps
    safe = np.where(flat, 1.0, denom)

    for r in list(baseline) + list(target):
        v = (r.x - lo) / safe
        v[flat] = 0.0
        r.x[:] = v
    return NormalizationReport(applied=True, reason="ok", dims=dims)


def flag_anomalies(
    keys: Sequence[str],
    scores: Sequence[float],
    threshold: float,
    fallback_min_target: int = 3,
) -> List[AnomalyResult]:
    """Flag scores strictly above threshold, sorted by score descending.

    If nothing crosses the threshold and there are at least
    ``fallback_min_target`` rows, only the top-scoring row is flagged.
    """
    rows = [(k, sanitize_score(s)) for k, s in zip(keys, scores)]
    flags = [s > threshold for _, s in rows]
    if not any(flags) and len(rows) >= fallback_min_target:
        top = max(range(len(rows)), key=lambda i: rows[i][1])
        flags[top] = True

    results = [AnomalyResult(key=k, score=s, is_anomaly=f) for (k, s), f in zip(rows, flags)]
    results.sort(key=lambda r: r.score, reverse=True)
    return results


@dataclass
class AnomalyScorer:
    """Per-run scorer: fit on baseline rows, threshold from baseline scores, score target rows.

    Holds configuration only. The fitted model is returned on the report and
    never kept on the scorer.
    """

    percentile: float = SETTINGS.baseline_percentile
    rank: int = SETTINGS.pca_rank
    random_state: int = SETTINGS.random_seed
    min_baseline_rows: int = SETTINGS.min_baseline_rows
    fallback_min_target: int = SETTINGS.fallback_min_target

    def run(self, baseline: List[FeatureRow], target: List[FeatureRow]) -> ScoringReport:
        baseline = baseline if baseline is not None else []
        target = target if target is not None else []

        if len(baseline) < self.min_baseline_rows or not target:
            logger.info(
                "Insufficient data for scoring (baseline=%d, target=%d); returning zeros",
                len(baseline),
                len(target),
            )
            zeros = [AnomalyResult(key=r.key, score=0.0, is_anomaly=False) for r in target]
            return ScoringReport(results=zeros, insufficient_data=True)

        norm = normalize_using_reference(baseline, target)

        if not norm.applied:
            # mismatched rows cannot form one model input; degrade to zeros
            zeros = [AnomalyResult(key=r.key, score=0.0, is_anomaly=False) for r in target]
            return ScoringReport(results=zeros, normalization=norm)

        Xb = np.stack([r.x for r in baseline], axis=0)
        Xt = np.stack([r.x for r in target], axis=0)

        art = train_pca(Xb, rank=self.rank, random_state=self.random_state)

        baseline_scores = [sanitize_score(s) for s in score_pca(art, Xb)]
        threshold = percentile(baseline_scores, self.percentile)

        target_scores = [sanitize_score(s) for s in score_pca(art, Xt)]
        results = flag_anomalies(
            [r.key for r in target],
            target_scores,
            threshold,
            fallback_min_target=self.fallback_min_target,
        )

        logger.info(
            "Scored target=%d against baseline=%d (rank=%d, p=%.3f, threshold=%.6f, flagged=%d)",
            len(target),
            len(baseline),
            art.rank,
            self.percentile,
            threshold,
            sum(1 for r in results if r.is_anomaly),
        )
        return ScoringReport(results=results, threshold=threshold, normalization=norm, model=art)


def train_baseline_score_target(
    baseline_rows: List[FeatureRow],
    target_rows: List[FeatureRow],
    baseline_percentile_threshold: float = 0.99,
) -> List[AnomalyResult]:
    return AnomalyScorer(percentile=baseline_percentile_threshold).run(baseline_rows, target_rows).results


def train_on_baseline_score_target(
    baseline_rows: List[FeatureRow],
    target_rows: List[FeatureRow],
) -> List[AnomalyResult]:
    """Backward-compatible alias for older call sites."""
    return train_baseline_score_target(baseline_rows, target_rows, baseline_percentile_threshold=0.99)
