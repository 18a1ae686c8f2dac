from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Dict, Mapping, Sequence, Tuple

from cybersentra.features.user_windows import FeatureRow
from cybersentra.models.scoring import AnomalyResult


@dataclass(frozen=True)
class MlSnapshot:
    """Outputs of one completed scoring run. Never mutated after publish."""

    scored: Tuple[AnomalyResult, ...] = ()
    target_map: Mapping[str, FeatureRow] = field(default_factory=lambda: MappingProxyType({}))
    baseline_mean: Tuple[float, ...] = ()
    last_run_utc: datetime = datetime.min.replace(tzinfo=timezone.utc)


class ResultCache:
    """Holds the latest MlSnapshot; ``update`` swaps in a new one as a unit."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = MlSnapshot()

    @property
    def snapshot(self) -> MlSnapshot:
        return self._snapshot

    def update(
        self,
        scored: Sequence[AnomalyResult],
        target_map: Mapping[str, FeatureRow],
        baseline_mean: Sequence[float],
    ) -> MlSnapshot:
        rows: Dict[str, FeatureRow] = {k: r.copy() for k, r in target_map.items()}
        for r in rows.values():
            r.x.setflags(write=False)
        snap = MlSnapshot(
            scored=tuple(scored),
            target_map=MappingProxyType(rows),
            baseline_mean=tuple(float(v) for v in baseline_mean),
            last_run_utc=datetime.now(timezone.utc),
        )
        with self._lock:
            self._snapshot = snap
        return snap

    # Read helpers; each reads a single snapshot.

    @property
    def latest_scored(self) -> Tuple[AnomalyResult, ...]:
        return self._snapshot.scored

    @property
    def latest_target_map(self) -> Mapping[str, FeatureRow]:
        return self._snapshot.target_map

    @property
    def latest_baseline_mean(self) -> Tuple[float, ...]:
        return self._snapshot.baseline_mean

    @property
    def last_run_utc(self) -> datetime:
        return self._snapshot.last_run_utc


ML_CACHE = ResultCache()
