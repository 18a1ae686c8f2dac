"""
ResultCache snapshot publication.
"""

from datetime import datetime, timezone

import numpy as np
import pytest

from cybersentra.features.user_windows import FeatureRow
from cybersentra.models.scoring import AnomalyResult
from cybersentra.runtime.state import MlSnapshot, ResultCache


def _inputs():
    scored = [AnomalyResult("alice", 0.9, True), AnomalyResult("bob", 0.1, False)]
    target_map = {
        "alice": FeatureRow("alice", np.array([5.0, 1.0])),
        "bob": FeatureRow("bob", np.array([1.0, 0.0])),
    }
    return scored, target_map, np.array([2.0, 0.5])


def test_initial_snapshot_is_empty():
    cache = ResultCache()
    snap = cache.snapshot
    assert snap.scored == ()
    assert dict(snap.target_map) == {}
    assert snap.baseline_mean == ()
    assert snap.last_run_utc == datetime.min.replace(tzinfo=timezone.utc)


def test_update_publishes_all_fields_together():
    cache = ResultCache()
    scored, target_map, mean = _inputs()
    before = datetime.now(timezone.utc)
    snap = cache.update(scored, target_map, mean)

    assert cache.snapshot is snap
    assert [r.key for r in cache.latest_scored] == ["alice", "bob"]
    assert set(cache.latest_target_map) == {"alice", "bob"}
    assert cache.latest_baseline_mean == (2.0, 0.5)
    assert cache.last_run_utc >= before
    assert cache.last_run_utc.tzinfo is not None


def test_old_snapshot_is_untouched_by_new_update():
    cache = ResultCache()
    scored, target_map, mean = _inputs()
    first = cache.update(scored, target_map, mean)
    second = cache.update([AnomalyResult("carol", 0.5, True)], {}, [])

    assert first is not second
    assert [r.key for r in first.scored] == ["alice", "bob"]
    assert set(first.target_map) == {"alice", "bob"}
    assert [r.key for r in cache.snapshot.scored] == ["carol"]
    assert cache.snapshot.baseline_mean == ()


def test_snapshot_is_isolated_from_caller_mutation():
    cache = ResultCache()
    scored, target_map, mean = _inputs()
    snap = cache.update(scored, target_map, mean)

    scored.append(AnomalyResult("mallory", 1.0, True))
    target_map["alice"].x[0] = 999.0
    target_map["mallory"] = FeatureRow("mallory", np.array([1.0, 1.0]))
    mean[0] = -1.0

    assert len(snap.scored) == 2
    assert snap.target_map["alice"].x[0] == 5.0
    assert "mallory" not in snap.target_map
    assert snap.baseline_mean[0] == 2.0


def test_snapshot_contents_are_read_only():
    cache = ResultCache()
    snap = cache.update(*_inputs())
    with pytest.raises(TypeError):
        snap.target_map["eve"] = FeatureRow("eve", np.zeros(2))
    with pytest.raises(ValueError):
        snap.target_map["alice"].x[0] = 1.0
    assert isinstance(snap, MlSnapshot)
