"""
Shared fixtures for the anomaly-scoring tests.

Nothing here touches the network or disk except through tmp_path.
"""

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from cybersentra.features.user_windows import FeatureRow
from cybersentra.logs.records import EventRecord


NOW = datetime(2026, 10, 18, 12, 30, tzinfo=timezone.utc)

# First-dimension jitter for the 12 baseline users; mean is exactly 10.
BASELINE_TOTALS = [8, 9, 10, 11, 12, 8, 9, 10, 11, 12, 9, 11]


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_event():
    def _make(
        user="alice",
        time=None,
        type="Security",
        severity="Information",
        process="svchost",
        details="ok",
        source="host-1",
        event_id=4624,
        **extra,
    ):
        return EventRecord(
            time=time if time is not None else (NOW - timedelta(minutes=5)).isoformat(),
            type=type,
            severity=severity,
            user=user,
            process=process,
            details=details,
            source=source,
            event_id=event_id,
            **extra,
        )

    return _make


@pytest.fixture
def make_rows():
    def _make(vectors, prefix="u"):
        return [FeatureRow(key=f"{prefix}{i}", x=np.array(v, dtype=np.float64)) for i, v in enumerate(vectors)]

    return _make


@pytest.fixture
def scenario_baseline(make_rows):
    """12 whole-window rows of [total, 0, 0, 0, 2, 1] with jitter on total."""
    return lambda: make_rows([[t, 0, 0, 0, 2, 1] for t in BASELINE_TOTALS])


@pytest.fixture
def alice_row():
    return lambda: FeatureRow(key="alice", x=np.array([50, 6, 6, 6, 9, 9], dtype=np.float64))
