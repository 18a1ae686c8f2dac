"""
End-to-end batch runs over event records.
"""

from datetime import timedelta

import numpy as np

from cybersentra.runtime.engine import (
    compute_mean,
    run_hourly_pipeline,
    run_user_pipeline,
    split_windows,
)
from cybersentra.runtime.state import ResultCache


BASELINE_TOTALS = [8, 9, 10, 11, 12, 8, 9, 10, 11, 12, 9, 11]


def _user_events(make_event, user, total, failed=0, warnings=0, processes=2, sources=1):
    events = []
    for i in range(total):
        details = "logon failed" if i < failed else "ok"
        severity = "Error" if i < failed else ("Warning" if failed <= i < failed + warnings else "Information")
        events.append(
            make_event(
                user=user,
                details=details,
                severity=severity,
                process=f"proc{i % processes}",
                source=f"host{i % sources}",
            )
        )
    return events


def test_compute_mean_empty():
    assert compute_mean([]).shape == (0,)


def test_split_windows(make_event, now):
    events = [
        make_event(time=(now - timedelta(hours=1)).isoformat()),
        make_event(time=(now - timedelta(hours=30)).isoformat()),
        make_event(time=(now - timedelta(hours=200)).isoformat()),
        make_event(time="garbage"),
    ]
    baseline, target = split_windows(events, target_hours=24, baseline_hours=168, now=now)
    assert [e.time for e in target] == [events[0].time]
    assert [e.time for e in baseline] == [events[1].time]


def test_user_pipeline_flags_alice(make_event):
    baseline = []
    for i, total in enumerate(BASELINE_TOTALS):
        baseline += _user_events(make_event, f"user{i}", total)
    target = _user_events(make_event, "alice", 50, failed=6, warnings=6, processes=9, sources=9)

    cache = ResultCache()
    run = run_user_pipeline(baseline, target, cache=cache)

    assert run.baseline_rows == 12
    assert run.target_rows == 1
    assert cache.snapshot is run.snapshot
    np.testing.assert_allclose(run.snapshot.baseline_mean, [10, 0, 0, 0, 2, 1])
    # raw counts are kept for explanation
    np.testing.assert_array_equal(run.snapshot.target_map["alice"].x, [50, 6, 6, 6, 9, 9])

    assert len(run.threats) == 1
    threat = run.threats[0]
    assert threat.user == "alice"
    assert threat.severity == "High"
    assert "Total events is higher than baseline (value 50)." in threat.details


def test_user_pipeline_insufficient_baseline(make_event):
    baseline = _user_events(make_event, "bob", 5)
    target = _user_events(make_event, "alice", 5) + _user_events(make_event, "carol", 3)
    run = run_user_pipeline(baseline, target, cache=ResultCache())
    assert run.report.insufficient_data
    assert run.threats == []
    assert all(r.score == 0.0 for r in run.snapshot.scored)


def test_hourly_pipeline_flags_burst(make_event, now):
    events = []
    # three users, forty baseline hours, 3-6 events per hour
    for h in range(30, 70):
        ts = (now - timedelta(hours=h)).isoformat()
        for u in ("bob", "carol", "dave"):
            n = 3 + (h % 4)
            events += [make_event(user=u, time=ts) for _ in range(n)]

    burst_ts = (now - timedelta(hours=2)).isoformat()
    events += [
        make_event(
            user="alice",
            time=burst_ts,
            type="Sysmon",
            event_id=1,
            image=r"C:\Windows\System32\WindowsPowerShell\v1.0\powershell.exe",
            command_line="powershell -w hidden -EncodedCommand SQBFAFgA",
        )
        for _ in range(40)
    ]
    events += [make_event(user="bob", time=(now - timedelta(hours=3)).isoformat()) for _ in range(4)]

    cache = ResultCache()
    run = run_hourly_pipeline(events, cache=cache, target_hours=24, baseline_hours=168, now=now)

    assert run.baseline_rows == 120
    assert run.target_rows == 2
    top = run.snapshot.scored[0]
    assert top.key == "alice | 10-18 10:00"
    assert top.is_anomaly
    assert run.snapshot.target_map[top.key].x[8] == 40
    assert any(t.user == "alice | 10-18 10:00" for t in run.threats)
