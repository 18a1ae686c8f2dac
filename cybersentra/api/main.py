from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException

from cybersentra.detection.explain import build_ml_threats
from cybersentra.logs.records import EventRecord, event_from_dict
from cybersentra.runtime.engine import PipelineRun, run_hourly_pipeline, run_user_pipeline
from cybersentra.runtime.state import ML_CACHE
from cybersentra.schemas import AnomalyResultOut, RunRequest, RunSummary, ThreatRecord
from cybersentra.utils.time import to_iso_utc

logger = logging.getLogger(__name__)


app = FastAPI(title="CyberSentra ML Anomaly Scoring", version="0.1.0")


def _to_events(raw: List[Dict[str, Any]]) -> List[EventRecord]:
    out: List[EventRecord] = []
    for i, r in enumerate(raw):
        try:
            out.append(event_from_dict(r))
        except ValueError as e:
            logger.warning("Rejecting run request: bad event at index %d: %s", i, e)
            raise HTTPException(status_code=400, detail=f"Bad event at index {i}: {e}") from e
    return out


@app.get("/health")
def health() -> Dict[str, Any]:
    snap = ML_CACHE.snapshot
    return {
        "ok": True,
        "results": len(snap.scored),
        "last_run_utc": to_iso_utc(snap.last_run_utc),
    }


@app.post("/ml/run", response_model=RunSummary)
def run(req: RunRequest) -> RunSummary:
    result: PipelineRun
    if req.mode == "user":
        result = run_user_pipeline(
            _to_events(req.baseline_events),
            _to_events(req.target_events),
            cache=ML_CACHE,
            percentile=req.percentile,
        )
    else:
        result = run_hourly_pipeline(
            _to_events(req.events),
            cache=ML_CACHE,
            target_hours=req.target_hours,
            baseline_hours=req.baseline_hours,
            percentile=req.percentile,
        )

    norm = result.report.normalization
    return RunSummary(
        mode=req.mode,
        baseline_rows=result.baseline_rows,
        target_rows=result.target_rows,
        threshold=result.report.threshold,
        flagged=sum(1 for r in result.report.results if r.is_anomaly),
        insufficient_data=result.report.insufficient_data,
        normalization=norm.reason if norm else None,
        last_run_utc=to_iso_utc(result.snapshot.last_run_utc),
    )


@app.get("/ml/results", response_model=List[AnomalyResultOut])
def results(only_anomalies: bool = False) -> List[AnomalyResultOut]:
    snap = ML_CACHE.snapshot
    return [
        AnomalyResultOut(key=r.key, score=r.score, is_anomaly=r.is_anomaly)
        for r in snap.scored
        if r.is_anomaly or not only_anomalies
    ]


@app.get("/ml/threats", response_model=List[ThreatRecord])
def threats() -> List[ThreatRecord]:
    snap = ML_CACHE.snapshot
    return build_ml_threats(snap.scored, snap.target_map, snap.baseline_mean)
