from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


Severity = Literal["High", "Medium"]
FeatureMode = Literal["user", "hourly"]


class ThreatRecord(BaseModel):
    time: str
    user: str  # entity key: user, or "user | MM-DD HH:00" in hourly mode
    source: str
    technique: str
    name: str
    tactic: str
    severity: Severity
    details: str


class AnomalyResultOut(BaseModel):
    key: str
    score: float
    is_anomaly: bool


class RunRequest(BaseModel):
    mode: FeatureMode = "hourly"
    events: List[Dict[str, Any]] = Field(default_factory=list)
    # user mode scores target_events against baseline_events; hourly mode splits `events`
    baseline_events: List[Dict[str, Any]] = Field(default_factory=list)
    target_events: List[Dict[str, Any]] = Field(default_factory=list)
    percentile: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    target_hours: Optional[int] = Field(default=None, ge=1)
    baseline_hours: Optional[int] = Field(default=None, ge=1)


class RunSummary(BaseModel):
    mode: FeatureMode
    baseline_rows: int
    target_rows: int
    threshold: float
    flagged: int
    insufficient_data: bool
    normalization: Optional[str] = None
    last_run_utc: str
