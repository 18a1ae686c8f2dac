from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from cybersentra.config import SETTINGS
from cybersentra.features.indicators import DEFAULT_RULES, IndicatorRules, contains_any
from cybersentra.logs.records import EventRecord
from cybersentra.utils.time import hour_bucket, safe_parse_ts

logger = logging.getLogger(__name__)


# Windows / Sysmon event codes
EID_FAILED_LOGON = 4625
EID_PROCESS_CREATE = 1
EID_NETWORK_CONNECT = 3
EID_FILE_CREATE = 11

UNKNOWN_USER = "Unknown"

# Column order of the hourly layout as (name, display label); whole-window
# rows use the first six. Every name list and label list derives from this.
FEATURE_LAYOUT: Tuple[Tuple[str, str], ...] = (
    ("total_events", "Total events"),
    ("failed_logins", "Failed logons"),
    ("errors", "Errors/Failures"),
    ("warnings", "Warnings"),
    ("unique_processes", "Unique processes"),
    ("unique_sources", "Unique sources"),
    ("sysmon_process_create", "Sysmon Proc Create (EID 1)"),
    ("sysmon_network_connect", "Sysmon Network (EID 3)"),
    ("lolbin_executions", "LOLBin executions"),
    ("suspicious_command_lines", "Suspicious command lines"),
    ("security_4625", "Security 4625"),
    ("sysmon_file_create", "Sysmon File Create (EID 11)"),
)
USER_FEATURE_COUNT = 6

HOURLY_FEATURE_NAMES: List[str] = [name for name, _ in FEATURE_LAYOUT]
USER_FEATURE_NAMES: List[str] = HOURLY_FEATURE_NAMES[:USER_FEATURE_COUNT]
FEATURE_LABELS: Dict[str, str] = dict(FEATURE_LAYOUT)


@dataclass
class FeatureRow:
    """Entity key plus its feature vector.

    ``x`` is mutable on purpose: normalization rescales it in place.
    """

    key: str
    x: np.ndarray

    @property
    def dims(self) -> int:
        return int(self.x.shape[0])

    def copy(self) -> "FeatureRow":
        return FeatureRow(key=self.key, x=self.x.copy())


def _eq(a: Optional[str], b: str) -> bool:
    return (a or "").lower() == b.lower()


def _is_error(e: EventRecord) -> bool:
    sev = (e.severity or "").lower()
    return sev == "error" or sev == "critical" or "failure" in sev


def _is_warning(e: EventRecord) -> bool:
    return _eq(e.severity, "warning")


def _distinct_nonblank(values) -> int:
    return len({v for v in values if v and v.strip()})


def _is_failed_logon(e: EventRecord) -> bool:
    return _eq(e.type, "Security") and e.event_id == EID_FAILED_LOGON


def _is_sysmon(e: EventRecord, event_id: int) -> bool:
    return _eq(e.type, "Sysmon") and e.event_id == event_id


def _command_text(e: EventRecord) -> str:
    return e.command_line or e.details or ""


def is_lolbin_event(e: EventRecord, rules: IndicatorRules = DEFAULT_RULES) -> bool:
    img = e.image or e.process or ""
    return contains_any(f"{img} {_command_text(e)}", rules.lolbins)


def is_suspicious_command(e: EventRecord, rules: IndicatorRules = DEFAULT_RULES) -> bool:
    return contains_any(_command_text(e), rules.suspicious_commands)


def build_per_user_features(events: Sequence[EventRecord]) -> List[FeatureRow]:
    """Whole-window features, one row per user.

    Events without a user are dropped. Layout follows USER_FEATURE_NAMES.
    """
    groups: Dict[str, List[EventRecord]] = {}
    for e in events:
        user = (e.user or "").strip()
        if not user or user == UNKNOWN_USER:
            continue
        groups.setdefault(e.user, []).append(e)

    out: List[FeatureRow] = []
    for user, evs in groups.items():
        failed = sum(1 for e in evs if "failed" in (e.details or "").lower())
        x = np.array(
            [
                float(len(evs)),
                float(failed),
                float(sum(1 for e in evs if _is_error(e))),
                float(sum(1 for e in evs if _is_warning(e))),
                float(_distinct_nonblank(e.process for e in evs)),
                float(_distinct_nonblank(e.source for e in evs)),
            ],
            dtype=np.float64,
        )
        out.append(FeatureRow(key=user, x=x))
    return out


def hourly_key(user: str, bucket: datetime) -> str:
    return f"{user} | {bucket:%m-%d %H}:00"


def build_per_user_hourly_features(
    events: Sequence[EventRecord],
    last_hours: int | None = None,
    now: datetime | None = None,
    rules: IndicatorRules | None = None,
) -> List[FeatureRow]:
    """Per-(user, hour) features over the trailing ``last_hours``.

    Unparseable timestamps and events older than the cutoff are skipped.
    Layout follows HOURLY_FEATURE_NAMES; the failed-logon count appears twice
    (index 1 and index 10) and both columns are kept.
    """
    if last_hours is None:
        last_hours = SETTINGS.hourly_lookback_hours
    rules = rules or DEFAULT_RULES
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    cutoff = now - timedelta(hours=last_hours)

    groups: Dict[Tuple[str, datetime], List[EventRecord]] = {}
    skipped = 0
    for e in events:
        dt = safe_parse_ts(e.time)
        if dt is None or dt < cutoff:
            skipped += 1
            continue
        user = e.user if (e.user or "").strip() else UNKNOWN_USER
        groups.setdefault((user, hour_bucket(dt)), []).append(e)

    if skipped:
        logger.debug("Hourly features skipped %d events (unparseable or before %s)", skipped, cutoff)

    out: List[FeatureRow] = []
    for (user, bucket), evs in groups.items():
        failed = sum(1 for e in evs if _is_failed_logon(e))
        x = np.array(
            [
                float(len(evs)),
                float(failed),
                float(sum(1 for e in evs if _is_error(e))),
                float(sum(1 for e in evs if _is_warning(e))),
                float(_distinct_nonblank(e.process for e in evs)),
                float(_distinct_nonblank(e.source for e in evs)),
                float(sum(1 for e in evs if _is_sysmon(e, EID_PROCESS_CREATE))),
                float(sum(1 for e in evs if _is_sysmon(e, EID_NETWORK_CONNECT))),
                float(sum(1 for e in evs if is_lolbin_event(e, rules))),
                float(sum(1 for e in evs if is_suspicious_command(e, rules))),
                float(failed),
                float(sum(1 for e in evs if _is_sysmon(e, EID_FILE_CREATE))),
            ],
            dtype=np.float64,
        )
        out.append(FeatureRow(key=hourly_key(user, bucket), x=x))
    return out
