from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class EventRecord:
    """One observed log event as handed over by the collector."""

    time: str
    type: str  # Security / System / Application / Sysmon
    severity: str
    user: str
    process: str  # provider or process name, not always an executable
    details: str
    source: str
    event_id: int = 0

    # Sysmon-style extended attributes
    image: str = ""
    command_line: str = ""
    parent_image: str = ""
    destination_ip: str = ""
    destination_port: str = ""


# snake_case field -> accepted input keys (collector exports use PascalCase)
_FIELD_KEYS: Dict[str, tuple] = {
    "time": ("time", "Time", "ts", "timestamp"),
    "type": ("type", "Type", "category", "log"),
    "severity": ("severity", "Severity", "level"),
    "user": ("user", "User"),
    "process": ("process", "Process", "provider"),
    "details": ("details", "Details", "message"),
    "source": ("source", "Source"),
    "event_id": ("event_id", "EventId", "eventId"),
    "image": ("image", "Image"),
    "command_line": ("command_line", "CommandLine"),
    "parent_image": ("parent_image", "ParentImage"),
    "destination_ip": ("destination_ip", "DestinationIp"),
    "destination_port": ("destination_port", "DestinationPort"),
}


def _pick(raw: Dict[str, Any], keys: tuple) -> Optional[Any]:
    for k in keys:
        if k in raw and raw[k] is not None:
            return raw[k]
    return None


def event_from_dict(raw: Dict[str, Any]) -> EventRecord:
    """Build an EventRecord from a JSON-like dict.

    Missing text fields become empty strings. A non-integer event id raises
    ValueError.
    """
    values: Dict[str, Any] = {}
    for name, keys in _FIELD_KEYS.items():
        v = _pick(raw, keys)
        if name == "event_id":
            try:
                values[name] = int(v or 0)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Bad event id: {v!r}") from e
        else:
            values[name] = "" if v is None else str(v)
    return EventRecord(**values)


def event_to_dict(e: EventRecord) -> Dict[str, Any]:
    return {name: getattr(e, name) for name in _FIELD_KEYS}
