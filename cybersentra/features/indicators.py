from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Tuple


@dataclass(frozen=True)
class IndicatorRules:
    """Case-insensitive substring lists used by the hourly feature builder.

    You can swap the table per environment by pointing
    CYBERSENTRA_INDICATOR_RULES at a JSON file with the same keys.
    """

    version: str
    lolbins: Tuple[str, ...]
    suspicious_commands: Tuple[str, ...]


# Living-off-the-land binaries frequently abused for execution/download.
DEFAULT_LOLBINS: Tuple[str, ...] = (
    "powershell",
    "pwsh",
    "rundll32",
    "regsvr32",
    "mshta",
    "certutil",
    "bitsadmin",
    "schtasks",
    "wmic",
)

DEFAULT_SUSPICIOUS_COMMANDS: Tuple[str, ...] = (
    "encodedcommand",
    "frombase64string",
    "downloadstring",
    "executionpolicy bypass",
    " -w hidden",
    "http://",
    "https://",
    "--cybersentra-demo",
)

DEFAULT_RULES = IndicatorRules(
    version="1",
    lolbins=DEFAULT_LOLBINS,
    suspicious_commands=DEFAULT_SUSPICIOUS_COMMANDS,
)


def contains_any(haystack: str, needles: Iterable[str]) -> bool:
    if not haystack or not haystack.strip():
        return False
    h = haystack.lower()
    return any(n.lower() in h for n in needles if n)


def rules_from_dict(obj: dict) -> IndicatorRules:
    return IndicatorRules(
        version=str(obj.get("version", "custom")),
        lolbins=tuple(str(s) for s in obj.get("lolbins", DEFAULT_LOLBINS)),
        suspicious_commands=tuple(str(s) for s in obj.get("suspicious_commands", DEFAULT_SUSPICIOUS_COMMANDS)),
    )


def load_indicator_rules(path: str | Path | None = None) -> IndicatorRules:
    """Load a rule table from JSON; no path means the built-in table."""
    if not path:
        return DEFAULT_RULES
    obj = json.loads(Path(path).read_text(encoding="utf-8"))
    return rules_from_dict(obj)


def rules_to_dict(rules: IndicatorRules) -> dict:
    return {
        "version": rules.version,
        "lolbins": list(rules.lolbins),
        "suspicious_commands": list(rules.suspicious_commands),
    }
