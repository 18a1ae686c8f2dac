from __future__ import annotations


def main() -> int:
    print(
        "cybersentra package. Common commands:\n"
        "  python -m cybersentra.score --mode user --baseline data/baseline.ndjson --target data/target.ndjson\n"
        "  python -m cybersentra.score --mode hourly --events data/events.ndjson --target-hours 24\n"
        "  uvicorn cybersentra.api.main:app --host 127.0.0.1 --port 8000\n"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
