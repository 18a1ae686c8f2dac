from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List

from cybersentra.io.ndjson import read_events, write_ndjson
from cybersentra.models.pca import save_pca
from cybersentra.runtime.engine import PipelineRun, run_hourly_pipeline, run_user_pipeline
from cybersentra.runtime.state import ResultCache


def _require(path: Path) -> Path:
    if not path.exists():
        raise SystemExit(f"No such events file: {path}")
    return path


def main(argv: List[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Score target-window user activity against a baseline window.")
    p.add_argument("--mode", choices=["user", "hourly"], default="user")
    p.add_argument("--baseline", help="Baseline events NDJSON (user mode)")
    p.add_argument("--target", help="Target events NDJSON (user mode)")
    p.add_argument("--events", help="Single events NDJSON split into windows (hourly mode)")
    p.add_argument("--target-hours", type=int, default=None)
    p.add_argument("--baseline-hours", type=int, default=None)
    p.add_argument("--percentile", type=float, default=None, help="Baseline score percentile, e.g. 0.99")
    p.add_argument("--out", default=None, help="Write threat records as NDJSON here instead of stdout")
    p.add_argument("--save-model", default=None, help="Persist the fitted baseline model (joblib)")
    p.add_argument("-v", "--verbose", action="store_true")
    args = p.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    cache = ResultCache()
    run: PipelineRun
    if args.mode == "user":
        if not args.baseline or not args.target:
            p.error("--baseline and --target are required in user mode")
        baseline = read_events(_require(Path(args.baseline)))
        target = read_events(_require(Path(args.target)))
        run = run_user_pipeline(baseline, target, cache=cache, percentile=args.percentile)
    else:
        if not args.events:
            p.error("--events is required in hourly mode")
        events = read_events(_require(Path(args.events)))
        run = run_hourly_pipeline(
            events,
            cache=cache,
            target_hours=args.target_hours,
            baseline_hours=args.baseline_hours,
            percentile=args.percentile,
        )

    if args.save_model:
        if run.report.model is None:
            print("No model fitted for this run; nothing saved")
        else:
            save_pca(args.save_model, run.report.model)

    records = [t.model_dump() for t in run.threats]
    if args.out:
        n = write_ndjson(args.out, records)
        print(f"Wrote {n} threat records to {args.out}")
    else:
        for r in records:
            print(json.dumps(r))

    print(
        f"Scored baseline_rows={run.baseline_rows} target_rows={run.target_rows} "
        f"threshold={run.report.threshold:.6f} flagged={len(run.threats)}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
