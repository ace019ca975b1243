#!/usr/bin/env python3
"""Run hunter stage workers locally, in place of the scheduler.

Usage:
    python scripts/run_hunter_worker.py collect
    python scripts/run_hunter_worker.py all --loop

``all`` runs one collect, filter and classify invocation per round.
``--loop`` keeps going until a whole round finds no pending jobs.
Exits 0 on success, 1 if any invocation reported an error.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.db.session import SessionLocal
from app.pipeline.executor import run_worker
from app.pipeline.states import STAGE_ORDER, JobType


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("stage", choices=[t.value for t in STAGE_ORDER] + ["all"])
    parser.add_argument("--batch-size", type=int, default=None)
    parser.add_argument("--loop", action="store_true", help="repeat until no stage has work")
    args = parser.parse_args()

    stages = list(STAGE_ORDER) if args.stage == "all" else [JobType(args.stage)]
    exit_code = 0
    db = SessionLocal()
    try:
        while True:
            worked = False
            for job_type in stages:
                result = run_worker(db, job_type, batch_size=args.batch_size)
                print(f"{job_type.value}: {result}")
                if result.get("error"):
                    exit_code = 1
                worked = worked or bool(result.get("processed"))
            if not args.loop or not worked:
                break
        return exit_code
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
