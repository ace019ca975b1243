#!/usr/bin/env python3
"""Start a hunter scan for a project.

Usage:
    python scripts/start_scan.py <project_uuid> --platforms hackernews reddit --terms "Acme"

Prints the scan id. Exits 0 on success, 1 on failure.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from uuid import UUID

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.db.session import SessionLocal
from app.pipeline.exceptions import PipelineError
from app.pipeline.scans import create_scan


def main() -> int:
    parser = argparse.ArgumentParser(description="Start a hunter scan")
    parser.add_argument("project_id", type=UUID)
    parser.add_argument("--platforms", nargs="+", default=["hackernews", "reddit"])
    parser.add_argument("--terms", nargs="+", required=True)
    parser.add_argument("--triggered-by", default="script")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        scan = create_scan(
            db,
            project_id=args.project_id,
            platforms=args.platforms,
            search_terms=args.terms,
            triggered_by=args.triggered_by,
        )
        print(f"scan_id={scan.id} platforms={','.join(scan.platforms)}")
        return 0
    except (PipelineError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
