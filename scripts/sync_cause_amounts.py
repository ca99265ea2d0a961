#!/usr/bin/env python
"""
Recompute causes.current_amount from funded sponsorships.

Usage:
    python scripts/sync_cause_amounts.py            # dry run, prints drift
    python scripts/sync_cause_amounts.py --apply    # writes corrected amounts
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.changebag.audit import record_event
from app.changebag.modules.causes.models import Cause
from app.changebag.modules.causes.service import recompute_cause_amount
from scripts._db_utils import database_url, script_session


def main() -> None:
    parser = argparse.ArgumentParser(description="Recompute cause amounts from sponsorships.")
    parser.add_argument("--apply", action="store_true", help="Persist the corrected amounts.")
    args = parser.parse_args()

    drifted = 0
    with script_session(database_url()) as s:
        for cause in s.query(Cause).order_by(Cause.id).all():
            old = float(cause.current_amount or 0)
            new = recompute_cause_amount(s, cause)
            if old == new:
                continue
            drifted += 1
            print(f"cause {cause.id} '{cause.title}': {old:.2f} -> {new:.2f}")
            if args.apply:
                record_event(
                    s,
                    actor=None,
                    action="cause.amount_resync",
                    entity_type="Cause",
                    entity_id=cause.id,
                    metadata={"old": old, "new": new},
                )
        if not args.apply:
            s.rollback()

    verb = "Updated" if args.apply else "Would update"
    print(f"{verb} {drifted} cause(s).")


if __name__ == "__main__":
    main()
