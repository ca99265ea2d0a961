#!/usr/bin/env python
"""
Link sponsorships that have no sponsor account to the user whose email matches.

Usage:
    python scripts/backfill_sponsorship_sponsors.py [--apply]
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy import func

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.changebag.models import User
from app.changebag.modules.sponsorships.models import Sponsorship
from scripts._db_utils import database_url, script_session


def main() -> None:
    parser = argparse.ArgumentParser(description="Backfill sponsorships.sponsor_id by email.")
    parser.add_argument("--apply", action="store_true", help="Persist the links.")
    args = parser.parse_args()

    linked = 0
    unmatched = 0
    with script_session(database_url()) as s:
        orphans = s.query(Sponsorship).filter(Sponsorship.sponsor_id.is_(None)).order_by(Sponsorship.id).all()
        print(f"Found {len(orphans)} sponsorship(s) without a sponsor account")
        for sp in orphans:
            user = s.query(User).filter(func.lower(User.email) == sp.email.strip().lower()).one_or_none()
            if user is None:
                unmatched += 1
                continue
            sp.sponsor_id = user.id
            linked += 1
            print(f"sponsorship {sp.id} ({sp.organization_name}) -> user {user.id} <{user.email}>")
        if not args.apply:
            s.rollback()

    print(f"{'Linked' if args.apply else 'Would link'} {linked}; {unmatched} had no matching user.")


if __name__ == "__main__":
    main()
