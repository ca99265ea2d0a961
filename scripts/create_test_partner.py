#!/usr/bin/env python
"""
Create (or show) an API partner for exercising /api/partner/* locally.

Usage:
    python scripts/create_test_partner.py
    python scripts/create_test_partner.py --name "Cafe Bloom" --email ops@cafebloom.in

Environment:
    DATABASE_URL: database connection string
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.changebag.modules.partners.models import ApiPartner
from app.changebag.modules.partners.service import create_partner
from scripts._db_utils import database_url, script_session


def main() -> None:
    parser = argparse.ArgumentParser(description="Create an API partner and print its key.")
    parser.add_argument("--name", default="Test Business")
    parser.add_argument("--email", default="test@example.com")
    parser.add_argument("--contact", default="Test Contact")
    args = parser.parse_args()

    with script_session(database_url()) as s:
        partner = s.query(ApiPartner).filter(ApiPartner.business_name == args.name).one_or_none()
        if partner is not None:
            print("Partner already exists:")
        else:
            partner = create_partner(
                s,
                {"businessName": args.name, "businessEmail": args.email, "contactName": args.contact},
                None,
            )
            print("Partner created:")
        print(f"  Business name: {partner.business_name}")
        print(f"  API key:       {partner.api_key}")
        print(f"  Status:        {'active' if partner.is_active else 'inactive'}")


if __name__ == "__main__":
    main()
