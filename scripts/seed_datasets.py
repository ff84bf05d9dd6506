"""
Seed the irradiance dataset catalog from the static registry.
"""

from __future__ import annotations

import argparse
import json

from app.registry import list_definitions, seed_registry
from db.session import SessionLocal


def main() -> int:
    parser = argparse.ArgumentParser(description="Upsert the dataset registry into the irradiance store.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the catalog without writing to the database.",
    )
    args = parser.parse_args()

    if args.dry_run:
        payload = [
            {"code": definition.code, "name": definition.name, "provider": definition.provider}
            for definition in list_definitions()
        ]
        print(json.dumps(payload, indent=2))
        return 0

    with SessionLocal() as db:
        created = seed_registry(db)
        db.commit()

    print(json.dumps({"created": created, "total": len(list_definitions())}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
