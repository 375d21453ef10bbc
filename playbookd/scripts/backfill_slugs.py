"""
Create missing slug mappings for coaches and slugs for athletes.

    python -m playbookd.scripts.backfill_slugs [--dry-run]
"""
import argparse

from playbookd.services.maintenance import backfill_coach_slugs, migrate_athlete_slugs
from playbookd.utils.logger import configure_logging


def main(argv=None):
    parser = argparse.ArgumentParser(description="Backfill coach and athlete slugs")
    parser.add_argument("--dry-run", action="store_true", help="report changes without writing")
    args = parser.parse_args(argv)

    configure_logging()
    coaches = backfill_coach_slugs(dry_run=args.dry_run)
    athletes = migrate_athlete_slugs(dry_run=args.dry_run)
    print(f"[slugs] coaches: scanned={coaches['scanned']} created={coaches['created']} mirrored={coaches['mirrored']}")
    print(f"[slugs] athletes: updated={athletes['updated']}")
    return {"coaches": coaches, "athletes": athletes}


if __name__ == "__main__":
    main()
