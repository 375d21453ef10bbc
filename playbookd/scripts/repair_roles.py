"""
Normalize legacy user roles and reset permissions to the role defaults.

    python -m playbookd.scripts.repair_roles --dry-run
    python -m playbookd.scripts.repair_roles
"""
import argparse

from playbookd.services.maintenance import repair_roles
from playbookd.utils.logger import configure_logging


def main(argv=None):
    parser = argparse.ArgumentParser(description="Repair legacy user roles")
    parser.add_argument("--dry-run", action="store_true", help="report changes without writing")
    args = parser.parse_args(argv)

    configure_logging()
    report = repair_roles(dry_run=args.dry_run)
    for change in report["changes"]:
        print(f"[roles] {change['email'] or change['uid']}: {change['from']!r} -> {change['to']!r}")
    print(f"[roles] scanned={report['scanned']} updated={report['updated']} dry_run={args.dry_run}")
    return report


if __name__ == "__main__":
    main()
