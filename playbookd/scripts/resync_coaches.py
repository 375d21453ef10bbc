"""
Rebuild the Browse Coaches listing from the canonical profiles.

    python -m playbookd.scripts.resync_coaches            # re-sync everyone
    python -m playbookd.scripts.resync_coaches --validate # only fix drifted entries
"""
import argparse

from playbookd.services.maintenance import resync_all_coaches
from playbookd.services.visibility import validate_and_fix_visibility
from playbookd.utils.logger import configure_logging


def main(argv=None):
    parser = argparse.ArgumentParser(description="Re-sync coach listing entries")
    parser.add_argument("--validate", action="store_true", help="run validate-and-fix instead of a full re-sync")
    parser.add_argument("--dry-run", action="store_true", help="with --validate, report without writing")
    args = parser.parse_args(argv)

    configure_logging()
    if args.validate:
        report = validate_and_fix_visibility(dry_run=args.dry_run)
        for d in report["details"]:
            print(f"[resync] {d['uid']}: {d['action']} {', '.join(d.get('fields', []))}".rstrip())
        print(f"[resync] scanned={report['scanned']} fixed={report['fixed']} removed={report['removed']} errors={report['errors']}")
        return report

    report = resync_all_coaches()
    for uid in report["failed"]:
        print(f"[resync] failed: {uid}")
    print(f"[resync] total={report['total']} synced={report['synced']}")
    return report


if __name__ == "__main__":
    main()
