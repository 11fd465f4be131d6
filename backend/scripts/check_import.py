"""Validate an ATOL CSV export before uploading it.

Parses and rule-checks the file offline. With --diff, also loads the current
state from DATABASE_URL and prints what the import would create, update and
delete. Nothing is written to the database.

Run: python scripts/check_import.py export.csv [--diff]
"""
import argparse
import asyncio
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.config import settings
from app.rules.import_rules import split_issues, validate_business_rules
from app.services.csv_codec import CSVParseError, parse_csv
from app.services.import_session import prepare_import
from app.services.taxonomy_repo import SqlTaxonomyRepository

KINDS = ("universes", "phyla", "families", "groups", "tasks")


def _print_issues(label: str, issues) -> None:
    for issue in issues:
        where = f"row {issue.row}" if issue.row else "file"
        print(f"  [{label}] {where} {issue.field or ''}: {issue.message}")


async def diff_against_db(text: str) -> int:
    engine = create_async_engine(settings.DATABASE_URL)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async with SessionLocal() as db:
        session = await prepare_import(text, SqlTaxonomyRepository(db))

    await engine.dispose()

    print(f"{'':10} {'create':>7} {'update':>7}")
    for kind in KINDS:
        creates = getattr(session.changes.creates, kind)
        updates = getattr(session.changes.updates, kind)
        print(f"{kind:10} {creates:>7} {updates:>7}")

    if session.tasks_to_delete:
        print(f"\n{len(session.tasks_to_delete)} task(s) would be deleted:")
        for task in session.tasks_to_delete:
            print(f"  {task.base_code}  {task.title}  [{task.current_status}] ({task.universe_name})")
    return 0 if session.is_valid else 1


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("path")
    parser.add_argument("--diff", action="store_true", help="compare against the database")
    args = parser.parse_args()

    with open(args.path, encoding="utf-8-sig") as fh:
        text = fh.read()

    try:
        rows = parse_csv(text)
    except CSVParseError as exc:
        print(f"Parse error: {exc}")
        return 2

    errors, warnings = split_issues(validate_business_rules(rows))
    print(f"{len(rows)} rows, {len(errors)} errors, {len(warnings)} warnings")
    _print_issues("error", errors)
    _print_issues("warning", warnings)

    if args.diff:
        return asyncio.run(diff_against_db(text))
    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(main())
