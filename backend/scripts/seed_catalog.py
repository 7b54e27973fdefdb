"""CLI script to load a JSON catalog of courses and assignments into the backend DB.
Usage: python scripts/seed_catalog.py [--file PATH] [--dry-run]
"""
import sys
import argparse
import json
import pathlib
from typing import Optional
# Ensure `backend/` is on sys.path so `portal` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from portal.database import engine, create_db_and_tables
from portal.services import ImportService
from portal.store import SQLDocumentStore

DEFAULT_FILE = ROOT / 'data' / 'sample_catalog.json'


def main(path: Optional[pathlib.Path] = None, dry_run: bool = False):
    """Validate the catalog file and write its documents.

    Results are printed to stdout for a quick CLI feedback loop.
    """
    path = path or DEFAULT_FILE
    if not path.exists():
        print(f'Catalog file not found at {path}')
        return 1
    data = json.loads(path.read_text(encoding='utf-8'))
    create_db_and_tables()
    with Session(engine) as session:
        result = ImportService(SQLDocumentStore(session)).import_catalog(data, dry_run=dry_run)
    for err in result['errors']:
        print(f"Skipped {err['collection']}/{err['id']}: {err['error']}")
    verb = 'Validated' if dry_run else 'Imported'
    print(f"{verb} {result['created']} documents from {path}")
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--file', type=pathlib.Path, help='Catalog JSON file to import')
    parser.add_argument('--dry-run', action='store_true', help='Validate only, write nothing')
    args = parser.parse_args()
    sys.exit(main(args.file, dry_run=args.dry_run))
