#!/usr/bin/env python3
"""
Load PDB/UniProt alignment and residue mapping exports into the SQLite store.

Usage:
    python scripts/import_pdb_uniprot.py alignments.tsv residue_mappings.tsv
    PDB_DB_PATH=/data/pdb_uniprot.db python scripts/import_pdb_uniprot.py a.tsv m.tsv

Both files are tab-separated with a header row naming the table columns.
"""

import argparse
import os
import sys

# Run from the repository root: make backend modules importable
backend_dir = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "backend")
sys.path.insert(0, backend_dir)

from services.residue_store import DEFAULT_DB_PATH, PersistenceError, SqliteResidueStore  # noqa: E402


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("alignments", help="alignment TSV export")
    parser.add_argument("mappings", help="residue mapping TSV export")
    parser.add_argument("--db", default=os.getenv("PDB_DB_PATH", str(DEFAULT_DB_PATH)),
                        help="SQLite database path (default: $PDB_DB_PATH or backend/data/pdb_uniprot.db)")
    args = parser.parse_args(argv)

    try:
        counts = SqliteResidueStore(args.db).import_tables(args.alignments, args.mappings)
    except PersistenceError as e:
        print(f"❌ Import failed: {e}", file=sys.stderr)
        return 1

    for table, count in counts.items():
        print(f"  ✅ {table}: {count} rows")
    return 0


if __name__ == "__main__":
    sys.exit(main())
