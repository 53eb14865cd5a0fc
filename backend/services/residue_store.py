"""
PDB/UniProt alignment and residue mapping storage.

ResidueStore is the interface the query service depends on; SqliteResidueStore
implements it on top of a local SQLite database and bulk-imports the
tab-separated alignment and residue mapping exports.
"""
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, List, Union

import pandas as pd

from schemas.pdb_data import Alignment, ResidueMapping
from services.logger import log_info

DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "pdb_uniprot.db"

ALIGNMENT_TABLE = "pdb_uniprot_alignment"
MAPPING_TABLE = "pdb_uniprot_residue_mapping"

ALIGNMENT_COLUMNS = [
    "alignment_id", "pdb_id", "chain", "uniprot_id",
    "pdb_from", "pdb_to", "uniprot_from", "uniprot_to",
    "evalue", "identity", "identp",
    "uniprot_align", "pdb_align", "midline_align",
]
MAPPING_COLUMNS = [
    "alignment_id", "pdb_position", "pdb_insertion_code", "uniprot_position", "match",
]

# SQLite caps bound parameters per statement; stay well below the limit
MAX_BIND_PARAMS = 500


class PersistenceError(Exception):
    """Underlying data access failed"""


class ResidueStore(ABC):
    """
    Read access to alignments and residue mappings.
    """

    @abstractmethod
    def list_alignments(self, uniprot_id: str) -> List[Alignment]:
        pass

    @abstractmethod
    def count_alignments(self, uniprot_id: str) -> int:
        pass

    @abstractmethod
    def map_positions(self, alignment_id: int, positions: Iterable[int]) -> Dict[int, ResidueMapping]:
        """Residue mappings of one alignment for the given UniProt positions, keyed on position."""
        pass


class SqliteResidueStore(ResidueStore):
    """SQLite backed alignment/residue mapping store"""

    def __init__(self, db_path: Union[str, Path, None] = None):
        self.db_path = str(db_path) if db_path else str(DEFAULT_DB_PATH)
        try:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create database directory for {self.db_path}: {e}") from e
        self._init_database()

    @contextmanager
    def _connection(self):
        """Context manager for database connections"""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self):
        """Initialize database schema"""
        with self._connection() as conn:
            cursor = conn.cursor()

            cursor.execute(f'''
                CREATE TABLE IF NOT EXISTS {ALIGNMENT_TABLE} (
                    alignment_id INTEGER PRIMARY KEY,
                    pdb_id TEXT NOT NULL,
                    chain TEXT NOT NULL,
                    uniprot_id TEXT NOT NULL,
                    pdb_from INTEGER NOT NULL,
                    pdb_to INTEGER NOT NULL,
                    uniprot_from INTEGER NOT NULL,
                    uniprot_to INTEGER NOT NULL,
                    evalue REAL,
                    identity REAL,
                    identp REAL,
                    uniprot_align TEXT,
                    pdb_align TEXT,
                    midline_align TEXT
                )
            ''')

            cursor.execute(f'''
                CREATE TABLE IF NOT EXISTS {MAPPING_TABLE} (
                    alignment_id INTEGER NOT NULL,
                    pdb_position INTEGER NOT NULL,
                    pdb_insertion_code TEXT,
                    uniprot_position INTEGER NOT NULL,
                    match TEXT,
                    FOREIGN KEY (alignment_id) REFERENCES {ALIGNMENT_TABLE}(alignment_id)
                )
            ''')

            cursor.execute(f'CREATE INDEX IF NOT EXISTS idx_alignment_uniprot ON {ALIGNMENT_TABLE}(uniprot_id)')
            cursor.execute(f'''
                CREATE INDEX IF NOT EXISTS idx_mapping_alignment_position
                ON {MAPPING_TABLE}(alignment_id, uniprot_position)
            ''')

    @staticmethod
    def _row_to_alignment(row: sqlite3.Row) -> Alignment:
        return Alignment(
            alignment_id=row["alignment_id"],
            pdb_id=row["pdb_id"],
            chain=row["chain"],
            uniprot_id=row["uniprot_id"],
            pdb_from=row["pdb_from"],
            pdb_to=row["pdb_to"],
            uniprot_from=row["uniprot_from"],
            uniprot_to=row["uniprot_to"],
            e_value=row["evalue"],
            identity_perc=row["identp"],
            uniprot_align=row["uniprot_align"] or "",
            pdb_align=row["pdb_align"] or "",
            midline_align=row["midline_align"] or "",
        )

    def list_alignments(self, uniprot_id: str) -> List[Alignment]:
        with self._connection() as conn:
            rows = conn.execute(
                f'SELECT * FROM {ALIGNMENT_TABLE} WHERE uniprot_id = ? ORDER BY alignment_id',
                (uniprot_id,),
            ).fetchall()
        return [self._row_to_alignment(row) for row in rows]

    def count_alignments(self, uniprot_id: str) -> int:
        with self._connection() as conn:
            row = conn.execute(
                f'SELECT COUNT(*) FROM {ALIGNMENT_TABLE} WHERE uniprot_id = ?',
                (uniprot_id,),
            ).fetchone()
        return row[0]

    def map_positions(self, alignment_id: int, positions: Iterable[int]) -> Dict[int, ResidueMapping]:
        positions = sorted(set(positions))
        mappings: Dict[int, ResidueMapping] = {}

        with self._connection() as conn:
            for start in range(0, len(positions), MAX_BIND_PARAMS):
                chunk = positions[start:start + MAX_BIND_PARAMS]
                placeholders = ",".join("?" * len(chunk))
                rows = conn.execute(
                    f'''
                    SELECT alignment_id, uniprot_position, pdb_position, pdb_insertion_code
                    FROM {MAPPING_TABLE}
                    WHERE alignment_id = ? AND uniprot_position IN ({placeholders})
                    ''',
                    (alignment_id, *chunk),
                ).fetchall()

                for row in rows:
                    mappings[row["uniprot_position"]] = ResidueMapping(
                        alignment_id=row["alignment_id"],
                        uniprot_pos=row["uniprot_position"],
                        pdb_pos=row["pdb_position"],
                        insertion=row["pdb_insertion_code"] or "",
                    )

        return mappings

    def import_frames(self, alignments: pd.DataFrame, mappings: pd.DataFrame) -> Dict[str, int]:
        """
        Append alignment and residue mapping rows.

        Both frames must carry the table columns (extra columns are ignored).

        Returns:
            Row counts per table
        """
        missing = [c for c in ALIGNMENT_COLUMNS if c not in alignments.columns]
        missing += [c for c in MAPPING_COLUMNS if c not in mappings.columns]
        if missing:
            raise PersistenceError(f"Missing columns in import: {', '.join(sorted(set(missing)))}")

        alignments = alignments[ALIGNMENT_COLUMNS]
        mappings = mappings[MAPPING_COLUMNS].copy()
        mappings["pdb_insertion_code"] = mappings["pdb_insertion_code"].fillna("").astype(str)

        with self._connection() as conn:
            try:
                alignments.to_sql(ALIGNMENT_TABLE, conn, if_exists="append", index=False)
                mappings.to_sql(MAPPING_TABLE, conn, if_exists="append", index=False)
            except (ValueError, pd.errors.DatabaseError) as e:
                raise PersistenceError(f"Import failed: {e}") from e

        counts = {ALIGNMENT_TABLE: len(alignments), MAPPING_TABLE: len(mappings)}
        log_info("pdb_uniprot_import", f"Imported {counts[ALIGNMENT_TABLE]} alignments and "
                 f"{counts[MAPPING_TABLE]} residue mappings", stage="persistence", **counts)
        return counts

    def import_tables(self, alignment_path: Union[str, Path], mapping_path: Union[str, Path]) -> Dict[str, int]:
        """Import the tab-separated alignment and residue mapping exports."""
        try:
            alignments = pd.read_csv(alignment_path, sep="\t", keep_default_na=False, na_values=[""])
            mappings = pd.read_csv(mapping_path, sep="\t", keep_default_na=False, na_values=[""],
                                   dtype={"pdb_insertion_code": str})
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read import files: {e}") from e

        return self.import_frames(alignments, mappings)
