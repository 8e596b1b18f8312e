# infosiga/sources/load.py
#
# Locate and parse the Infosiga CSVs of one dataset kind into a single
# DataFrame.
#
# Design decisions:
#   - Infosiga CSVs use semicolons as separators and Latin-1 encoding, the
#     same convention as the other Brazilian government extracts.
#   - Every column is read as a string (infer_schema_length=0). Type coercion
#     happens in the cleaning step, per column.
#   - The extract ships one file per period (sinistros_2015-2021.csv,
#     sinistros_2022.csv, ...). Files are read in name order and stacked.
#   - Some releases nest the CSVs under dados_infosiga/; that folder is used
#     when present.
#
# Invariants:
#   - All stacked files share the exact same header (names and order).
#   - No partial result: any unreadable or mismatched file aborts the load.
from __future__ import annotations

from pathlib import Path

import polars as pl

from infosiga.kinds import DatasetKind
from infosiga.log import log

EXTRACTED_SUBDIR = "dados_infosiga"


class NoFilesFound(Exception):
    """Raised when no file in the directory matches the dataset prefix."""


class SchemaMismatch(Exception):
    """Raised when files (or a table) do not carry the expected columns."""


def find_files(kind: DatasetKind | str, path: Path) -> list[Path]:
    """Return the files of a dataset kind under path, sorted by name.

    Raises:
        NoFilesFound: if the directory does not exist or has no matching file.
    """
    kind = DatasetKind.parse(kind)
    path = Path(path)
    if (path / EXTRACTED_SUBDIR).is_dir():
        path = path / EXTRACTED_SUBDIR

    if not path.is_dir():
        raise NoFilesFound(f"Directory not found: {path}")

    files = sorted(p for p in path.iterdir() if p.is_file() and p.name.startswith(kind.prefix))
    if not files:
        raise NoFilesFound(f"No '{kind.prefix}*' files found in {path}")
    return files


def read_infosiga_csv(csv_path: Path) -> pl.DataFrame:
    """Parse one Infosiga CSV (Latin-1, semicolon-delimited) with string columns."""
    raw = pl.read_csv(
        csv_path,
        separator=";",
        encoding="latin1",
        infer_schema_length=0,
        null_values=[""],
        truncate_ragged_lines=True,
    )
    return raw.rename({col: col.strip() for col in raw.columns})


def load_infosiga(kind: DatasetKind | str, path: Path) -> pl.DataFrame:
    """Read and stack every file of one dataset kind found under path.

    Args:
        kind: Dataset to load (sinistros, pessoas or veiculos).
        path: Directory holding the extracted CSVs.

    Returns:
        DataFrame with one string column per source header field.

    Raises:
        NoFilesFound:   if no file matches the dataset prefix.
        SchemaMismatch: if the files do not share the same header.
    """
    kind = DatasetKind.parse(kind)
    files = find_files(kind, path)

    frames: list[pl.DataFrame] = []
    reference_columns: list[str] | None = None
    for csv_path in files:
        frame = read_infosiga_csv(csv_path)
        if reference_columns is None:
            reference_columns = frame.columns
        elif frame.columns != reference_columns:
            missing = sorted(set(reference_columns) - set(frame.columns))
            extra = sorted(set(frame.columns) - set(reference_columns))
            raise SchemaMismatch(
                f"{csv_path.name} does not match the header of {files[0].name} "
                f"(missing: {missing}, unexpected: {extra}, same names in another order: "
                f"{not missing and not extra})"
            )
        frames.append(frame)

    df = pl.concat(frames, how="vertical")
    log(f"  {kind.value}: {len(df):,} rows loaded from {len(files)} file(s)")
    return df
