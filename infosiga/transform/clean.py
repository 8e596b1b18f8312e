# infosiga/transform/clean.py
#
# Entry point of the cleaning step: clean_infosiga(df, kind).
#
# Design decisions:
#   - Dispatch is a dict DatasetKind -> cleaner. Structural checks (aliases,
#     required columns) and the unmapped-category audit are shared and driven
#     by rules.RULESETS.
#   - The municipality table is injected. When the caller passes none, the
#     bundled table is loaded once (load_municipios is cached) and only for
#     sinistros.
#   - Unmapped categories are logged with warn(), not raised: the affected
#     values become null and every other row is still usable.
#
# Invariants:
#   - Output row count == input row count.
#   - Output columns == the kind's projection, in order.
#   - Missing required columns raise SchemaMismatch before any recoding.
from __future__ import annotations

from collections.abc import Callable

import polars as pl

from infosiga.kinds import DatasetKind
from infosiga.log import log, warn
from infosiga.reference.municipios import Municipios, load_municipios
from infosiga.sources.load import SchemaMismatch
from infosiga.transform.pessoas import clean_pessoas
from infosiga.transform.recode import Prefixed, UnmappedCategory, find_non_numeric, find_unmapped
from infosiga.transform.rules import RULESETS, KindRules
from infosiga.transform.sinistros import clean_sinistros
from infosiga.transform.veiculos import clean_veiculos

_CLEANERS: dict[DatasetKind, Callable[[pl.DataFrame, Municipios | None], pl.DataFrame]] = {
    DatasetKind.SINISTROS: lambda df, municipios: clean_sinistros(
        df, municipios if municipios is not None else load_municipios()
    ),
    DatasetKind.PESSOAS: lambda df, _municipios: clean_pessoas(df),
    DatasetKind.VEICULOS: lambda df, _municipios: clean_veiculos(df),
}


def reconcile_columns(df: pl.DataFrame, kind_rules: KindRules) -> pl.DataFrame:
    """Normalise header case, apply aliases and check required columns.

    Raises:
        SchemaMismatch: if a required column (or every column of a required
            group) is missing, or if two headers differ only in case or
            surrounding spaces.
    """
    normalised: dict[str, list[str]] = {}
    for col in df.columns:
        normalised.setdefault(col.strip().lower(), []).append(col)
    collisions = sorted(cols for cols in normalised.values() if len(cols) > 1)
    if collisions:
        raise SchemaMismatch(f"Columns collide after normalising case: {collisions}")

    lowered = {col: col.strip().lower() for col in df.columns if col != col.strip().lower()}
    if lowered:
        df = df.rename(lowered)

    renames: dict[str, str] = {}
    for canonical, variants in kind_rules.aliases.items():
        if canonical in df.columns:
            continue
        found = next((variant for variant in variants if variant in df.columns), None)
        if found is not None:
            renames[found] = canonical
    if renames:
        df = df.rename(renames)

    missing = [col for col in kind_rules.required if col not in df.columns]
    missing += [" | ".join(group) for group in kind_rules.required_any if not any(c in df.columns for c in group)]
    if missing:
        raise SchemaMismatch(f"Missing required columns: {missing}")
    return df


def unmapped_categories(df: pl.DataFrame, kind: DatasetKind | str) -> list[UnmappedCategory]:
    """List raw values that closed rules of this kind do not recognise.

    Count columns are checked too: values that are neither absent nor an
    integer are listed, since to_count() turns them into null.
    df must already carry canonical column names (see reconcile_columns).
    """
    kind_rules = RULESETS[DatasetKind.parse(kind)]
    found: list[UnmappedCategory] = []
    for target, known in kind_rules.audits:
        columns = target.expand(df.columns) if isinstance(target, Prefixed) else [target]
        for column in columns:
            found.extend(find_unmapped(df, column, known))
    for target in kind_rules.counts:
        columns = target.expand(df.columns) if isinstance(target, Prefixed) else [target]
        for column in columns:
            found.extend(find_non_numeric(df, column))
    return found


def clean_infosiga(
    df: pl.DataFrame,
    kind: DatasetKind | str,
    municipios: Municipios | None = None,
) -> pl.DataFrame:
    """Clean and standardise a raw Infosiga DataFrame.

    Args:
        df:         Raw frame as returned by load_infosiga().
        kind:       Dataset kind of df.
        municipios: Municipality reference for sinistros; the bundled table is
                    used when None.

    Returns:
        Cleaned frame with the kind's fixed projection.

    Raises:
        SchemaMismatch: if required columns are missing.
        JoinFanOut:     if the municipality join would duplicate rows.
    """
    kind = DatasetKind.parse(kind)
    df = reconcile_columns(df, RULESETS[kind])

    for item in unmapped_categories(df, kind):
        warn(f"{kind.value}.{item.column}: unmapped value {item.value!r} in {item.count:,} row(s) set to null")

    cleaned = _CLEANERS[kind](df, municipios)
    log(f"  {kind.value}: {cleaned.height:,} rows cleaned, {cleaned.width} columns")
    return cleaned
