# infosiga/reference/municipios.py
#
# Municipality reference table for São Paulo state and the enrichment join
# that adds IBGE code, official name and administrative region to incidents.
#
# Design decisions:
#   - The table is bundled as municipios_sp.csv (UTF-8, semicolon-delimited)
#     and regenerated by scripts/build_municipios.py from the IBGE registry.
#   - load_municipios() is cached per path: one load per process. The result
#     is a frozen wrapper and nothing in the package mutates its DataFrame.
#     Cleaning functions receive it as an argument.
#   - Infosiga vintages carry either the municipality name (upper case,
#     usually without diacritics) or an IBGE code. Names are matched through
#     normalize_municipio(); codes through their first 6 digits, since some
#     sources drop the 7th (check) digit.
#   - The table holds every municipality of the state. regiao_administrativa
#     is nullable there; a region carried by the incident row itself fills
#     the gaps (lookup first, source second).
#   - Unmatched rows keep null code and name. They are counted and reported
#     with warn(), never dropped.
#
# Invariants:
#   - Both join keys (normalized name, 6-digit code) are unique in the table;
#     JoinFanOut is raised on load otherwise.
#   - enrich_municipio() returns exactly one row per input row, in input order.
from __future__ import annotations

import functools
import unicodedata
from dataclasses import dataclass
from pathlib import Path

import polars as pl

from infosiga.log import warn
from infosiga.sources.load import SchemaMismatch

REFERENCE_CSV = Path(__file__).parent / "municipios_sp.csv"

REFERENCE_COLUMNS: tuple[str, ...] = ("municipio", "cod_ibge", "nome_municipio", "regiao_administrativa")

# Columns added to incidents by enrich_municipio().
ENRICHMENT_COLUMNS: tuple[str, ...] = ("cod_ibge", "regiao_administrativa", "nome_municipio")

# IBGE code of São Paulo state (first two digits of every municipality code).
UF_SAO_PAULO = "35"

_KEY = "_chave_municipio"
_ROW = "_linha"
_SOURCE_REGION = "_regiao_origem"


class JoinFanOut(Exception):
    """Raised when a lookup key matches more than one reference row."""


def normalize_municipio(name: str | None) -> str | None:
    """Upper-case, strip diacritics and collapse whitespace.

    >>> normalize_municipio("  São  José dos Campos ")
    'SAO JOSE DOS CAMPOS'
    """
    if name is None:
        return None
    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.upper().split())


def _code_key(column: str) -> pl.Expr:
    return pl.col(column).cast(pl.String).str.replace_all(r"\D", "").str.slice(0, 6)


@dataclass(frozen=True)
class Municipios:
    """Read-only municipality lookup table.

    Build it with load_municipios() or municipios_from_frame(); both validate
    key uniqueness.
    """

    table: pl.DataFrame

    def __len__(self) -> int:
        return len(self.table)

    def keyed_by_name(self) -> pl.DataFrame:
        """Enrichment columns keyed by the normalized municipality name."""
        keys = [normalize_municipio(name) for name in self.table["municipio"].to_list()]
        return self.table.select(list(ENRICHMENT_COLUMNS)).with_columns(pl.Series(_KEY, keys, dtype=pl.String))

    def keyed_by_code(self) -> pl.DataFrame:
        """Enrichment columns keyed by the 6-digit IBGE code prefix."""
        return self.table.select(list(ENRICHMENT_COLUMNS)).with_columns(_code_key("cod_ibge").alias(_KEY))


def municipios_from_frame(df: pl.DataFrame) -> Municipios:
    """Validate a reference DataFrame and wrap it.

    Raises:
        SchemaMismatch: if a reference column is missing or a code is not 7 digits.
        JoinFanOut:     if a normalized name or 6-digit code appears twice.
    """
    missing = [col for col in REFERENCE_COLUMNS if col not in df.columns]
    if missing:
        raise SchemaMismatch(f"Municipality reference is missing columns: {missing}")

    table = df.select([pl.col(col).cast(pl.String) for col in REFERENCE_COLUMNS])

    bad_codes = table.filter(~pl.col("cod_ibge").str.contains(r"^\d{7}$").fill_null(False))
    if not bad_codes.is_empty():
        raise SchemaMismatch(
            f"Municipality reference has invalid IBGE codes: {bad_codes['cod_ibge'].to_list()[:10]}"
        )

    municipios = Municipios(table)
    for label, keyed in (("name", municipios.keyed_by_name()), ("code", municipios.keyed_by_code())):
        duplicated = keyed.filter(pl.col(_KEY).is_duplicated())[_KEY].unique().sort().to_list()
        if duplicated:
            raise JoinFanOut(f"Municipality reference has duplicated {label} keys: {duplicated[:10]}")

    return municipios


@functools.cache
def load_municipios(path: Path | None = None) -> Municipios:
    """Load and validate a municipality reference table (cached).

    The bundled municipios_sp.csv is used when path is None.
    """
    df = pl.read_csv(path or REFERENCE_CSV, separator=";", infer_schema_length=0)
    return municipios_from_frame(df)


def enrich_municipio(df: pl.DataFrame, municipios: Municipios) -> pl.DataFrame:
    """Left-join municipality data onto incidents.

    Uses the IBGE code when the frame has a cod_ibge column, the municipality
    name otherwise. Existing enrichment columns are replaced, except that a
    source regiao_administrativa is kept where the lookup has no region.

    Raises:
        SchemaMismatch: if the frame has neither cod_ibge nor municipio.
        JoinFanOut:     if the join changed the number of rows.
    """
    indexed = df.with_row_index(_ROW)
    if "cod_ibge" in df.columns:
        lookup = municipios.keyed_by_code()
        keyed = indexed.with_columns(_code_key("cod_ibge").alias(_KEY))
    elif "municipio" in df.columns:
        lookup = municipios.keyed_by_name()
        names = df["municipio"].cast(pl.String).drop_nulls().unique().to_list()
        keys = pl.DataFrame(
            {"municipio": names, _KEY: [normalize_municipio(name) for name in names]},
            schema={"municipio": pl.String, _KEY: pl.String},
        )
        keyed = indexed.with_columns(pl.col("municipio").cast(pl.String)).join(keys, on="municipio", how="left")
    else:
        raise SchemaMismatch("Cannot enrich municipalities: neither 'cod_ibge' nor 'municipio' is present")

    if keyed.height != df.height:
        raise JoinFanOut(f"Municipality key derivation changed row count: {df.height} -> {keyed.height}")

    has_source_region = "regiao_administrativa" in keyed.columns
    if has_source_region:
        keyed = keyed.rename({"regiao_administrativa": _SOURCE_REGION})

    keyed = keyed.drop([col for col in ENRICHMENT_COLUMNS if col in keyed.columns])
    joined = keyed.join(lookup, on=_KEY, how="left")
    if joined.height != df.height:
        raise JoinFanOut(f"Municipality join changed row count: {df.height} -> {joined.height}")

    if has_source_region:
        joined = joined.with_columns(
            pl.coalesce("regiao_administrativa", pl.col(_SOURCE_REGION).cast(pl.String)).alias("regiao_administrativa")
        ).drop(_SOURCE_REGION)

    unmatched = joined.filter(pl.col(_KEY).is_not_null() & pl.col("nome_municipio").is_null())
    if not unmatched.is_empty():
        sample = unmatched[_KEY].unique().sort().to_list()[:5]
        warn(f"{unmatched.height:,} row(s) with no municipality match (e.g. {sample})")

    return joined.sort(_ROW).drop([_ROW, _KEY])


def build_municipios(
    ibge_df: pl.DataFrame,
    regioes_df: pl.DataFrame,
    uf_code: str = UF_SAO_PAULO,
) -> pl.DataFrame:
    """Build the reference table from the IBGE registry and a region table.

    Args:
        ibge_df:    IBGE municipalities with columns cod_ibge (7 digits) and
                    nome_municipio; may cover every state.
        regioes_df: Columns municipio and regiao_administrativa, with any
                    spelling of the municipality name.
        uf_code:    Two-digit IBGE state code to keep.

    Returns:
        DataFrame with REFERENCE_COLUMNS, sorted by municipio. Municipalities
        absent from regioes_df get a null region.
    """
    state = (
        ibge_df.select(
            pl.col("cod_ibge").cast(pl.String),
            pl.col("nome_municipio").cast(pl.String),
        )
        .filter(pl.col("cod_ibge").str.starts_with(uf_code))
    )
    state = state.with_columns(
        pl.Series("municipio", [normalize_municipio(n) for n in state["nome_municipio"].to_list()], dtype=pl.String)
    )

    regioes = pl.DataFrame(
        {
            "municipio": [normalize_municipio(n) for n in regioes_df["municipio"].cast(pl.String).to_list()],
            "regiao_administrativa": regioes_df["regiao_administrativa"].cast(pl.String),
        },
        schema={"municipio": pl.String, "regiao_administrativa": pl.String},
    ).unique(subset=["municipio"], keep="first", maintain_order=True)

    return state.join(regioes, on="municipio", how="left").select(list(REFERENCE_COLUMNS)).sort("municipio")
