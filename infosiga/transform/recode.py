# infosiga/transform/recode.py
#
# Generic building blocks of the cleaning step: categorical recoding, type
# coercion, unmapped-value audit and the final projection.
#
# Design decisions:
#   - Every helper returns a Polars expression named after its output column,
#     so a cleaner is a list of expressions passed to with_columns(). No
#     Python-level row iteration.
#   - A RecodeRule is data: the raw->canonical mapping plus the policy for
#     values outside it. The "NAO DISPONIVEL" sentinel is added to every rule
#     and always becomes null.
#   - Closed rules (passthrough=False) turn unknown values into null. Those
#     values are surfaced by find_unmapped() before recoding; they are never
#     coerced to a canonical value.
#   - Input columns are cast to String first, so the helpers work on raw
#     loader output (all strings) and on hand-built frames alike.
#
# Invariants:
#   - No helper changes the number of rows.
#   - recode() with a passthrough rule is idempotent on its own output.
from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

import polars as pl

SENTINEL = "NAO DISPONIVEL"

DATE_FORMAT = "%d/%m/%Y"


@dataclass(frozen=True)
class RecodeRule:
    """Categorical map for one column.

    Attributes:
        mapping:     raw value -> canonical value (None means absent).
        passthrough: keep raw values missing from the mapping instead of
                     nulling them.
    """

    mapping: Mapping[str, str | None] = field(default_factory=dict)
    passthrough: bool = False

    def full_mapping(self) -> dict[str, str | None]:
        return {**self.mapping, SENTINEL: None}

    @property
    def known_values(self) -> frozenset[str]:
        return frozenset(self.mapping) | {SENTINEL}


@dataclass(frozen=True)
class Prefixed:
    """Every column whose name starts with prefix, in frame order."""

    prefix: str

    def expand(self, columns: Iterable[str]) -> list[str]:
        return [col for col in columns if col.startswith(self.prefix)]


@dataclass(frozen=True)
class UnmappedCategory:
    """A raw value a closed rule does not know, with its row count."""

    column: str
    value: str
    count: int


def recode(column: str, rule: RecodeRule, alias: str | None = None) -> pl.Expr:
    """Apply a RecodeRule to a column."""
    source = pl.col(column).cast(pl.String)
    default = source if rule.passthrough else pl.lit(None, dtype=pl.String)
    return source.replace_strict(rule.full_mapping(), default=default, return_dtype=pl.String).alias(
        alias or column
    )


def to_date(column: str, fmt: str = DATE_FORMAT) -> pl.Expr:
    """Parse day/month/year strings; malformed dates become null."""
    return pl.col(column).cast(pl.String).str.strip_chars().str.to_date(fmt, strict=False).alias(column)


def to_time(column: str) -> pl.Expr:
    """Parse HH:MM or HH:MM:SS strings; anything else becomes null."""
    text = pl.col(column).cast(pl.String).str.strip_chars()
    return pl.coalesce(
        text.str.to_time("%H:%M:%S", strict=False),
        text.str.to_time("%H:%M", strict=False),
    ).alias(column)


def _numeric_text(column: str) -> pl.Expr:
    return pl.col(column).cast(pl.String).str.strip_chars().str.replace(",", ".", literal=True)


def _integral(text: pl.Expr) -> pl.Expr:
    number = text.cast(pl.Float64, strict=False)
    return (
        pl.when(number == number.floor())
        .then(number.cast(pl.Int64, strict=False))
        .otherwise(pl.lit(None, dtype=pl.Int64))
    )


def _is_absent(column: str) -> pl.Expr:
    text = pl.col(column).cast(pl.String).str.strip_chars()
    return text.is_null() | (text == "") | (text == SENTINEL)


def to_float(column: str) -> pl.Expr:
    """Parse numbers written with either decimal mark; invalid values become null."""
    return _numeric_text(column).cast(pl.Float64, strict=False).alias(column)


def to_int(column: str) -> pl.Expr:
    """Parse integers (a trailing ",0" or ".0" is accepted).

    Non-numeric and fractional values ("10,5", "1.234") become null.
    """
    return _integral(_numeric_text(column)).alias(column)


def to_count(column: str) -> pl.Expr:
    """Integer count column: absent (null, empty or sentinel) -> 0, invalid -> null."""
    return (
        pl.when(_is_absent(column))
        .then(pl.lit(0, dtype=pl.Int64))
        .otherwise(_integral(_numeric_text(column)))
        .alias(column)
    )


def to_flag(column: str, marker: str = "S") -> pl.Expr:
    """Single-character flag to a 0/1 indicator: marker -> 1, missing -> 0, other -> null."""
    text = pl.col(column).cast(pl.String).str.strip_chars()
    return (
        pl.when(text == marker)
        .then(pl.lit(1, dtype=pl.Int64))
        .when(text.is_null() | (text == ""))
        .then(pl.lit(0, dtype=pl.Int64))
        .otherwise(pl.lit(None, dtype=pl.Int64))
        .alias(column)
    )


def sentence_case(expr: pl.Expr) -> pl.Expr:
    """'VERDE ESCURO' -> 'Verde escuro'."""
    return pl.concat_str(
        [expr.str.slice(0, 1).str.to_uppercase(), expr.str.slice(1).str.to_lowercase()]
    )


def ordered_category(column: str, levels: Sequence[str]) -> pl.Expr:
    """Cast to an ordered Enum; values outside levels become null."""
    text = pl.col(column).cast(pl.String)
    return (
        pl.when(text.is_in(list(levels)))
        .then(text)
        .otherwise(pl.lit(None, dtype=pl.String))
        .cast(pl.Enum(list(levels)))
        .alias(column)
    )


def _count_values(df: pl.DataFrame, column: str) -> list[UnmappedCategory]:
    counts = (
        df.select(pl.col(column).cast(pl.String).alias("valor"))
        .group_by("valor")
        .agg(pl.len().alias("n"))
        .sort(["n", "valor"], descending=[True, False])
    )
    return [UnmappedCategory(column, row["valor"], row["n"]) for row in counts.iter_rows(named=True)]


def find_unmapped(df: pl.DataFrame, column: str, known: Iterable[str]) -> list[UnmappedCategory]:
    """Count the non-null values of a column that are not in known.

    Returns an empty list when the column is absent. Results are sorted by
    descending count, then value.
    """
    if column not in df.columns:
        return []
    text = pl.col(column).cast(pl.String)
    return _count_values(df.filter(text.is_not_null() & ~text.is_in(sorted(known))), column)


def find_non_numeric(df: pl.DataFrame, column: str) -> list[UnmappedCategory]:
    """Count the values of a count column that to_count() turns into null.

    Absent values (null, empty, sentinel) count as zero and are not reported.
    """
    if column not in df.columns:
        return []
    invalid = ~_is_absent(column) & _integral(_numeric_text(column)).is_null()
    return _count_values(df.filter(invalid), column)


def project(df: pl.DataFrame, projection: Sequence[str | Prefixed]) -> pl.DataFrame:
    """Select the projection in order, expanding Prefixed entries."""
    columns: list[str] = []
    for entry in projection:
        if isinstance(entry, Prefixed):
            columns.extend(entry.expand(df.columns))
        else:
            columns.append(entry)
    return df.select(columns)
