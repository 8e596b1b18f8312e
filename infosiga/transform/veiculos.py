# infosiga/transform/veiculos.py
#
# Cleaning rules for the vehicles (veiculos) dataset.
from __future__ import annotations

import polars as pl

from infosiga.transform import rules
from infosiga.transform.recode import project, recode, sentence_case, to_int


def clean_cor(column: str) -> pl.Expr:
    """Null for "not informed" spellings, sentence case otherwise."""
    text = pl.col(column).cast(pl.String).str.strip_chars()
    missing = text.is_null() | (text == "") | text.str.to_uppercase().is_in(sorted(rules.COR_NAO_INFORMADA))
    return pl.when(missing).then(pl.lit(None, dtype=pl.String)).otherwise(sentence_case(text)).alias(column)


def clean_veiculos(df: pl.DataFrame) -> pl.DataFrame:
    """Project, recode and type a raw veiculos DataFrame.

    Returns:
        Frame with the columns of rules.VEICULOS_RULES.projection.
    """
    df = project(df, rules.VEICULOS_RULES.projection)
    return df.with_columns(
        pl.col("id_sinistro").cast(pl.String),
        pl.col("id_veiculo").cast(pl.String),
        to_int("ano_fabricacao"),
        to_int("ano_modelo"),
        clean_cor("cor_veiculo"),
        recode("tipo_veiculo", rules.TIPO_VEICULO),
    )
