# infosiga/transform/pessoas.py
#
# Cleaning rules for the persons (pessoas) dataset.
#
# Design decisions:
#   - Two with_columns() passes. tipo_modo_vitima is derived from the
#     recoded tipo_veiculo_vitima, and the age brackets are renamed ("90 e +"
#     -> "90+") before the Enum cast, so both depend on the first pass.
#   - Age brackets become pl.Enum with a fixed youngest-to-oldest order;
#     sorting and comparisons follow that order, not the alphabet.
from __future__ import annotations

import polars as pl

from infosiga.transform import rules
from infosiga.transform.recode import ordered_category, project, recode, to_date, to_int


def clean_pessoas(df: pl.DataFrame) -> pl.DataFrame:
    """Recode and type a raw pessoas DataFrame.

    Returns:
        Frame with the columns of rules.PESSOAS_RULES.projection.
    """
    df = df.with_columns(
        pl.col("id_sinistro").cast(pl.String),
        to_date("data_sinistro"),
        to_date("data_obito"),
        to_int("idade"),
        recode("sexo", rules.SEXO),
        recode("tipo_vitima", rules.TIPO_VITIMA),
        recode("tipo_veiculo_vitima", rules.TIPO_VEICULO_VITIMA),
        recode("gravidade_lesao", rules.GRAVIDADE_LESAO),
        recode("faixa_etaria_demografica", rules.FAIXA_ETARIA_DEMOGRAFICA),
        recode("faixa_etaria_legal", rules.FAIXA_ETARIA_LEGAL),
    )

    df = df.with_columns(
        recode("tipo_veiculo_vitima", rules.TIPO_MODO_VITIMA, alias="tipo_modo_vitima"),
        ordered_category("faixa_etaria_demografica", rules.FAIXAS_DEMOGRAFICAS),
        ordered_category("faixa_etaria_legal", rules.FAIXAS_LEGAIS),
    )

    return project(df, rules.PESSOAS_RULES.projection)
