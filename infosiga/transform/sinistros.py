# infosiga/transform/sinistros.py
#
# Cleaning rules for the incidents (sinistros) dataset.
#
# Design decisions:
#   - tp_veiculo* and gravidade* are per-incident counts: a missing value
#     means zero vehicles/victims of that kind, not "unknown".
#   - tp_sinistro* are "S"/empty flags and become 0/1 indicators.
#   - administracao, jurisdicao and tipo_acidente_primario are recoded into
#     new columns (administracao_via, jurisdicao_via, tipo_sinistro_primario);
#     the raw columns are dropped by the projection.
#   - Municipality enrichment runs after recoding and before the projection.
#
# Invariant: one output row per input row, in input order.
from __future__ import annotations

import polars as pl

from infosiga.reference.municipios import Municipios, enrich_municipio
from infosiga.transform import rules
from infosiga.transform.recode import project, recode, to_count, to_date, to_flag, to_float, to_int, to_time


def clean_sinistros(df: pl.DataFrame, municipios: Municipios) -> pl.DataFrame:
    """Recode, type and enrich a raw sinistros DataFrame.

    Args:
        df:         Raw frame with canonical column names (see rules.SINISTROS_RULES).
        municipios: Municipality reference used for the enrichment join.

    Returns:
        Frame with the columns of rules.SINISTROS_RULES.projection.
    """
    counts = rules.VEICULO_COUNT.expand(df.columns) + rules.GRAVIDADE_COUNT.expand(df.columns)
    flags = rules.SUB_SINISTRO_FLAG.expand(df.columns)

    df = df.with_columns(
        pl.col("id_sinistro").cast(pl.String),
        pl.col("logradouro").cast(pl.String),
        pl.col("conservacao").cast(pl.String),
        recode("tipo_registro", rules.TIPO_REGISTRO),
        to_date("data_sinistro"),
        to_time("hora_sinistro"),
        to_int("numero_logradouro"),
        to_float("longitude"),
        to_float("latitude"),
        recode("tipo_via", rules.TIPO_VIA),
        recode("administracao", rules.ADMINISTRACAO_VIA, alias="administracao_via"),
        recode("jurisdicao", rules.JURISDICAO_VIA, alias="jurisdicao_via"),
        recode("tipo_acidente_primario", rules.TIPO_SINISTRO_PRIMARIO, alias="tipo_sinistro_primario"),
        *[to_count(col) for col in counts],
        *[to_flag(col) for col in flags],
    )

    df = enrich_municipio(df, municipios)
    return project(df, rules.SINISTROS_RULES.projection)
