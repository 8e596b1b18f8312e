# scripts/build_municipios.py
#
# Regenerate infosiga/reference/municipios_sp.csv.
#
# Fetches the São Paulo municipalities from the IBGE localidades API and
# attaches the administrative region of each one from a semicolon-delimited
# CSV with columns municipio;regiao_administrativa (e.g. the SEADE table of
# regiões administrativas). Municipalities without a region are written with
# an empty region and reported.
#
# Usage:
#   python scripts/build_municipios.py --regioes regioes_sp.csv
#
# The IBGE fetch needs network access and is not unit-tested. The merge is
# infosiga.reference.municipios.build_municipios, which is.
from __future__ import annotations

import argparse
from pathlib import Path

import httpx
import polars as pl

from infosiga.log import log, warn
from infosiga.reference.municipios import REFERENCE_CSV, UF_SAO_PAULO, build_municipios, municipios_from_frame

IBGE_URL = "https://servicodados.ibge.gov.br/api/v1/localidades/estados/{uf}/municipios"


def fetch_ibge_municipios(uf_code: str = UF_SAO_PAULO, timeout: int = 60) -> pl.DataFrame:
    """Return cod_ibge and nome_municipio for every municipality of a state."""
    resp = httpx.get(IBGE_URL.format(uf=uf_code), timeout=timeout, follow_redirects=True)
    resp.raise_for_status()
    records = resp.json()
    return pl.DataFrame(
        {
            "cod_ibge": [str(item["id"]) for item in records],
            "nome_municipio": [item["nome"] for item in records],
        },
        schema={"cod_ibge": pl.String, "nome_municipio": pl.String},
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Regenerate the bundled municipality table from the IBGE registry and a region CSV."
    )
    parser.add_argument("--regioes", type=Path, required=True, help="CSV with municipio;regiao_administrativa")
    parser.add_argument("--output", type=Path, default=REFERENCE_CSV)
    return parser


def main() -> None:
    args = build_parser().parse_args()

    log("Fetching IBGE municipalities...")
    ibge_df = fetch_ibge_municipios()
    regioes_df = pl.read_csv(args.regioes, separator=";", infer_schema_length=0)

    table = build_municipios(ibge_df, regioes_df)
    municipios_from_frame(table)

    without_region = table.filter(pl.col("regiao_administrativa").is_null())
    if not without_region.is_empty():
        warn(f"{without_region.height} municipalities without region: {without_region['municipio'].to_list()[:10]}")

    table.write_csv(args.output, separator=";")
    log(f"Done. {table.height} municipalities written to {args.output}")


if __name__ == "__main__":
    main()
