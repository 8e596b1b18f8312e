# infosiga/main.py
#
# Orchestrator: download -> extract -> load -> clean for one dataset kind.
#
# Design decisions:
#   - run_pipeline is the single entry point. It accepts an InfosigaConfig
#     (load_config() when omitted) and returns the cleaned DataFrame; nothing
#     is persisted except the extracted CSVs when destpath is given.
#   - Without destpath the extract lives in a TemporaryDirectory that is
#     removed on every exit path, including download, extraction, load and
#     cleaning errors.
#   - skip_download reads CSVs already extracted under destpath (or
#     config.raw_dir). Used by tests and for repeated runs.
#   - Each step logs progress to stdout.
#
# Invariant: a failed download never reaches the load step.
from __future__ import annotations

import tempfile
from pathlib import Path

import httpx
import polars as pl

from infosiga.config import InfosigaConfig, load_config
from infosiga.kinds import DatasetKind
from infosiga.log import log
from infosiga.reference.municipios import Municipios
from infosiga.sources.download import download_infosiga
from infosiga.sources.load import load_infosiga
from infosiga.transform.clean import clean_infosiga


def run_pipeline(
    kind: DatasetKind | str,
    config: InfosigaConfig | None = None,
    *,
    destpath: Path | None = None,
    skip_download: bool = False,
    municipios: Municipios | None = None,
    client: httpx.Client | None = None,
) -> pl.DataFrame:
    """Fetch, load and clean one Infosiga dataset.

    Args:
        kind:          Dataset to produce (sinistros, pessoas or veiculos).
        config:        Download settings; load_config() when None.
        destpath:      Directory to keep the extracted CSVs in. A temporary
                       directory is used (and removed) when None.
        skip_download: Load CSVs already present in destpath, or in
                       config.raw_dir when destpath is None.
        municipios:    Municipality reference for sinistros; bundled when None.
        client:        Optional httpx.Client forwarded to the downloader.

    Returns:
        Cleaned DataFrame for the requested kind.

    Raises:
        DownloadFailed, ExtractionFailed: on I/O failures before loading.
        NoFilesFound, SchemaMismatch:     if the extract cannot be loaded.
        JoinFanOut:                       if the municipality join is ambiguous.
    """
    kind = DatasetKind.parse(kind)
    config = config if config is not None else load_config()
    log(f"Infosiga pipeline: {kind.value}")

    if skip_download:
        source_dir = Path(destpath) if destpath is not None else config.raw_dir
        log(f"Skipping download, reading {source_dir}")
        return _load_and_clean(kind, source_dir, municipios)

    if destpath is not None:
        _download(config, Path(destpath), client)
        return _load_and_clean(kind, Path(destpath), municipios)

    with tempfile.TemporaryDirectory(prefix="infosiga_extract_") as tmp:
        _download(config, Path(tmp), client)
        return _load_and_clean(kind, Path(tmp), municipios)


def _download(config: InfosigaConfig, destpath: Path, client: httpx.Client | None) -> None:
    download_infosiga(
        destpath,
        config.source_url,
        timeout=config.download_timeout,
        retries=config.download_retries,
        backoff=config.download_backoff,
        client=client,
    )


def _load_and_clean(kind: DatasetKind, source_dir: Path, municipios: Municipios | None) -> pl.DataFrame:
    log(f"Loading {kind.value}...")
    raw = load_infosiga(kind, source_dir)
    log(f"Cleaning {kind.value}...")
    cleaned = clean_infosiga(raw, kind, municipios)
    log(f"Done. {cleaned.height:,} {kind.value} rows.")
    return cleaned
