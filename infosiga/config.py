# infosiga/config.py
#
# Configuration loaded from environment variables.
#
# Design decisions:
#   - Frozen dataclass, built once by load_config(). Every field has a default,
#     so the package works without any .env file.
#   - The source URL lives here so the downloader and the orchestrator read it
#     from one place. Override it via INFOSIGA_URL for mirrors or tests.
#   - data_dir defaults to infosiga/data relative to this file's directory.
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

_PACKAGE_DIR = Path(__file__).parent

INFOSIGA_URL = "https://infosiga.detran.sp.gov.br/rest/painel/download/4"


@dataclass(frozen=True)
class InfosigaConfig:
    """Immutable configuration for the download and load steps.

    Invariants:
      - download_timeout and download_retries are positive integers.
      - download_backoff is a non-negative number of seconds.
    """

    data_dir: Path
    source_url: str = INFOSIGA_URL
    download_timeout: int = 300
    download_retries: int = 3
    download_backoff: float = 2.0

    @property
    def raw_dir(self) -> Path:
        """Directory where the extract is unpacked when it is kept on disk."""
        return self.data_dir / "raw"


def _positive_int(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def load_config() -> InfosigaConfig:
    """Build InfosigaConfig from environment variables.

    Raises:
        ValueError: if a numeric variable is malformed or out of range.
    """
    data_dir = Path(os.environ.get("INFOSIGA_DATA_DIR", str(_PACKAGE_DIR / "data")))

    backoff_raw = os.environ.get("INFOSIGA_DOWNLOAD_BACKOFF", "2.0")
    try:
        backoff = float(backoff_raw)
    except ValueError as exc:
        raise ValueError(f"INFOSIGA_DOWNLOAD_BACKOFF must be a number, got {backoff_raw!r}") from exc
    if backoff < 0:
        raise ValueError(f"INFOSIGA_DOWNLOAD_BACKOFF must not be negative, got {backoff}")

    return InfosigaConfig(
        data_dir=data_dir,
        source_url=os.environ.get("INFOSIGA_URL", INFOSIGA_URL),
        download_timeout=_positive_int("INFOSIGA_DOWNLOAD_TIMEOUT", "300"),
        download_retries=_positive_int("INFOSIGA_DOWNLOAD_RETRIES", "3"),
        download_backoff=backoff,
    )
