# infosiga/sources/download.py
#
# IO-only: download the Infosiga.SP ZIP from Detran-SP and extract it.
#
# Design decisions:
#   - The whole database is a single ZIP served at one fixed URL. The archive
#     holds sinistros_*, pessoas_* and veiculos_* CSVs, sometimes under a
#     dados_infosiga/ folder; every member is extracted.
#   - httpx streaming with 8MB chunks keeps the download off the heap.
#   - The ZIP itself goes to a TemporaryDirectory, so it is removed on every
#     exit path (success, HTTP failure, corrupt archive).
#   - Retries are bounded: `retries` attempts in total, sleeping
#     backoff * 2**(attempt - 1) seconds between them. Transport errors and
#     408/429/5xx statuses are retried; any other non-2xx status fails at once.
#   - The Detran server rejects the default httpx User-Agent, so a browser one
#     is sent.
#   - A caller-supplied httpx.Client is used as-is (tests pass one built on
#     httpx.MockTransport); otherwise a client is created and closed here.
#
# Invariants:
#   - download_infosiga never returns unless the final response was 2xx and the
#     archive was extracted in full.
#   - DownloadFailed is always chained to the last httpx error.
from __future__ import annotations

import tempfile
import time
import zipfile
from pathlib import Path

import httpx

from infosiga.config import INFOSIGA_URL
from infosiga.log import log, warn

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/108.0.0.0 Safari/537.36"
)

_RETRYABLE_STATUS: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})

_CHUNK_SIZE = 8 * 1024 * 1024


class DownloadFailed(Exception):
    """Raised when the archive cannot be fetched after all retry attempts."""


class ExtractionFailed(Exception):
    """Raised when the archive is corrupt or the destination is not writable."""


def download_infosiga(
    destpath: Path,
    url: str = INFOSIGA_URL,
    *,
    timeout: int = 300,
    retries: int = 3,
    backoff: float = 2.0,
    client: httpx.Client | None = None,
) -> Path:
    """Download the complete Infosiga.SP database and extract it to destpath.

    Args:
        destpath: Directory where the CSV files are extracted. Created if absent.
        url:      Location of the ZIP archive.
        timeout:  Per-request timeout in seconds.
        retries:  Maximum number of attempts (>= 1).
        backoff:  Base delay in seconds for exponential backoff between attempts.
        client:   Optional pre-configured httpx.Client.

    Returns:
        Absolute path of the extraction directory.

    Raises:
        DownloadFailed:   if every attempt failed or the server answered with a
            non-retryable, non-2xx status.
        ExtractionFailed: if the archive is corrupt or destpath is not writable.
    """
    destpath = Path(destpath).absolute()

    with tempfile.TemporaryDirectory(prefix="infosiga_") as tmp:
        zip_path = Path(tmp) / "infosiga.zip"
        log("Starting download...")
        _fetch_with_retry(url, zip_path, timeout=timeout, retries=retries, backoff=backoff, client=client)
        size_mb = zip_path.stat().st_size // (1024 * 1024)
        log(f"Download completed ({size_mb} MB).")

        log("Extracting zip...")
        extract_archive(zip_path, destpath)

    log(f"Data extracted successfully at '{destpath}'")
    return destpath


def extract_archive(zip_path: Path, destpath: Path) -> Path:
    """Extract every member of a ZIP archive into destpath.

    Returns:
        destpath.

    Raises:
        ExtractionFailed: if the archive is corrupt or empty, or destpath cannot
            be created or written.
    """
    try:
        destpath.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(zip_path) as archive:
            names = archive.namelist()
            if not names:
                raise ExtractionFailed(f"Archive {zip_path} is empty")
            archive.extractall(destpath)
    except zipfile.BadZipFile as exc:
        raise ExtractionFailed(f"Corrupt archive {zip_path}: {exc}") from exc
    except OSError as exc:
        raise ExtractionFailed(f"Could not extract {zip_path} into {destpath}: {exc}") from exc

    log(f"  Extracted {len(names)} file(s) into {destpath}")
    return destpath


def _fetch_with_retry(
    url: str,
    dest: Path,
    *,
    timeout: int,
    retries: int,
    backoff: float,
    client: httpx.Client | None,
) -> None:
    if retries < 1:
        raise ValueError(f"retries must be at least 1, got {retries}")

    owns_client = client is None
    http = client if client is not None else httpx.Client(follow_redirects=True)
    last_exc: httpx.HTTPError | None = None

    try:
        for attempt in range(1, retries + 1):
            try:
                _stream_to_file(http, url, dest, timeout)
                return
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status not in _RETRYABLE_STATUS:
                    raise DownloadFailed(f"Download failed: HTTP {status} from {url}") from exc
                last_exc = exc
            except httpx.TransportError as exc:
                last_exc = exc

            if attempt < retries:
                delay = backoff * 2 ** (attempt - 1)
                warn(f"download attempt {attempt}/{retries} failed ({last_exc}); retrying in {delay:.1f}s")
                time.sleep(delay)
    finally:
        if owns_client:
            http.close()

    raise DownloadFailed(f"Download failed after {retries} attempt(s) from {url}: {last_exc}") from last_exc


def _stream_to_file(client: httpx.Client, url: str, dest: Path, timeout: int) -> None:
    headers = {"User-Agent": _USER_AGENT}
    with client.stream("GET", url, headers=headers, timeout=timeout, follow_redirects=True) as response:
        response.raise_for_status()
        downloaded = 0
        with dest.open("wb") as fh:
            for chunk in response.iter_bytes(chunk_size=_CHUNK_SIZE):
                fh.write(chunk)
                downloaded += len(chunk)
                if downloaded % (50 * 1024 * 1024) < len(chunk):
                    log(f"  {downloaded // (1024 * 1024)} MB downloaded...")
