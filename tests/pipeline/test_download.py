# tests/pipeline/test_download.py
#
# Tests for the Infosiga ZIP download and extraction.
# The network is replaced by httpx.MockTransport; backoff is 0 so retries
# do not sleep.
from __future__ import annotations

import io
import zipfile
from pathlib import Path

import httpx
import pytest

from infosiga.sources.download import DownloadFailed, ExtractionFailed, download_infosiga, extract_archive

_URL = "https://example.test/infosiga.zip"


def _zip_bytes(members: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in members.items():
            archive.writestr(name, content.encode("latin-1"))
    return buffer.getvalue()


_ARCHIVE = _zip_bytes(
    {
        "dados_infosiga/sinistros_2023.csv": "id_sinistro;municipio\n1;SAO PAULO\n",
        "dados_infosiga/pessoas_2023.csv": "id_sinistro;sexo\n1;MASCULINO\n",
    }
)


class _Server:
    """Replays a list of responses (or exceptions) and records each request."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self._responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


def test_download_extrai_arquivo(tmp_path: Path) -> None:
    """A 200 response is extracted in full into destpath."""
    server = _Server(httpx.Response(200, content=_ARCHIVE))

    result = download_infosiga(tmp_path / "raw", _URL, backoff=0, client=server.client())

    assert result == (tmp_path / "raw").absolute()
    assert (result / "dados_infosiga" / "sinistros_2023.csv").read_text(encoding="latin-1").startswith("id_sinistro")
    assert (result / "dados_infosiga" / "pessoas_2023.csv").exists()
    assert len(server.requests) == 1


def test_download_envia_user_agent_de_navegador(tmp_path: Path) -> None:
    """The request carries a browser User-Agent."""
    server = _Server(httpx.Response(200, content=_ARCHIVE))

    download_infosiga(tmp_path, _URL, backoff=0, client=server.client())

    assert server.requests[0].headers["User-Agent"].startswith("Mozilla/5.0")
    assert str(server.requests[0].url) == _URL


def test_download_repete_apos_503(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """A retryable status is retried and the next success is used."""
    server = _Server(httpx.Response(503), httpx.Response(200, content=_ARCHIVE))

    download_infosiga(tmp_path, _URL, retries=3, backoff=0, client=server.client())

    assert len(server.requests) == 2
    assert "attempt 1/3" in capsys.readouterr().err


def test_download_esgota_tentativas(tmp_path: Path) -> None:
    """Exhausted retries raise DownloadFailed after exactly `retries` attempts."""
    server = _Server(httpx.Response(500), httpx.Response(502), httpx.Response(504))

    with pytest.raises(DownloadFailed, match="3 attempt"):
        download_infosiga(tmp_path / "raw", _URL, retries=3, backoff=0, client=server.client())

    assert len(server.requests) == 3
    assert not (tmp_path / "raw").exists()


def test_download_status_nao_repetivel_falha_imediatamente(tmp_path: Path) -> None:
    """A 404 is not retried."""
    server = _Server(httpx.Response(404), httpx.Response(200, content=_ARCHIVE))

    with pytest.raises(DownloadFailed, match="HTTP 404"):
        download_infosiga(tmp_path, _URL, retries=3, backoff=0, client=server.client())

    assert len(server.requests) == 1


def test_download_erro_de_conexao_encadeado(tmp_path: Path) -> None:
    """Transport errors are retried and chained as the cause of DownloadFailed."""
    server = _Server(httpx.ConnectError("refused"), httpx.ConnectError("refused"))

    with pytest.raises(DownloadFailed) as excinfo:
        download_infosiga(tmp_path, _URL, retries=2, backoff=0, client=server.client())

    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
    assert len(server.requests) == 2


def test_download_retries_invalido(tmp_path: Path) -> None:
    """retries must be at least 1."""
    server = _Server()

    with pytest.raises(ValueError, match="retries"):
        download_infosiga(tmp_path, _URL, retries=0, client=server.client())


def test_download_zip_corrompido(tmp_path: Path) -> None:
    """A body that is not a ZIP raises ExtractionFailed."""
    server = _Server(httpx.Response(200, content=b"<html>manutencao</html>"))

    with pytest.raises(ExtractionFailed, match="Corrupt"):
        download_infosiga(tmp_path, _URL, backoff=0, client=server.client())


def test_extract_archive_destino_e_arquivo(tmp_path: Path) -> None:
    """A destination that is an existing file raises ExtractionFailed."""
    zip_path = tmp_path / "infosiga.zip"
    zip_path.write_bytes(_ARCHIVE)
    blocker = tmp_path / "destino"
    blocker.write_text("not a directory")

    with pytest.raises(ExtractionFailed):
        extract_archive(zip_path, blocker)


def test_extract_archive_vazio(tmp_path: Path) -> None:
    """An archive with no members raises ExtractionFailed."""
    zip_path = tmp_path / "vazio.zip"
    zip_path.write_bytes(_zip_bytes({}))

    with pytest.raises(ExtractionFailed, match="empty"):
        extract_archive(zip_path, tmp_path / "out")
