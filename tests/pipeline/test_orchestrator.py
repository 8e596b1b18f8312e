# tests/pipeline/test_orchestrator.py
#
# Smoke tests for the pipeline orchestrator (main.py).
#
# Strategy: build a small Infosiga-shaped extract (Latin-1 CSVs) and run
# run_pipeline either against it on disk (skip_download=True) or through a
# mocked HTTP server serving it as a ZIP. No network access.
from __future__ import annotations

import io
import tempfile
import zipfile
from pathlib import Path

import httpx
import polars as pl
import pytest

from infosiga.config import InfosigaConfig
from infosiga.main import run_pipeline
from infosiga.sources.download import DownloadFailed
from infosiga.sources.load import NoFilesFound

_SINISTROS = (
    "id_sinistro;tipo_registro;data_sinistro;hora_sinistro;municipio;logradouro;numero_logradouro;"
    "tipo_via;latitude;longitude;tp_veiculo_motocicleta;gravidade_fatal;administracao;conservacao;"
    "jurisdicao;tipo_acidente_primario;tp_sinistro_atropelamento\n"
    "1;SINISTRO FATAL;15/03/2023;14:30;SAO PAULO;AV PAULISTA;1000;URBANA;-23,56;-46,65;1;1;"
    "PREFEITURA;BOA;MUNICIPAL;ATROPELAMENTO;S\n"
    "2;NOTIFICACAO;16/03/2023;09:00;CAMPINAS;R BARAO;;RODOVIAS;-22,90;-47,06;;;"
    "CONCESSIONÁRIA-ARTESP;NAO DISPONIVEL;ESTADUAL;COLISAO;\n"
)

_PESSOAS = (
    "id_sinistro;data_sinistro;data_obito;sexo;idade;tipo_de vítima;faixa_etaria_demografica;"
    "faixa_etaria_legal;tipo_veiculo_vitima;gravidade_lesao\n"
    "1;15/03/2023;15/03/2023;MASCULINO;31;CONDUTOR;30 a 34;30-34;MOTOCICLETA;FATAL\n"
)

_VEICULOS = "id_sinistro;id_veiculo;ano_fab;ano_modelo;cor_veiculo;tipo_veiculo\n1;1;2018;2019;PRETA;MOTOCICLETA\n"

_FILES = {
    "sinistros_2023.csv": _SINISTROS,
    "pessoas_2023.csv": _PESSOAS,
    "veiculos_2023.csv": _VEICULOS,
}


def _write_extract(directory: Path) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for name, content in _FILES.items():
        (directory / name).write_bytes(content.encode("latin-1"))


def _archive() -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in _FILES.items():
            archive.writestr(f"dados_infosiga/{name}", content.encode("latin-1"))
    return buffer.getvalue()


def _client(*responses: httpx.Response) -> httpx.Client:
    queue = list(responses)
    return httpx.Client(transport=httpx.MockTransport(lambda request: queue.pop(0)))


def _config(tmp_path: Path) -> InfosigaConfig:
    return InfosigaConfig(data_dir=tmp_path, source_url="https://example.test/infosiga.zip", download_backoff=0)


@pytest.fixture
def scratch_tmp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect tempfile to an empty directory so leftovers can be detected."""
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch


def test_run_pipeline_skip_download_le_raw_dir(tmp_path: Path) -> None:
    """skip_download loads the extract already in config.raw_dir."""
    config = _config(tmp_path)
    _write_extract(config.raw_dir)

    result = run_pipeline("sinistros", config, skip_download=True)

    assert result.height == 2
    assert result["tipo_registro"].to_list() == ["Sinistro fatal", "Notificação"]
    assert result["regiao_administrativa"].to_list() == ["Metropolitana de São Paulo", "Campinas"]
    assert result["administracao_via"].to_list() == ["Prefeitura", "Concessionária"]
    assert result["tp_sinistro_atropelamento"].to_list() == [1, 0]


@pytest.mark.parametrize(
    ("kind", "column", "expected"),
    [
        ("pessoas", "tipo_modo_vitima", "Ocupante de motocicleta"),
        ("veiculos", "cor_veiculo", "Preta"),
    ],
)
def test_run_pipeline_skip_download_outros_conjuntos(tmp_path: Path, kind: str, column: str, expected: str) -> None:
    """The other dataset kinds run end-to-end from disk."""
    _write_extract(tmp_path / "extract")

    result = run_pipeline(kind, _config(tmp_path), destpath=tmp_path / "extract", skip_download=True)

    assert result.height == 1
    assert result[column][0] == expected


def test_run_pipeline_skip_download_sem_arquivos(tmp_path: Path) -> None:
    """Loading from an empty directory raises NoFilesFound."""
    (tmp_path / "vazio").mkdir()

    with pytest.raises(NoFilesFound):
        run_pipeline("veiculos", _config(tmp_path), destpath=tmp_path / "vazio", skip_download=True)


def test_run_pipeline_completo_remove_temporarios(tmp_path: Path, scratch_tmp: Path) -> None:
    """Download -> extract -> load -> clean with no leftovers in the temp dir."""
    client = _client(httpx.Response(200, content=_archive()))

    result = run_pipeline("pessoas", _config(tmp_path), client=client)

    assert isinstance(result, pl.DataFrame)
    assert result["tipo_vitima"].to_list() == ["Condutor"]
    assert list(scratch_tmp.iterdir()) == []


def test_run_pipeline_destpath_mantem_extracao(tmp_path: Path) -> None:
    """With destpath the extracted CSVs stay on disk."""
    client = _client(httpx.Response(200, content=_archive()))
    destpath = tmp_path / "infosiga"

    result = run_pipeline("veiculos", _config(tmp_path), destpath=destpath, client=client)

    assert result["ano_fabricacao"].to_list() == [2018]
    assert (destpath / "dados_infosiga" / "veiculos_2023.csv").exists()


def test_run_pipeline_falha_de_download_nao_deixa_temporarios(tmp_path: Path, scratch_tmp: Path) -> None:
    """A failed download raises DownloadFailed and leaves nothing behind."""
    client = _client(httpx.Response(503), httpx.Response(503), httpx.Response(503))

    with pytest.raises(DownloadFailed):
        run_pipeline("sinistros", _config(tmp_path), client=client)

    assert list(scratch_tmp.iterdir()) == []
