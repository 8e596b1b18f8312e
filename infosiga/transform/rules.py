# infosiga/transform/rules.py
#
# Rule tables of the cleaning step: categorical maps, age-bracket orders,
# column-prefix groups, required columns, name aliases and final projections
# for each dataset kind.
#
# Design decisions:
#   - Curated static data, no logic. The per-kind cleaners read these
#     constants; clean.py reads RULESETS.
#   - Raw keys are the spellings found in the Infosiga CSVs (upper case,
#     mostly without diacritics); canonical values are the labels used in
#     Detran-SP publications.
#   - Pass-through is opt-in per column. It is set where the source carries an
#     open vocabulary (road administration, victim vehicle type, age brackets
#     before the Enum cast); every other map is closed.
#   - Aliases reconcile spelling variants across vintages. The canonical name
#     is the one the cleaners use.
#
# Invariants:
#   - Age-bracket level lists are ordered youngest to oldest.
#   - No canonical value of a passthrough rule is also one of its raw keys.
from __future__ import annotations

from dataclasses import dataclass, field

from infosiga.kinds import DatasetKind
from infosiga.transform.recode import SENTINEL, Prefixed, RecodeRule

# ---------------------------------------------------------------------------
# Column-prefix groups (sinistros)
# ---------------------------------------------------------------------------

VEICULO_COUNT = Prefixed("tp_veiculo")
GRAVIDADE_COUNT = Prefixed("gravidade")
SUB_SINISTRO_FLAG = Prefixed("tp_sinistro")

# ---------------------------------------------------------------------------
# Sinistros
# ---------------------------------------------------------------------------

TIPO_REGISTRO = RecodeRule(
    {
        "SINISTRO FATAL": "Sinistro fatal",
        "SINISTRO NAO FATAL": "Sinistro não fatal",
        "NOTIFICACAO": "Notificação",
    }
)

TIPO_VIA = RecodeRule(
    {
        "RODOVIAS": "Estradas e rodovias",
        "RURAL": "Estradas e rodovias",
        "RURAL (COM CARACTERÍSTICA DE URBANA)": "Estradas e rodovias",
        "URBANA": "Vias urbanas",
        "VIAS MUNICIPAIS": "Vias urbanas",
    }
)

ADMINISTRACAO_VIA = RecodeRule(
    {
        "CONCESSIONÁRIA": "Concessionária",
        "CONCESSIONÁRIA-ANTT": "Concessionária",
        "CONCESSIONÁRIA-ARTESP": "Concessionária",
        "PREFEITURA": "Prefeitura",
    },
    passthrough=True,
)

JURISDICAO_VIA = RecodeRule(
    {
        "ESTADUAL": "Estadual",
        "MUNICIPAL": "Municipal",
        "FEDERAL": "Federal",
    }
)

TIPO_SINISTRO_PRIMARIO = RecodeRule(
    {
        "ATROPELAMENTO": "Atropelamento",
        "COLISAO": "Colisão",
        "CHOQUE": "Choque",
    }
)

# ---------------------------------------------------------------------------
# Pessoas
# ---------------------------------------------------------------------------

SEXO = RecodeRule({"MASCULINO": "Masculino", "FEMININO": "Feminino"})

TIPO_VITIMA = RecodeRule(
    {
        "CONDUTOR": "Condutor",
        "PASSAGEIRO": "Passageiro",
        "PEDESTRE": "Pedestre",
    }
)

TIPO_VEICULO_VITIMA = RecodeRule(
    {
        "PEDESTRE": "A pé",
        "Pedestre": "A pé",
        "MOTOCICLETA": "Motocicleta",
        "AUTOMOVEL": "Automóvel",
        "OUTROS": "Outros",
        "BICICLETA": "Bicicleta",
        "CAMINHAO": "Caminhão",
        "ONIBUS": "Ônibus",
    },
    passthrough=True,
)

# Applied to the already recoded tipo_veiculo_vitima.
TIPO_MODO_VITIMA = RecodeRule(
    {
        "A pé": "Pedestre",
        "Motocicleta": "Ocupante de motocicleta",
        "Automóvel": "Ocupante de automóvel",
        "Bicicleta": "Ciclista",
        "Caminhão": "Ocupante de caminhão",
        "Ônibus": "Ocupante de ônibus",
        "Outros": "Outros",
    }
)

GRAVIDADE_LESAO = RecodeRule({"FATAL": "Fatal", "GRAVE": "Grave", "LEVE": "Leve"})

FAIXA_ETARIA_DEMOGRAFICA = RecodeRule({"90 e +": "90+"}, passthrough=True)

FAIXA_ETARIA_LEGAL = RecodeRule({"80 ou mais": "80+"}, passthrough=True)

FAIXAS_DEMOGRAFICAS: tuple[str, ...] = (
    "00 a 04",
    "05 a 09",
    "10 a 14",
    "15 a 19",
    "20 a 24",
    "25 a 29",
    "30 a 34",
    "35 a 39",
    "40 a 44",
    "45 a 49",
    "50 a 54",
    "55 a 59",
    "60 a 64",
    "65 a 69",
    "70 a 74",
    "75 a 79",
    "80 a 84",
    "85 a 89",
    "90+",
)

FAIXAS_LEGAIS: tuple[str, ...] = (
    "0-17",
    "18-24",
    "25-29",
    "30-34",
    "35-39",
    "40-44",
    "45-49",
    "50-54",
    "55-59",
    "60-64",
    "65-69",
    "70-74",
    "75-79",
    "80+",
)

# ---------------------------------------------------------------------------
# Veiculos
# ---------------------------------------------------------------------------

TIPO_VEICULO = RecodeRule(
    {
        "AUTOMOVEL": "Automóvel",
        "MOTOCICLETA": "Motocicleta",
        "CAMINHAO": "Caminhão",
        "ONIBUS": "Ônibus",
        "OUTROS": "Outros",
        "BICICLETA": "Bicicleta",
    }
)

# Compared after strip + upper case.
COR_NAO_INFORMADA: frozenset[str] = frozenset(
    {
        SENTINEL,
        "NAO INFORMADO",
        "NÃO INFORMADO",
        "NAO INFORMADA",
        "NÃO INFORMADA",
        "NAO IDENTIFICADO",
        "NÃO IDENTIFICADO",
        "SEM INFORMACAO",
        "SEM INFORMAÇÃO",
        "INDEFINIDA",
    }
)


# ---------------------------------------------------------------------------
# Per-kind rule sets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KindRules:
    """Structural rules of one dataset kind.

    Attributes:
        required:     raw columns that must be present (after aliasing).
        required_any: groups of raw columns of which at least one must exist.
        aliases:      canonical raw name -> accepted spelling variants.
        audits:       (column or prefix group, known raw values) checked for
                      unmapped categories before cleaning.
        counts:       count columns or prefix groups checked for values that
                      are neither absent nor an integer.
        projection:   output columns in order.
    """

    required: tuple[str, ...]
    projection: tuple[str | Prefixed, ...]
    required_any: tuple[tuple[str, ...], ...] = ()
    aliases: dict[str, tuple[str, ...]] = field(default_factory=dict)
    audits: tuple[tuple[str | Prefixed, frozenset[str]], ...] = ()
    counts: tuple[str | Prefixed, ...] = ()


SINISTROS_RULES = KindRules(
    required=(
        "id_sinistro",
        "data_sinistro",
        "hora_sinistro",
        "logradouro",
        "numero_logradouro",
        "tipo_via",
        "longitude",
        "latitude",
        "tipo_registro",
        "administracao",
        "conservacao",
        "jurisdicao",
        "tipo_acidente_primario",
    ),
    required_any=(("cod_ibge", "municipio"),),
    audits=(
        ("tipo_registro", TIPO_REGISTRO.known_values),
        ("tipo_via", TIPO_VIA.known_values),
        ("jurisdicao", JURISDICAO_VIA.known_values),
        ("tipo_acidente_primario", TIPO_SINISTRO_PRIMARIO.known_values),
        (SUB_SINISTRO_FLAG, frozenset({"S"})),
    ),
    counts=(VEICULO_COUNT, GRAVIDADE_COUNT),
    projection=(
        "id_sinistro",
        "data_sinistro",
        "hora_sinistro",
        "cod_ibge",
        "regiao_administrativa",
        "nome_municipio",
        "logradouro",
        "numero_logradouro",
        "tipo_via",
        "longitude",
        "latitude",
        VEICULO_COUNT,
        "tipo_registro",
        GRAVIDADE_COUNT,
        "administracao_via",
        "conservacao",
        "jurisdicao_via",
        "tipo_sinistro_primario",
        SUB_SINISTRO_FLAG,
    ),
)

PESSOAS_RULES = KindRules(
    required=(
        "id_sinistro",
        "data_sinistro",
        "data_obito",
        "sexo",
        "idade",
        "tipo_vitima",
        "faixa_etaria_demografica",
        "faixa_etaria_legal",
        "tipo_veiculo_vitima",
        "gravidade_lesao",
    ),
    aliases={
        "tipo_vitima": ("tipo_de vítima", "tipo_de_vitima", "tipo_de_vítima", "tipo_de vitima"),
    },
    audits=(
        ("sexo", SEXO.known_values),
        ("tipo_vitima", TIPO_VITIMA.known_values),
        ("gravidade_lesao", GRAVIDADE_LESAO.known_values),
        ("faixa_etaria_demografica", FAIXA_ETARIA_DEMOGRAFICA.known_values | set(FAIXAS_DEMOGRAFICAS)),
        ("faixa_etaria_legal", FAIXA_ETARIA_LEGAL.known_values | set(FAIXAS_LEGAIS)),
    ),
    projection=(
        "id_sinistro",
        "data_sinistro",
        "data_obito",
        "sexo",
        "idade",
        "tipo_vitima",
        "faixa_etaria_demografica",
        "faixa_etaria_legal",
        "tipo_veiculo_vitima",
        "tipo_modo_vitima",
        "gravidade_lesao",
    ),
)

VEICULOS_RULES = KindRules(
    required=(
        "id_sinistro",
        "id_veiculo",
        "ano_fabricacao",
        "ano_modelo",
        "cor_veiculo",
        "tipo_veiculo",
    ),
    aliases={
        "ano_fabricacao": ("ano_fab",),
    },
    audits=(("tipo_veiculo", TIPO_VEICULO.known_values),),
    projection=(
        "id_sinistro",
        "id_veiculo",
        "ano_fabricacao",
        "ano_modelo",
        "cor_veiculo",
        "tipo_veiculo",
    ),
)

RULESETS: dict[DatasetKind, KindRules] = {
    DatasetKind.SINISTROS: SINISTROS_RULES,
    DatasetKind.PESSOAS: PESSOAS_RULES,
    DatasetKind.VEICULOS: VEICULOS_RULES,
}
