# infosiga/kinds.py
#
# The three Infosiga datasets.
#
# Invariant: the enum value is the file-name prefix used in the extract
# (sinistros_2023.csv, pessoas_2015-2021.csv, veiculos_2024.csv, ...).
from __future__ import annotations

from enum import StrEnum


class DatasetKind(StrEnum):
    """Closed set of dataset kinds shipped in the Infosiga extract."""

    SINISTROS = "sinistros"
    PESSOAS = "pessoas"
    VEICULOS = "veiculos"

    @property
    def prefix(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: DatasetKind | str) -> DatasetKind:
        """Accept a DatasetKind or its string value (case-insensitive).

        Raises:
            ValueError: if the string names no known dataset.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            valid = ", ".join(kind.value for kind in cls)
            raise ValueError(f"Unknown dataset kind {value!r}. Expected one of: {valid}") from exc
