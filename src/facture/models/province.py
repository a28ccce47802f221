from __future__ import annotations

from enum import StrEnum


class Province(StrEnum):
    ON = "ON"
    QC = "QC"
    NB = "NB"
    NS = "NS"

    @property
    def bilingual(self) -> bool:
        """Quebec invoices carry every label in English and French."""
        return self is Province.QC
