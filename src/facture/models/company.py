from __future__ import annotations

from dataclasses import asdict, dataclass

from facture.models.province import Province


@dataclass(frozen=True)
class Company:
    """The business issuing invoices."""

    id: str
    name: str
    address: str
    province: Province
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    logo: str | None = None  # URL or data: URI, embedded as-is in the document

    @classmethod
    def from_dict(cls, d: dict) -> Company:
        return cls(
            id=d["id"],
            name=d["name"],
            address=d["address"],
            province=Province(str(d["province"]).upper()),
            phone=d.get("phone") or None,
            email=d.get("email") or None,
            website=d.get("website") or None,
            logo=d.get("logo") or None,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["province"] = str(self.province)
        return data
