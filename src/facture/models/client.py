from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class Client:
    """Invoice recipient. ``name`` is the lookup key for get-or-create."""

    id: str
    name: str
    address: str | None = None
    phone: str | None = None
    email: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> Client:
        return cls(
            id=d["id"],
            name=d["name"],
            address=d.get("address") or None,
            phone=d.get("phone") or None,
            email=d.get("email") or None,
        )

    def to_dict(self) -> dict:
        return asdict(self)
