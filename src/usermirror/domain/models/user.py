"""User directory domain model.

``UserRecord`` mirrors one entry of the remote directory.  Nested address and
company details are kept as small value objects; all leaf fields are plain
strings and are only checked for presence.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

# Ids are stored as SQLite INTEGER (signed 64-bit)
MIN_USER_ID = -(2**63)
MAX_USER_ID = 2**63 - 1


@dataclass(frozen=True)
class Geo:
    lat: str
    lng: str


@dataclass(frozen=True)
class Address:
    street: str
    suite: str
    city: str
    zipcode: str
    geo: Geo


@dataclass(frozen=True)
class Company:
    name: str
    catch_phrase: str
    bs: str


@dataclass(frozen=True)
class UserRecord:
    id: int
    name: str
    username: str
    email: str
    phone: str
    website: str
    address: Address
    company: Company
    # Attached when the record is persisted; not part of the remote payload
    # and not part of record equality.
    last_synced_at: Optional[datetime] = field(default=None, compare=False)

    def stamped(self, synced_at: datetime) -> UserRecord:
        """Return a copy carrying *synced_at* as its freshness stamp."""
        return replace(self, last_synced_at=synced_at)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> UserRecord:
        """Build a record from the remote JSON shape.

        Raises ``KeyError`` for a missing field and ``TypeError``/``ValueError``
        when a nested object or the id has the wrong shape.
        """
        user_id = int(payload["id"])
        if not MIN_USER_ID <= user_id <= MAX_USER_ID:
            raise ValueError(f"id {user_id} does not fit in a signed 64-bit integer")
        address = payload["address"]
        geo = address["geo"]
        company = payload["company"]
        return cls(
            id=user_id,
            name=str(payload["name"]),
            username=str(payload["username"]),
            email=str(payload["email"]),
            phone=str(payload["phone"]),
            website=str(payload["website"]),
            address=Address(
                street=str(address["street"]),
                suite=str(address["suite"]),
                city=str(address["city"]),
                zipcode=str(address["zipcode"]),
                geo=Geo(lat=str(geo["lat"]), lng=str(geo["lng"])),
            ),
            company=Company(
                name=str(company["name"]),
                catch_phrase=str(company["catchPhrase"]),
                bs=str(company["bs"]),
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the record in the remote JSON shape plus ``lastSyncedAt``."""
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "phone": self.phone,
            "website": self.website,
            "address": {
                "street": self.address.street,
                "suite": self.address.suite,
                "city": self.address.city,
                "zipcode": self.address.zipcode,
                "geo": {"lat": self.address.geo.lat, "lng": self.address.geo.lng},
            },
            "company": {
                "name": self.company.name,
                "catchPhrase": self.company.catch_phrase,
                "bs": self.company.bs,
            },
            "lastSyncedAt": self.last_synced_at.isoformat() if self.last_synced_at else None,
        }
