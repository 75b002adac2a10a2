"""Batched occupancy reader.

Reconstructs enriched grave views with a fixed number of queries:

1. graves joined to cemetery, parcel and row, with structural filters
2. active concessions (plus holder) for the candidate graves
3. burials for the candidate graves

The rows are stitched together in memory, searched, and summarised. The
query count does not depend on how many graves match.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select

from app.cemetery.services import parish_id
from app.core.extensions import db
from app.core.models import (
    Burial,
    Cemetery,
    CemeteryParcel,
    CemeteryRow,
    Client,
    Concession,
    ConcessionStatus,
    Grave,
    GraveStatus,
)


@dataclass
class ConcessionView:
    id: str
    contract_number: str
    start_date: object
    expiry_date: object
    status: ConcessionStatus
    annual_fee: Decimal
    currency: str
    holder_client_id: str
    holder_name: str


@dataclass
class BurialView:
    id: str
    deceased_client_id: str | None
    deceased_name: str
    deceased_death_date: object
    burial_date: object


@dataclass
class GraveOccupancy:
    id: str
    code: str
    status: GraveStatus
    cemetery_id: str
    cemetery_name: str
    parcel_id: str
    parcel_name: str
    row_id: str
    row_name: str
    width: Decimal | None
    length: Decimal | None
    position_x: int | None
    position_y: int | None
    notes: str | None
    concession: ConcessionView | None = None
    burials: list[BurialView] = field(default_factory=list)

    def search_text(self) -> str:
        parts = [self.code, self.cemetery_name, self.parcel_name, self.row_name]
        if self.concession:
            parts.extend([self.concession.contract_number, self.concession.holder_name])
        parts.extend(burial.deceased_name for burial in self.burials)
        return " ".join(part for part in parts if part).lower()


@dataclass
class OccupancyResult:
    graves: list[GraveOccupancy]
    statistics: dict[str, int]


def occupancy_statistics(graves: list[GraveOccupancy]) -> dict[str, int]:
    stats = {
        "total": len(graves),
        GraveStatus.FREE.value: 0,
        GraveStatus.OCCUPIED.value: 0,
        GraveStatus.RESERVED.value: 0,
        GraveStatus.MAINTENANCE.value: 0,
        "withConcessions": 0,
        "withBurials": 0,
    }
    for grave in graves:
        stats[GraveStatus(grave.status).value] += 1
        if grave.concession is not None:
            stats["withConcessions"] += 1
        if grave.burials:
            stats["withBurials"] += 1
    return stats


def _candidate_graves(filters: dict) -> list[GraveOccupancy]:
    stmt = (
        select(Grave, Cemetery.name, CemeteryParcel.name, CemeteryRow.name)
        .join(Cemetery, Cemetery.id == Grave.cemetery_id)
        .join(CemeteryParcel, CemeteryParcel.id == Grave.parcel_id)
        .join(CemeteryRow, CemeteryRow.id == Grave.row_id)
        .where(Grave.parish_id == parish_id())
    )
    if filters.get("cemetery_id"):
        stmt = stmt.where(Grave.cemetery_id == filters["cemetery_id"])
    if filters.get("parcel_id"):
        stmt = stmt.where(Grave.parcel_id == filters["parcel_id"])
    if filters.get("row_id"):
        stmt = stmt.where(Grave.row_id == filters["row_id"])
    if filters.get("status"):
        stmt = stmt.where(Grave.status == filters["status"])
    stmt = stmt.order_by(Cemetery.name.asc(), CemeteryParcel.name.asc(), CemeteryRow.name.asc(), Grave.code.asc(), Grave.id.asc())

    return [
        GraveOccupancy(
            id=grave.id,
            code=grave.code,
            status=grave.status,
            cemetery_id=grave.cemetery_id,
            cemetery_name=cemetery_name,
            parcel_id=grave.parcel_id,
            parcel_name=parcel_name,
            row_id=grave.row_id,
            row_name=row_name,
            width=grave.width,
            length=grave.length,
            position_x=grave.position_x,
            position_y=grave.position_y,
            notes=grave.notes,
        )
        for grave, cemetery_name, parcel_name, row_name in db.session.execute(stmt).all()
    ]


def _active_concessions(grave_ids: list[str]) -> dict[str, ConcessionView]:
    stmt = (
        select(Concession, Client)
        .outerjoin(Client, Client.id == Concession.holder_client_id)
        .where(
            Concession.parish_id == parish_id(),
            Concession.grave_id.in_(grave_ids),
            Concession.status == ConcessionStatus.ACTIVE,
        )
        .order_by(Concession.created_at.asc(), Concession.id.asc())
    )
    by_grave: dict[str, ConcessionView] = {}
    for concession, holder in db.session.execute(stmt).all():
        # More than one active concession should not happen; the oldest wins.
        if concession.grave_id in by_grave:
            continue
        by_grave[concession.grave_id] = ConcessionView(
            id=concession.id,
            contract_number=concession.contract_number,
            start_date=concession.start_date,
            expiry_date=concession.expiry_date,
            status=concession.status,
            annual_fee=concession.annual_fee,
            currency=concession.currency,
            holder_client_id=concession.holder_client_id,
            holder_name=holder.display_name if holder else "",
        )
    return by_grave


def _burials(grave_ids: list[str]) -> dict[str, list[BurialView]]:
    stmt = (
        select(Burial)
        .where(Burial.parish_id == parish_id(), Burial.grave_id.in_(grave_ids))
        .order_by(Burial.burial_date.asc(), Burial.id.asc())
    )
    by_grave: dict[str, list[BurialView]] = {}
    for burial in db.session.scalars(stmt).all():
        by_grave.setdefault(burial.grave_id, []).append(
            BurialView(
                id=burial.id,
                deceased_client_id=burial.deceased_client_id,
                deceased_name=burial.deceased_name,
                deceased_death_date=burial.deceased_death_date,
                burial_date=burial.burial_date,
            )
        )
    return by_grave


def query_occupancy(filters: dict | None = None) -> OccupancyResult:
    """Return enriched grave views plus statistics over the filtered set.

    ``filters`` is the normalized output of ``validate_occupancy_filters``.
    """
    filters = filters or {}
    graves = _candidate_graves(filters)
    if not graves:
        return OccupancyResult(graves=[], statistics=occupancy_statistics([]))

    grave_ids = [grave.id for grave in graves]
    concessions = _active_concessions(grave_ids)
    burials = _burials(grave_ids)
    for grave in graves:
        grave.concession = concessions.get(grave.id)
        grave.burials = burials.get(grave.id, [])

    search = (filters.get("search") or "").strip().lower()
    if search:
        graves = [grave for grave in graves if search in grave.search_text()]
    return OccupancyResult(graves=graves, statistics=occupancy_statistics(graves))
