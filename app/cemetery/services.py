from __future__ import annotations

import structlog
from flask import current_app, g
from sqlalchemy import func

from app.cemetery.occupancy import has_active_concession, recompute_grave_status, set_grave_maintenance
from app.cemetery.validation import (
    validate_burial_create,
    validate_burial_update,
    validate_concession_create,
    validate_concession_update,
    validate_grave_create,
    validate_grave_update,
    validate_structure,
    validate_structure_update,
)
from app.core.errors import ConflictError, NotFoundError, ValidationError
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
from app.core.store import transaction

log = structlog.get_logger(__name__)


def parish_id() -> str:
    return g.parish.id


def _count(model, *criteria) -> int:
    return db.session.query(func.count(model.id)).filter(*criteria).scalar() or 0


def client_by_id(client_id: str, field_name: str = "clientId") -> Client:
    client = Client.query.filter_by(parish_id=parish_id(), id=client_id).first()
    if not client:
        raise NotFoundError(f"Client not found ({field_name})")
    return client


# --- Cemetery structure -------------------------------------------------------


def list_cemeteries() -> list[Cemetery]:
    return Cemetery.query.filter_by(parish_id=parish_id()).order_by(Cemetery.name.asc(), Cemetery.id.asc()).all()


def cemetery_by_id(cemetery_id: str) -> Cemetery:
    cemetery = Cemetery.query.filter_by(parish_id=parish_id(), id=cemetery_id).first()
    if not cemetery:
        raise NotFoundError("Cemetery not found")
    return cemetery


def parcel_by_id(parcel_id: str) -> CemeteryParcel:
    parcel = CemeteryParcel.query.filter_by(parish_id=parish_id(), id=parcel_id).first()
    if not parcel:
        raise NotFoundError("Parcel not found")
    return parcel


def row_by_id(row_id: str) -> CemeteryRow:
    row = CemeteryRow.query.filter_by(parish_id=parish_id(), id=row_id).first()
    if not row:
        raise NotFoundError("Row not found")
    return row


def create_cemetery(payload: dict) -> Cemetery:
    values = validate_structure(payload, with_address=True)
    with transaction():
        if Cemetery.query.filter_by(parish_id=parish_id(), code=values["code"]).first():
            raise ConflictError("A cemetery with this code already exists in this parish")
        cemetery = Cemetery(
            parish_id=parish_id(),
            name=values["name"],
            code=values["code"],
            address=values.get("address") or "",
        )
        db.session.add(cemetery)
    return cemetery


def update_cemetery(cemetery_id: str, payload: dict) -> Cemetery:
    values = validate_structure_update(payload, with_address=True)
    with transaction():
        cemetery = cemetery_by_id(cemetery_id)
        code = values.get("code")
        if code and code != cemetery.code:
            duplicate = (
                Cemetery.query.filter_by(parish_id=parish_id(), code=code).filter(Cemetery.id != cemetery.id).first()
            )
            if duplicate:
                raise ConflictError("A cemetery with this code already exists in this parish")
        if "address" in values:
            values["address"] = values["address"] or ""
        for key, value in values.items():
            setattr(cemetery, key, value)
    return cemetery


def delete_cemetery(cemetery_id: str) -> Cemetery:
    with transaction():
        cemetery = cemetery_by_id(cemetery_id)
        if _count(CemeteryParcel, CemeteryParcel.cemetery_id == cemetery.id):
            raise ConflictError("Cannot delete cemetery with existing parcels. Please delete all parcels first.")
        if _count(CemeteryRow, CemeteryRow.cemetery_id == cemetery.id):
            raise ConflictError("Cannot delete cemetery with existing rows. Please delete all rows first.")
        if _count(Grave, Grave.cemetery_id == cemetery.id):
            raise ConflictError("Cannot delete cemetery with existing graves. Please delete all graves first.")
        db.session.delete(cemetery)
    return cemetery


def create_parcel(cemetery_id: str, payload: dict) -> CemeteryParcel:
    values = validate_structure(payload)
    with transaction():
        cemetery = cemetery_by_id(cemetery_id)
        if CemeteryParcel.query.filter_by(cemetery_id=cemetery.id, code=values["code"]).first():
            raise ConflictError("A parcel with this code already exists in this cemetery")
        parcel = CemeteryParcel(parish_id=parish_id(), cemetery_id=cemetery.id, name=values["name"], code=values["code"])
        db.session.add(parcel)
    return parcel


def list_parcels(cemetery_id: str) -> list[CemeteryParcel]:
    cemetery = cemetery_by_id(cemetery_id)
    return (
        CemeteryParcel.query.filter_by(parish_id=parish_id(), cemetery_id=cemetery.id)
        .order_by(CemeteryParcel.code.asc(), CemeteryParcel.id.asc())
        .all()
    )


def update_parcel(parcel_id: str, payload: dict) -> CemeteryParcel:
    values = validate_structure_update(payload)
    with transaction():
        parcel = parcel_by_id(parcel_id)
        code = values.get("code")
        if code and code != parcel.code:
            duplicate = (
                CemeteryParcel.query.filter_by(cemetery_id=parcel.cemetery_id, code=code)
                .filter(CemeteryParcel.id != parcel.id)
                .first()
            )
            if duplicate:
                raise ConflictError("A parcel with this code already exists in this cemetery")
        for key, value in values.items():
            setattr(parcel, key, value)
    return parcel


def delete_parcel(parcel_id: str) -> CemeteryParcel:
    with transaction():
        parcel = parcel_by_id(parcel_id)
        if _count(CemeteryRow, CemeteryRow.parcel_id == parcel.id):
            raise ConflictError("Cannot delete parcel with existing rows. Please delete all rows first.")
        if _count(Grave, Grave.parcel_id == parcel.id):
            raise ConflictError("Cannot delete parcel with existing graves. Please delete all graves first.")
        db.session.delete(parcel)
    return parcel


def create_row(parcel_id: str, payload: dict) -> CemeteryRow:
    values = validate_structure(payload)
    with transaction():
        parcel = parcel_by_id(parcel_id)
        if CemeteryRow.query.filter_by(parcel_id=parcel.id, code=values["code"]).first():
            raise ConflictError("A row with this code already exists in this parcel")
        row = CemeteryRow(
            parish_id=parish_id(),
            cemetery_id=parcel.cemetery_id,
            parcel_id=parcel.id,
            name=values["name"],
            code=values["code"],
        )
        db.session.add(row)
    return row


def list_rows(parcel_id: str) -> list[CemeteryRow]:
    parcel = parcel_by_id(parcel_id)
    return (
        CemeteryRow.query.filter_by(parish_id=parish_id(), parcel_id=parcel.id)
        .order_by(CemeteryRow.code.asc(), CemeteryRow.id.asc())
        .all()
    )


def update_row(row_id: str, payload: dict) -> CemeteryRow:
    values = validate_structure_update(payload)
    with transaction():
        row = row_by_id(row_id)
        code = values.get("code")
        if code and code != row.code:
            duplicate = (
                CemeteryRow.query.filter_by(parcel_id=row.parcel_id, code=code).filter(CemeteryRow.id != row.id).first()
            )
            if duplicate:
                raise ConflictError("A row with this code already exists in this parcel")
        for key, value in values.items():
            setattr(row, key, value)
    return row


def delete_row(row_id: str) -> CemeteryRow:
    with transaction():
        row = row_by_id(row_id)
        if _count(Grave, Grave.row_id == row.id):
            raise ConflictError("Cannot delete row with existing graves. Please delete all graves first.")
        db.session.delete(row)
    return row


def list_row_graves(row_id: str) -> list[Grave]:
    row = row_by_id(row_id)
    return Grave.query.filter_by(parish_id=parish_id(), row_id=row.id).order_by(Grave.code.asc(), Grave.id.asc()).all()


# --- Graves --------------------------------------------------------------------


def grave_by_id(grave_id: str, lock: bool = False) -> Grave:
    query = Grave.query.filter_by(parish_id=parish_id(), id=grave_id)
    if lock:
        query = query.with_for_update()
    grave = query.first()
    if not grave:
        raise NotFoundError("Grave not found")
    return grave


def create_grave(payload: dict) -> Grave:
    values = validate_grave_create(payload)
    with transaction():
        row = row_by_id(values.pop("row_id"))
        if Grave.query.filter_by(row_id=row.id, code=values["code"]).first():
            raise ConflictError("A grave with this code already exists in this row")
        grave = Grave(
            parish_id=parish_id(),
            cemetery_id=row.cemetery_id,
            parcel_id=row.parcel_id,
            row_id=row.id,
            status=GraveStatus.FREE,
            **values,
        )
        db.session.add(grave)
    return grave


def update_grave(grave_id: str, payload: dict) -> Grave:
    values = validate_grave_update(payload)
    with transaction():
        grave = grave_by_id(grave_id)
        code = values.get("code")
        if code and code != grave.code:
            duplicate = Grave.query.filter_by(row_id=grave.row_id, code=code).filter(Grave.id != grave.id).first()
            if duplicate:
                raise ConflictError("A grave with this code already exists in this row")
        for key, value in values.items():
            setattr(grave, key, value)
    return grave


def delete_grave(grave_id: str) -> Grave:
    with transaction():
        grave = grave_by_id(grave_id, lock=True)
        if _count(Burial, Burial.grave_id == grave.id):
            raise ConflictError("Cannot delete grave with existing burials. Please delete all burials first.")
        if _count(Concession, Concession.grave_id == grave.id):
            raise ConflictError("Cannot delete grave with existing concessions. Please delete all concessions first.")
        for event in list(grave.status_events):
            db.session.delete(event)
        db.session.delete(grave)
    return grave


def toggle_grave_maintenance(grave_id: str, payload: dict) -> Grave:
    enabled = payload.get("enabled") if isinstance(payload, dict) else None
    if not isinstance(enabled, bool):
        raise ValidationError.for_field("enabled", "enabled must be a boolean")
    with transaction():
        grave = grave_by_id(grave_id, lock=True)
        set_grave_maintenance(grave, enabled)
    log.info("grave_maintenance_toggled", grave_id=grave_id, enabled=enabled)
    return grave


def _grave_for_child(grave_id: str, cemetery_id: str) -> Grave:
    grave = grave_by_id(grave_id, lock=True)
    if grave.cemetery_id != cemetery_id:
        raise ValidationError.for_field("cemeteryId", "Cemetery ID does not match grave")
    if grave.status == GraveStatus.MAINTENANCE:
        raise ConflictError("Grave is under maintenance")
    return grave


# --- Burials -------------------------------------------------------------------


def burial_by_id(burial_id: str, lock: bool = False) -> Burial:
    query = Burial.query.filter_by(parish_id=parish_id(), id=burial_id)
    if lock:
        query = query.with_for_update()
    burial = query.first()
    if not burial:
        raise NotFoundError("Burial not found")
    return burial


def list_burials(filters: dict) -> list[Burial]:
    query = Burial.query.filter_by(parish_id=parish_id())
    if filters.get("grave_id"):
        query = query.filter(Burial.grave_id == filters["grave_id"])
    if filters.get("cemetery_id"):
        query = query.filter(Burial.cemetery_id == filters["cemetery_id"])
    return query.order_by(Burial.burial_date.desc(), Burial.id.asc()).all()


def create_burial(payload: dict) -> Burial:
    values = validate_burial_create(payload)
    with transaction():
        grave = _grave_for_child(values["grave_id"], values["cemetery_id"])
        if values.get("deceased_client_id"):
            client_by_id(values["deceased_client_id"], "deceasedClientId")
        burial = Burial(parish_id=parish_id(), **values)
        db.session.add(burial)
        db.session.flush()
        recompute_grave_status(grave.id)
    log.info("burial_created", burial_id=burial.id, grave_id=values["grave_id"])
    return burial


def update_burial(burial_id: str, payload: dict) -> Burial:
    with transaction():
        burial = burial_by_id(burial_id)
        values = validate_burial_update(payload, burial.deceased_death_date, burial.burial_date)
        if values.get("deceased_client_id"):
            client_by_id(values["deceased_client_id"], "deceasedClientId")
        for key, value in values.items():
            setattr(burial, key, value)
    return burial


def delete_burial(burial_id: str) -> Burial:
    with transaction():
        burial = burial_by_id(burial_id, lock=True)
        grave_id = burial.grave_id
        db.session.delete(burial)
        db.session.flush()
        status = recompute_grave_status(grave_id)
    log.info("burial_deleted", burial_id=burial_id, grave_id=grave_id, grave_status=status.value)
    return burial


# --- Concessions ---------------------------------------------------------------


def concession_by_id(concession_id: str, lock: bool = False) -> Concession:
    query = Concession.query.filter_by(parish_id=parish_id(), id=concession_id)
    if lock:
        query = query.with_for_update()
    concession = query.first()
    if not concession:
        raise NotFoundError("Concession not found")
    return concession


def list_concessions(filters: dict) -> list[Concession]:
    query = Concession.query.filter_by(parish_id=parish_id())
    if filters.get("grave_id"):
        query = query.filter(Concession.grave_id == filters["grave_id"])
    if filters.get("cemetery_id"):
        query = query.filter(Concession.cemetery_id == filters["cemetery_id"])
    if filters.get("holder_client_id"):
        query = query.filter(Concession.holder_client_id == filters["holder_client_id"])
    if filters.get("status"):
        query = query.filter(Concession.status == filters["status"])
    return query.order_by(Concession.start_date.desc(), Concession.id.asc()).all()


def _ensure_unique_contract_number(contract_number: str, exclude_id: str | None = None) -> None:
    query = Concession.query.filter_by(parish_id=parish_id(), contract_number=contract_number)
    if exclude_id:
        query = query.filter(Concession.id != exclude_id)
    if query.first():
        raise ConflictError("Concession with this contract number already exists in this parish")


def create_concession(payload: dict) -> Concession:
    values = validate_concession_create(payload)
    with transaction():
        grave = _grave_for_child(values["grave_id"], values["cemetery_id"])
        client_by_id(values["holder_client_id"], "holderClientId")
        _ensure_unique_contract_number(values["contract_number"])
        if values["status"] == ConcessionStatus.ACTIVE and has_active_concession(grave.id):
            raise ConflictError("Grave already has an active concession")
        values.setdefault("currency", current_app.config.get("DEFAULT_CURRENCY", "RON"))
        concession = Concession(parish_id=parish_id(), **values)
        db.session.add(concession)
        db.session.flush()
        recompute_grave_status(grave.id)
    log.info("concession_created", concession_id=concession.id, grave_id=values["grave_id"])
    return concession


def update_concession(concession_id: str, payload: dict) -> Concession:
    with transaction():
        concession = concession_by_id(concession_id, lock=True)
        values = validate_concession_update(payload, concession.start_date, concession.expiry_date)
        if values.get("contract_number"):
            _ensure_unique_contract_number(values["contract_number"], exclude_id=concession.id)
        status_changed = "status" in values and values["status"] != concession.status
        if status_changed and values["status"] == ConcessionStatus.ACTIVE:
            if has_active_concession(concession.grave_id, exclude_concession_id=concession.id):
                raise ConflictError("Grave already has an active concession")
        for key, value in values.items():
            setattr(concession, key, value)
        if status_changed:
            db.session.flush()
            recompute_grave_status(concession.grave_id)
    return concession


def delete_concession(concession_id: str) -> Concession:
    with transaction():
        concession = concession_by_id(concession_id, lock=True)
        grave_id = concession.grave_id
        db.session.delete(concession)
        db.session.flush()
        status = recompute_grave_status(grave_id, exclude_concession_id=concession_id)
    log.info("concession_deleted", concession_id=concession_id, grave_id=grave_id, grave_status=status.value)
    return concession
