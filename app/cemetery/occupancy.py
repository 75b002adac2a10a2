"""Grave occupancy state machine.

``Grave.status`` is derived, never set by callers:

* at least one burial            -> ``occupied``
* else an active concession      -> ``reserved``
* else                           -> ``free``

``maintenance`` is an administrative override. The engine never assigns it
and never overwrites it; only :func:`set_grave_maintenance` enters or leaves
it. Every function here expects to run inside ``app.core.store.transaction``.
"""

from __future__ import annotations

from datetime import date

import structlog
from sqlalchemy import func

from app.core.errors import NotFoundError
from app.core.extensions import db
from app.core.models import Burial, Concession, ConcessionStatus, Grave, GraveStatus

log = structlog.get_logger(__name__)


def derive_grave_status(has_burial: bool, has_active_concession: bool) -> GraveStatus:
    # Physical occupancy dominates contractual reservation.
    if has_burial:
        return GraveStatus.OCCUPIED
    if has_active_concession:
        return GraveStatus.RESERVED
    return GraveStatus.FREE


def lock_grave(grave_id: str) -> Grave:
    grave = (
        db.session.query(Grave)
        .filter(Grave.id == grave_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if grave is None:
        raise NotFoundError("Grave not found")
    return grave


def count_burials(grave_id: str) -> int:
    return db.session.query(func.count(Burial.id)).filter(Burial.grave_id == grave_id).scalar() or 0


def has_active_concession(grave_id: str, exclude_concession_id: str | None = None) -> bool:
    query = db.session.query(Concession.id).filter(
        Concession.grave_id == grave_id,
        Concession.status == ConcessionStatus.ACTIVE,
    )
    if exclude_concession_id:
        query = query.filter(Concession.id != exclude_concession_id)
    return query.first() is not None


def recompute_grave_status(grave_id: str, exclude_concession_id: str | None = None) -> GraveStatus:
    """Re-derive and persist the status of one grave from its current children."""
    db.session.flush()
    grave = lock_grave(grave_id)
    if grave.status == GraveStatus.MAINTENANCE:
        log.info("grave_status_recompute_skipped", grave_id=grave_id, status=grave.status.value)
        return grave.status

    burials = count_burials(grave_id)
    reserved = False
    if burials == 0:
        reserved = has_active_concession(grave_id, exclude_concession_id)
    new_status = derive_grave_status(burials > 0, reserved)
    if grave.status != new_status:
        log.info(
            "grave_status_recomputed",
            grave_id=grave_id,
            from_status=grave.status.value,
            to_status=new_status.value,
        )
        grave.status = new_status
        db.session.flush()
    return new_status


def set_grave_maintenance(grave: Grave, enabled: bool) -> GraveStatus:
    if enabled:
        if grave.status != GraveStatus.MAINTENANCE:
            grave.status = GraveStatus.MAINTENANCE
            db.session.flush()
        return grave.status
    if grave.status != GraveStatus.MAINTENANCE:
        return grave.status
    # Leaving maintenance: park on free, then let the engine derive the real state.
    grave.status = GraveStatus.FREE
    db.session.flush()
    return recompute_grave_status(grave.id)


def expire_concessions(as_of: date, parish_id: str | None = None) -> list[Concession]:
    """Mark active concessions past their expiry date as expired and re-derive their graves."""
    query = Concession.query.filter(
        Concession.status == ConcessionStatus.ACTIVE,
        Concession.expiry_date < as_of,
    )
    if parish_id:
        query = query.filter(Concession.parish_id == parish_id)
    expired = query.order_by(Concession.grave_id.asc(), Concession.id.asc()).all()
    for concession in expired:
        concession.status = ConcessionStatus.EXPIRED
    db.session.flush()
    for grave_id in sorted({concession.grave_id for concession in expired}):
        recompute_grave_status(grave_id)
    if expired:
        log.info("concessions_expired", count=len(expired), as_of=as_of.isoformat())
    return expired
