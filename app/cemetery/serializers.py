from __future__ import annotations

from app.cemetery.payments import PaymentResult
from app.cemetery.reader import GraveOccupancy, OccupancyResult
from app.core.models import (
    Burial,
    Cemetery,
    CemeteryParcel,
    CemeteryRow,
    Concession,
    ConcessionPayment,
    Grave,
    GraveStatus,
)
from app.core.utils import iso, money


def cemetery_dict(cemetery: Cemetery) -> dict:
    return {
        "id": cemetery.id,
        "name": cemetery.name,
        "code": cemetery.code,
        "address": cemetery.address,
        "createdAt": iso(cemetery.created_at),
    }


def parcel_dict(parcel: CemeteryParcel) -> dict:
    return {"id": parcel.id, "cemeteryId": parcel.cemetery_id, "name": parcel.name, "code": parcel.code}


def row_dict(row: CemeteryRow) -> dict:
    return {
        "id": row.id,
        "cemeteryId": row.cemetery_id,
        "parcelId": row.parcel_id,
        "name": row.name,
        "code": row.code,
    }


def grave_dict(grave: Grave) -> dict:
    return {
        "id": grave.id,
        "cemeteryId": grave.cemetery_id,
        "parcelId": grave.parcel_id,
        "rowId": grave.row_id,
        "code": grave.code,
        "status": GraveStatus(grave.status).value,
        "width": money(grave.width),
        "length": money(grave.length),
        "positionX": grave.position_x,
        "positionY": grave.position_y,
        "notes": grave.notes,
        "createdAt": iso(grave.created_at),
        "updatedAt": iso(grave.updated_at),
    }


def burial_dict(burial: Burial) -> dict:
    return {
        "id": burial.id,
        "graveId": burial.grave_id,
        "cemeteryId": burial.cemetery_id,
        "deceasedClientId": burial.deceased_client_id,
        "deceasedName": burial.deceased_name,
        "deceasedBirthDate": iso(burial.deceased_birth_date),
        "deceasedDeathDate": iso(burial.deceased_death_date),
        "burialDate": iso(burial.burial_date),
        "burialCertificateNumber": burial.burial_certificate_number,
        "burialCertificateDate": iso(burial.burial_certificate_date),
        "notes": burial.notes,
    }


def concession_dict(concession: Concession) -> dict:
    return {
        "id": concession.id,
        "graveId": concession.grave_id,
        "cemeteryId": concession.cemetery_id,
        "holderClientId": concession.holder_client_id,
        "contractNumber": concession.contract_number,
        "contractDate": iso(concession.contract_date),
        "startDate": iso(concession.start_date),
        "expiryDate": iso(concession.expiry_date),
        "durationYears": concession.duration_years,
        "annualFee": money(concession.annual_fee),
        "currency": concession.currency,
        "status": concession.status.value,
        "notes": concession.notes,
    }


def payment_dict(payment: ConcessionPayment) -> dict:
    return {
        "id": payment.id,
        "concessionId": payment.concession_id,
        "paymentDate": iso(payment.payment_date),
        "amount": money(payment.amount),
        "currency": payment.currency,
        "periodStart": iso(payment.period_start),
        "periodEnd": iso(payment.period_end),
        "receiptNumber": payment.receipt_number,
        "receiptDate": iso(payment.receipt_date),
        "notes": payment.notes,
    }


def payment_result_dict(result: PaymentResult, requested: bool) -> dict:
    data = payment_dict(result.payment)
    data["ledger"] = {
        "requested": requested,
        "posted": result.ledger_entry is not None,
        "paymentNumber": result.ledger_entry.payment_number if result.ledger_entry else None,
        "error": result.ledger_error,
    }
    return data


def occupancy_dict(grave: GraveOccupancy) -> dict:
    concession = None
    if grave.concession is not None:
        concession = {
            "id": grave.concession.id,
            "contractNumber": grave.concession.contract_number,
            "startDate": iso(grave.concession.start_date),
            "expiryDate": iso(grave.concession.expiry_date),
            "status": grave.concession.status.value,
            "annualFee": money(grave.concession.annual_fee),
            "currency": grave.concession.currency,
            "holderClientId": grave.concession.holder_client_id,
            "holderName": grave.concession.holder_name,
        }
    return {
        "id": grave.id,
        "code": grave.code,
        "status": GraveStatus(grave.status).value,
        "cemeteryId": grave.cemetery_id,
        "cemeteryName": grave.cemetery_name,
        "parcelId": grave.parcel_id,
        "parcelName": grave.parcel_name,
        "rowId": grave.row_id,
        "rowName": grave.row_name,
        "width": money(grave.width),
        "length": money(grave.length),
        "positionX": grave.position_x,
        "positionY": grave.position_y,
        "notes": grave.notes,
        "concession": concession,
        "burials": [
            {
                "id": burial.id,
                "deceasedClientId": burial.deceased_client_id,
                "deceasedName": burial.deceased_name,
                "deceasedDeathDate": iso(burial.deceased_death_date),
                "burialDate": iso(burial.burial_date),
            }
            for burial in grave.burials
        ],
    }


def occupancy_result_dict(result: OccupancyResult) -> dict:
    return {
        "graves": [occupancy_dict(grave) for grave in result.graves],
        "statistics": result.statistics,
    }
