"""Concession payments and their optional accounting ledger entry.

A payment must cover a period that sits inside the concession's own
``[start_date, expiry_date]`` window. The payment is committed on its own;
the ledger entry is posted afterwards in a second unit of work so a ledger
failure never takes the payment down with it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone

import structlog
from flask import current_app

from app.cemetery.services import concession_by_id, parish_id
from app.cemetery.validation import validate_payment_create, validate_payment_update
from app.core.errors import CemeteryError, FieldError, NotFoundError, ValidationError
from app.core.extensions import db
from app.core.models import Concession, ConcessionPayment, LedgerPayment
from app.core.store import transaction

log = structlog.get_logger(__name__)

LEDGER_FAILURE_MESSAGE = "The accounting entry could not be posted"


def check_payment_period(concession: Concession, period_start: date, period_end: date) -> None:
    errors: list[FieldError] = []
    if period_start > period_end:
        errors.append(FieldError("periodStart", "Period start date must be before or equal to period end date"))
    if period_start < concession.start_date:
        errors.append(FieldError("periodStart", "Payment period must start within the concession period"))
    if period_end > concession.expiry_date:
        errors.append(FieldError("periodEnd", "Payment period must end within the concession period"))
    if errors:
        raise ValidationError.from_errors(errors)


class AccountingLedger:
    """Posts income entries for concession payments into ``ledger_payment``."""

    def generate_payment_number(self, parish: str) -> str:
        prefix = parish.replace("-", "")[:8].upper()
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
        return f"INC-{prefix}-{stamp}"

    def post_concession_payment(self, concession: Concession, payment: ConcessionPayment) -> LedgerPayment:
        entry = LedgerPayment(
            parish_id=payment.parish_id,
            payment_number=self.generate_payment_number(payment.parish_id),
            entry_date=payment.payment_date,
            type="income",
            category=current_app.config.get("LEDGER_CATEGORY", "Concesiune cimitir"),
            client_id=concession.holder_client_id,
            amount=payment.amount,
            currency=payment.currency,
            description=(
                f"Concession payment {concession.contract_number} "
                f"({payment.period_start.isoformat()} - {payment.period_end.isoformat()})"
            ),
            status="completed",
        )
        db.session.add(entry)
        return entry


@dataclass
class PaymentResult:
    payment: ConcessionPayment
    ledger_entry: LedgerPayment | None = None
    ledger_error: str | None = None


def record_concession_payment(concession_id: str, payload: dict, ledger: AccountingLedger | None = None) -> PaymentResult:
    values = validate_payment_create(payload)
    create_ledger_entry = values.pop("create_ledger_entry")
    with transaction():
        concession = concession_by_id(concession_id)
        check_payment_period(concession, values["period_start"], values["period_end"])
        values.setdefault("currency", concession.currency)
        payment = ConcessionPayment(parish_id=parish_id(), concession_id=concession.id, **values)
        db.session.add(payment)
    log.info("concession_payment_recorded", payment_id=payment.id, concession_id=concession_id)

    result = PaymentResult(payment=payment)
    if not create_ledger_entry:
        return result

    ledger = ledger or AccountingLedger()
    try:
        with transaction():
            result.ledger_entry = ledger.post_concession_payment(concession, payment)
    except CemeteryError as exc:
        result.ledger_error = exc.message
        log.warning("ledger_posting_failed", payment_id=payment.id, error=exc.message)
    except Exception:
        result.ledger_error = LEDGER_FAILURE_MESSAGE
        log.exception("ledger_posting_failed", payment_id=payment.id)
    return result


def list_concession_payments(concession_id: str) -> list[ConcessionPayment]:
    concession = concession_by_id(concession_id)
    return (
        ConcessionPayment.query.filter_by(parish_id=parish_id(), concession_id=concession.id)
        .order_by(ConcessionPayment.payment_date.desc(), ConcessionPayment.id.asc())
        .all()
    )


def list_payments(concession_id: str | None = None) -> list[ConcessionPayment]:
    """Parish-wide payment listing, optionally narrowed to one concession."""
    query = ConcessionPayment.query.filter_by(parish_id=parish_id())
    if concession_id:
        query = query.filter(ConcessionPayment.concession_id == concession_id)
    return query.order_by(ConcessionPayment.payment_date.desc(), ConcessionPayment.id.asc()).all()


def concession_payment_by_id(payment_id: str, lock: bool = False) -> ConcessionPayment:
    query = ConcessionPayment.query.filter_by(parish_id=parish_id(), id=payment_id)
    if lock:
        query = query.with_for_update()
    payment = query.first()
    if not payment:
        raise NotFoundError("Payment not found")
    return payment


def update_concession_payment(payment_id: str, payload: dict) -> ConcessionPayment:
    values = validate_payment_update(payload)
    with transaction():
        payment = concession_payment_by_id(payment_id, lock=True)
        if "period_start" in values or "period_end" in values:
            check_payment_period(
                payment.concession,
                values.get("period_start", payment.period_start),
                values.get("period_end", payment.period_end),
            )
        for key, value in values.items():
            setattr(payment, key, value)
    log.info("concession_payment_updated", payment_id=payment_id)
    return payment


def delete_concession_payment(payment_id: str) -> ConcessionPayment:
    # Ledger entries already posted for this payment are accounting records and stay.
    with transaction():
        payment = concession_payment_by_id(payment_id, lock=True)
        db.session.delete(payment)
    log.info("concession_payment_deleted", payment_id=payment_id, concession_id=payment.concession_id)
    return payment
