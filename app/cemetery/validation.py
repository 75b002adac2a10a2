"""Payload validation for cemetery mutations.

Validators are pure: they normalize a raw JSON payload into typed values or
raise :class:`ValidationError` with every offending field. Existence and
uniqueness checks live in the services, which own the database session.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

from app.core.errors import FieldError, ValidationError
from app.core.models import ConcessionStatus, GraveStatus

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")
TWO_PLACES = Decimal("0.01")
# Largest value a NUMERIC(10, 2) column holds.
MAX_AMOUNT = Decimal("99999999.99")


def parse_uuid(value: object, field_name: str) -> str:
    raw = value.strip() if isinstance(value, str) else ""
    if not raw:
        raise ValidationError.for_field(field_name, f"{field_name} is required")
    if not UUID_PATTERN.match(raw):
        raise ValidationError.for_field(field_name, f"Invalid {field_name} format")
    return raw.lower()


def parse_iso_date(value: object, field_name: str) -> date:
    raw = value.strip() if isinstance(value, str) else ""
    if not raw:
        raise ValidationError.for_field(field_name, f"{field_name} is required")
    if not DATE_PATTERN.match(raw):
        raise ValidationError.for_field(field_name, f"{field_name} must be in YYYY-MM-DD format")
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError.for_field(field_name, f"{field_name} is not a valid calendar date") from exc


def parse_amount(value: object, field_name: str) -> Decimal:
    # Floats are rejected: amounts travel as strings to avoid binary drift.
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValidationError.for_field(field_name, f"{field_name} must be a decimal string")
    raw = str(value).strip().replace(",", ".")
    if not raw:
        raise ValidationError.for_field(field_name, f"{field_name} is required")
    try:
        amount = Decimal(raw)
    except InvalidOperation as exc:
        raise ValidationError.for_field(field_name, f"Invalid amount in {field_name}") from exc
    if not amount.is_finite() or amount <= 0:
        raise ValidationError.for_field(field_name, f"{field_name} must be positive")
    if amount > MAX_AMOUNT:
        raise ValidationError.for_field(field_name, f"{field_name} must not exceed {MAX_AMOUNT}")
    try:
        quantized = amount.quantize(TWO_PLACES)
    except InvalidOperation as exc:
        raise ValidationError.for_field(field_name, f"Invalid amount in {field_name}") from exc
    if amount != quantized:
        raise ValidationError.for_field(field_name, f"{field_name} allows at most two decimals")
    return quantized


def parse_grave_status(value: object, field_name: str = "status") -> GraveStatus:
    try:
        return GraveStatus(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError.for_field(field_name, f"Invalid {field_name}") from exc


def parse_concession_status(value: object, field_name: str = "status") -> ConcessionStatus:
    try:
        return ConcessionStatus(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError.for_field(field_name, f"Invalid {field_name}") from exc


class _Collector:
    """Accumulates field errors so a payload reports all of them at once."""

    def __init__(self, payload: dict) -> None:
        self.payload = payload if isinstance(payload, dict) else {}
        self.errors: list[FieldError] = []
        self.values: dict[str, object] = {}

    def has(self, key: str) -> bool:
        return key in self.payload

    def take(self, key: str, parser, *, target: str, required: bool = True, nullable: bool = False) -> None:
        if key not in self.payload:
            if required:
                self.errors.append(FieldError(key, f"{key} is required"))
            return
        raw = self.payload[key]
        if nullable and (raw is None or (isinstance(raw, str) and not raw.strip())):
            self.values[target] = None
            return
        try:
            self.values[target] = parser(raw, key)
        except ValidationError as exc:
            self.errors.extend(exc.errors)

    def text(self, key: str, *, target: str, max_length: int | None = None, required: bool = True, nullable: bool = False) -> None:
        def _parse(raw: object, field_name: str) -> str:
            if not isinstance(raw, str):
                raise ValidationError.for_field(field_name, f"{field_name} must be a string")
            cleaned = raw.strip()
            if not cleaned and not nullable:
                raise ValidationError.for_field(field_name, f"{field_name} is required")
            if max_length is not None and len(cleaned) > max_length:
                raise ValidationError.for_field(field_name, f"{field_name} must be at most {max_length} characters")
            return cleaned

        self.take(key, _parse, target=target, required=required, nullable=nullable)

    def error(self, field: str, message: str) -> None:
        self.errors.append(FieldError(field, message))

    def result(self) -> dict[str, object]:
        if self.errors:
            raise ValidationError.from_errors(self.errors)
        return self.values


def _positive_int(raw: object, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int) or raw <= 0:
        raise ValidationError.for_field(field_name, f"{field_name} must be a positive integer")
    return raw


def _optional_int(raw: object, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValidationError.for_field(field_name, f"{field_name} must be an integer")
    return raw


def _currency(raw: object, field_name: str) -> str:
    value = raw.strip().upper() if isinstance(raw, str) else ""
    if not CURRENCY_PATTERN.match(value):
        raise ValidationError.for_field(field_name, f"{field_name} must be a 3-letter code")
    return value


def validate_concession_create(payload: dict) -> dict[str, object]:
    c = _Collector(payload)
    c.take("graveId", parse_uuid, target="grave_id")
    c.take("cemeteryId", parse_uuid, target="cemetery_id")
    c.take("holderClientId", parse_uuid, target="holder_client_id")
    c.text("contractNumber", target="contract_number", max_length=50)
    c.take("contractDate", parse_iso_date, target="contract_date")
    c.take("startDate", parse_iso_date, target="start_date")
    c.take("expiryDate", parse_iso_date, target="expiry_date")
    c.take("durationYears", _positive_int, target="duration_years")
    c.take("annualFee", parse_amount, target="annual_fee")
    c.take("currency", _currency, target="currency", required=False)
    c.take("status", parse_concession_status, target="status", required=False)
    c.text("notes", target="notes", required=False, nullable=True)
    start, expiry = c.values.get("start_date"), c.values.get("expiry_date")
    if start and expiry and expiry < start:
        c.error("expiryDate", "expiryDate must be on or after startDate")
    values = c.result()
    values.setdefault("status", ConcessionStatus.ACTIVE)
    return values


def validate_concession_update(payload: dict, current_start: date, current_expiry: date) -> dict[str, object]:
    c = _Collector(payload)
    c.text("contractNumber", target="contract_number", max_length=50, required=False)
    c.take("contractDate", parse_iso_date, target="contract_date", required=False)
    c.take("startDate", parse_iso_date, target="start_date", required=False)
    c.take("expiryDate", parse_iso_date, target="expiry_date", required=False)
    c.take("durationYears", _positive_int, target="duration_years", required=False)
    c.take("annualFee", parse_amount, target="annual_fee", required=False)
    c.take("currency", _currency, target="currency", required=False)
    c.take("status", parse_concession_status, target="status", required=False)
    c.text("notes", target="notes", required=False, nullable=True)
    start = c.values.get("start_date", current_start)
    expiry = c.values.get("expiry_date", current_expiry)
    if ("start_date" in c.values or "expiry_date" in c.values) and expiry < start:
        c.error("expiryDate", "expiryDate must be on or after startDate")
    return c.result()


def validate_burial_create(payload: dict) -> dict[str, object]:
    c = _Collector(payload)
    c.take("graveId", parse_uuid, target="grave_id")
    c.take("cemeteryId", parse_uuid, target="cemetery_id")
    c.take("deceasedClientId", parse_uuid, target="deceased_client_id", required=False, nullable=True)
    c.text("deceasedName", target="deceased_name", max_length=255)
    c.take("deceasedBirthDate", parse_iso_date, target="deceased_birth_date", required=False, nullable=True)
    c.take("deceasedDeathDate", parse_iso_date, target="deceased_death_date")
    c.take("burialDate", parse_iso_date, target="burial_date")
    c.text("burialCertificateNumber", target="burial_certificate_number", max_length=50, required=False, nullable=True)
    c.take("burialCertificateDate", parse_iso_date, target="burial_certificate_date", required=False, nullable=True)
    c.text("notes", target="notes", required=False, nullable=True)
    death, burial = c.values.get("deceased_death_date"), c.values.get("burial_date")
    if death and burial and burial < death:
        c.error("burialDate", "burialDate must be on or after deceasedDeathDate")
    return c.result()


def validate_burial_update(payload: dict, current_death: date, current_burial: date) -> dict[str, object]:
    c = _Collector(payload)
    c.take("deceasedClientId", parse_uuid, target="deceased_client_id", required=False, nullable=True)
    c.text("deceasedName", target="deceased_name", max_length=255, required=False)
    c.take("deceasedBirthDate", parse_iso_date, target="deceased_birth_date", required=False, nullable=True)
    c.take("deceasedDeathDate", parse_iso_date, target="deceased_death_date", required=False)
    c.take("burialDate", parse_iso_date, target="burial_date", required=False)
    c.text("burialCertificateNumber", target="burial_certificate_number", max_length=50, required=False, nullable=True)
    c.take("burialCertificateDate", parse_iso_date, target="burial_certificate_date", required=False, nullable=True)
    c.text("notes", target="notes", required=False, nullable=True)
    death = c.values.get("deceased_death_date", current_death)
    burial = c.values.get("burial_date", current_burial)
    if ("deceased_death_date" in c.values or "burial_date" in c.values) and burial < death:
        c.error("burialDate", "burialDate must be on or after deceasedDeathDate")
    return c.result()


def validate_payment_create(payload: dict) -> dict[str, object]:
    c = _Collector(payload)
    c.take("paymentDate", parse_iso_date, target="payment_date")
    c.take("amount", parse_amount, target="amount")
    c.take("currency", _currency, target="currency", required=False)
    c.take("periodStart", parse_iso_date, target="period_start")
    c.take("periodEnd", parse_iso_date, target="period_end")
    c.text("receiptNumber", target="receipt_number", max_length=50, required=False, nullable=True)
    c.take("receiptDate", parse_iso_date, target="receipt_date", required=False, nullable=True)
    c.text("notes", target="notes", required=False, nullable=True)
    create_ledger = c.payload.get("createAccountingPayment", True)
    if not isinstance(create_ledger, bool):
        c.error("createAccountingPayment", "createAccountingPayment must be a boolean")
    values = c.result()
    values["create_ledger_entry"] = create_ledger
    return values


def validate_payment_update(payload: dict) -> dict[str, object]:
    c = _Collector(payload)
    c.take("paymentDate", parse_iso_date, target="payment_date", required=False)
    c.take("amount", parse_amount, target="amount", required=False)
    c.take("currency", _currency, target="currency", required=False)
    c.take("periodStart", parse_iso_date, target="period_start", required=False)
    c.take("periodEnd", parse_iso_date, target="period_end", required=False)
    c.text("receiptNumber", target="receipt_number", max_length=50, required=False, nullable=True)
    c.take("receiptDate", parse_iso_date, target="receipt_date", required=False, nullable=True)
    c.text("notes", target="notes", required=False, nullable=True)
    return c.result()


def validate_grave_create(payload: dict) -> dict[str, object]:
    c = _Collector(payload)
    c.take("rowId", parse_uuid, target="row_id")
    c.text("code", target="code", max_length=20)
    _grave_dimensions(c)
    if c.has("status"):
        c.error("status", "status is derived from burials and concessions")
    return c.result()


def validate_grave_update(payload: dict) -> dict[str, object]:
    c = _Collector(payload)
    c.text("code", target="code", max_length=20, required=False)
    _grave_dimensions(c)
    if c.has("status"):
        c.error("status", "status is derived from burials and concessions")
    return c.result()


def _grave_dimensions(c: _Collector) -> None:
    c.take("width", parse_amount, target="width", required=False, nullable=True)
    c.take("length", parse_amount, target="length", required=False, nullable=True)
    c.take("positionX", _optional_int, target="position_x", required=False, nullable=True)
    c.take("positionY", _optional_int, target="position_y", required=False, nullable=True)
    c.text("notes", target="notes", required=False, nullable=True)


def validate_structure(payload: dict, *, with_address: bool = False) -> dict[str, object]:
    """Shared validator for cemetery, parcel and row creation."""
    c = _Collector(payload)
    c.text("name", target="name", max_length=255)
    c.text("code", target="code", max_length=20)
    if with_address:
        c.text("address", target="address", max_length=255, required=False, nullable=True)
    return c.result()


def validate_structure_update(payload: dict, *, with_address: bool = False) -> dict[str, object]:
    c = _Collector(payload)
    c.text("name", target="name", max_length=255, required=False)
    c.text("code", target="code", max_length=20, required=False)
    if with_address:
        c.text("address", target="address", max_length=255, required=False, nullable=True)
    return c.result()


def validate_list_filters(args, *, id_filters: tuple[tuple[str, str], ...], statuses=None) -> dict[str, object]:
    """Parse optional UUID filters (and a status when ``statuses`` is a parser) from a query string."""
    filters: dict[str, object] = {}
    errors: list[FieldError] = []
    for key, target in id_filters:
        raw = (args.get(key) or "").strip()
        if not raw:
            continue
        try:
            filters[target] = parse_uuid(raw, key)
        except ValidationError as exc:
            errors.extend(exc.errors)
    status_raw = (args.get("status") or "").strip()
    if statuses is not None and status_raw:
        try:
            filters["status"] = statuses(status_raw)
        except ValidationError as exc:
            errors.extend(exc.errors)
    if errors:
        raise ValidationError.from_errors(errors)
    return filters


def validate_occupancy_filters(args) -> dict[str, object]:
    filters: dict[str, object] = {}
    errors: list[FieldError] = []
    for key, target in (("cemeteryId", "cemetery_id"), ("parcelId", "parcel_id"), ("rowId", "row_id")):
        raw = (args.get(key) or "").strip()
        if not raw:
            continue
        try:
            filters[target] = parse_uuid(raw, key)
        except ValidationError as exc:
            errors.extend(exc.errors)
    status_raw = (args.get("status") or "").strip()
    if status_raw:
        try:
            filters["status"] = parse_grave_status(status_raw)
        except ValidationError as exc:
            errors.extend(exc.errors)
    search = (args.get("search") or "").strip()
    if search:
        filters["search"] = search
    if errors:
        raise ValidationError.from_errors(errors)
    return filters
