from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum

from flask_login import UserMixin
from sqlalchemy import CheckConstraint, Enum as SAEnum, ForeignKey, Index, UniqueConstraint, event, inspect
from sqlalchemy.orm import Mapped, mapped_column, relationship
from werkzeug.security import generate_password_hash

from app.core.extensions import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class GraveStatus(str, Enum):
    FREE = "free"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"


class ConcessionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    PENDING = "pending"


class Parish(db.Model):
    # Tenant: every cemetery record is scoped to one parish
    __tablename__ = "parish"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(db.String(120), unique=True, nullable=False)
    code: Mapped[str] = mapped_column(db.String(30), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    memberships = relationship("Membership", back_populates="parish")


class User(UserMixin, db.Model):
    __tablename__ = "user_account"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(db.String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    password_hash: Mapped[str] = mapped_column(db.String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    memberships = relationship("Membership", back_populates="user")


class Membership(db.Model):
    __tablename__ = "membership"
    __table_args__ = (UniqueConstraint("user_id", "parish_id", name="uq_membership_user_parish"),)

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("user_account.id"), nullable=False)
    parish_id: Mapped[str] = mapped_column(ForeignKey("parish.id"), nullable=False)
    role: Mapped[str] = mapped_column(db.String(30), nullable=False, default="operator")

    user = relationship("User", back_populates="memberships")
    parish = relationship("Parish", back_populates="memberships")


class Client(db.Model):
    # Holder of a concession or deceased person of a burial
    __tablename__ = "client"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    parish_id: Mapped[str] = mapped_column(ForeignKey("parish.id"), nullable=False, index=True)
    first_name: Mapped[str | None] = mapped_column(db.String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(db.String(100), nullable=True)
    company_name: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.company_name or ""


class Cemetery(db.Model):
    __tablename__ = "cemetery"
    __table_args__ = (UniqueConstraint("parish_id", "code", name="uq_cemetery_parish_code"),)

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    parish_id: Mapped[str] = mapped_column(ForeignKey("parish.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    code: Mapped[str] = mapped_column(db.String(20), nullable=False)
    address: Mapped[str] = mapped_column(db.String(255), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    parcels = relationship("CemeteryParcel", back_populates="cemetery")


class CemeteryParcel(db.Model):
    __tablename__ = "cemetery_parcel"
    __table_args__ = (UniqueConstraint("cemetery_id", "code", name="uq_parcel_cemetery_code"),)

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    parish_id: Mapped[str] = mapped_column(ForeignKey("parish.id"), nullable=False, index=True)
    cemetery_id: Mapped[str] = mapped_column(ForeignKey("cemetery.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(db.String(100), nullable=False)
    code: Mapped[str] = mapped_column(db.String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    cemetery = relationship("Cemetery", back_populates="parcels")
    rows = relationship("CemeteryRow", back_populates="parcel")


class CemeteryRow(db.Model):
    __tablename__ = "cemetery_row"
    __table_args__ = (UniqueConstraint("parcel_id", "code", name="uq_row_parcel_code"),)

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    parish_id: Mapped[str] = mapped_column(ForeignKey("parish.id"), nullable=False, index=True)
    cemetery_id: Mapped[str] = mapped_column(ForeignKey("cemetery.id"), nullable=False, index=True)
    parcel_id: Mapped[str] = mapped_column(ForeignKey("cemetery_parcel.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(db.String(100), nullable=False)
    code: Mapped[str] = mapped_column(db.String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    parcel = relationship("CemeteryParcel", back_populates="rows")


class Grave(db.Model):
    # Aggregate root for occupancy; status is derived, see app.cemetery.occupancy
    __tablename__ = "cemetery_grave"
    __table_args__ = (
        UniqueConstraint("row_id", "code", name="uq_grave_row_code"),
        Index("ix_grave_parish_cemetery_status", "parish_id", "cemetery_id", "status"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    parish_id: Mapped[str] = mapped_column(ForeignKey("parish.id"), nullable=False, index=True)
    cemetery_id: Mapped[str] = mapped_column(ForeignKey("cemetery.id"), nullable=False)
    parcel_id: Mapped[str] = mapped_column(ForeignKey("cemetery_parcel.id"), nullable=False, index=True)
    row_id: Mapped[str] = mapped_column(ForeignKey("cemetery_row.id"), nullable=False, index=True)
    code: Mapped[str] = mapped_column(db.String(20), nullable=False)
    status: Mapped[GraveStatus] = mapped_column(
        SAEnum(GraveStatus, name="grave_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=GraveStatus.FREE,
    )
    width: Mapped[Decimal | None] = mapped_column(db.Numeric(10, 2), nullable=True)
    length: Mapped[Decimal | None] = mapped_column(db.Numeric(10, 2), nullable=True)
    position_x: Mapped[int | None] = mapped_column(nullable=True)
    position_y: Mapped[int | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    cemetery = relationship("Cemetery")
    parcel = relationship("CemeteryParcel")
    row = relationship("CemeteryRow")
    status_events = relationship("GraveStatusEvent", back_populates="grave")


class Concession(db.Model):
    # Burial-rights contract; at most one active per grave (checked in services)
    __tablename__ = "cemetery_concession"
    __table_args__ = (
        UniqueConstraint("parish_id", "contract_number", name="uq_concession_parish_contract"),
        CheckConstraint("expiry_date >= start_date", name="ck_concession_dates"),
        Index("ix_concession_grave_status", "grave_id", "status"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    parish_id: Mapped[str] = mapped_column(ForeignKey("parish.id"), nullable=False, index=True)
    grave_id: Mapped[str] = mapped_column(ForeignKey("cemetery_grave.id"), nullable=False)
    cemetery_id: Mapped[str] = mapped_column(ForeignKey("cemetery.id"), nullable=False)
    holder_client_id: Mapped[str] = mapped_column(ForeignKey("client.id"), nullable=False)
    contract_number: Mapped[str] = mapped_column(db.String(50), nullable=False)
    contract_date: Mapped[date] = mapped_column(nullable=False)
    start_date: Mapped[date] = mapped_column(nullable=False)
    expiry_date: Mapped[date] = mapped_column(nullable=False)
    duration_years: Mapped[int] = mapped_column(nullable=False)
    annual_fee: Mapped[Decimal] = mapped_column(db.Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(db.String(3), nullable=False, default="RON")
    status: Mapped[ConcessionStatus] = mapped_column(
        SAEnum(ConcessionStatus, name="concession_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ConcessionStatus.ACTIVE,
    )
    notes: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    grave = relationship("Grave")
    holder = relationship("Client")
    payments = relationship("ConcessionPayment", back_populates="concession", cascade="all, delete-orphan")


class Burial(db.Model):
    __tablename__ = "cemetery_burial"
    __table_args__ = (
        CheckConstraint("burial_date >= deceased_death_date", name="ck_burial_dates"),
        Index("ix_burial_grave_date", "grave_id", "burial_date"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    parish_id: Mapped[str] = mapped_column(ForeignKey("parish.id"), nullable=False, index=True)
    grave_id: Mapped[str] = mapped_column(ForeignKey("cemetery_grave.id"), nullable=False)
    cemetery_id: Mapped[str] = mapped_column(ForeignKey("cemetery.id"), nullable=False)
    deceased_client_id: Mapped[str | None] = mapped_column(ForeignKey("client.id"), nullable=True)
    deceased_name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    deceased_birth_date: Mapped[date | None] = mapped_column(nullable=True)
    deceased_death_date: Mapped[date] = mapped_column(nullable=False)
    burial_date: Mapped[date] = mapped_column(nullable=False)
    burial_certificate_number: Mapped[str | None] = mapped_column(db.String(50), nullable=True)
    burial_certificate_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    grave = relationship("Grave")
    deceased_client = relationship("Client")


class ConcessionPayment(db.Model):
    __tablename__ = "cemetery_concession_payment"
    __table_args__ = (
        CheckConstraint("period_end >= period_start", name="ck_concession_payment_period"),
        Index("ix_concession_payment_concession_date", "concession_id", "payment_date"),
    )

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    parish_id: Mapped[str] = mapped_column(ForeignKey("parish.id"), nullable=False, index=True)
    concession_id: Mapped[str] = mapped_column(ForeignKey("cemetery_concession.id"), nullable=False)
    payment_date: Mapped[date] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(db.Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(db.String(3), nullable=False, default="RON")
    period_start: Mapped[date] = mapped_column(nullable=False)
    period_end: Mapped[date] = mapped_column(nullable=False)
    receipt_number: Mapped[str | None] = mapped_column(db.String(50), nullable=True)
    receipt_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    concession = relationship("Concession", back_populates="payments")


class LedgerPayment(db.Model):
    # Accounting-side income entry posted after a concession payment
    __tablename__ = "ledger_payment"
    __table_args__ = (UniqueConstraint("payment_number", name="uq_ledger_payment_number"),)

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    parish_id: Mapped[str] = mapped_column(ForeignKey("parish.id"), nullable=False, index=True)
    payment_number: Mapped[str] = mapped_column(db.String(50), nullable=False)
    entry_date: Mapped[date] = mapped_column(nullable=False)
    type: Mapped[str] = mapped_column(db.String(20), nullable=False, default="income")
    category: Mapped[str] = mapped_column(db.String(100), nullable=False)
    client_id: Mapped[str | None] = mapped_column(ForeignKey("client.id"), nullable=True)
    amount: Mapped[Decimal] = mapped_column(db.Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(db.String(3), nullable=False, default="RON")
    description: Mapped[str] = mapped_column(db.String(500), nullable=False, default="")
    status: Mapped[str] = mapped_column(db.String(20), nullable=False, default="completed")
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class GraveStatusEvent(db.Model):
    # Audit trail of every Grave.status transition
    __tablename__ = "grave_status_event"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_id)
    parish_id: Mapped[str] = mapped_column(ForeignKey("parish.id"), nullable=False, index=True)
    grave_id: Mapped[str] = mapped_column(ForeignKey("cemetery_grave.id"), nullable=False, index=True)
    from_status: Mapped[str | None] = mapped_column(db.String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(db.String(20), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False, index=True)

    grave = relationship("Grave", back_populates="status_events")


@event.listens_for(Grave, "after_update")
def grave_after_update(_mapper, connection, target: Grave) -> None:
    history = inspect(target).attrs.status.history
    if not history.has_changes():
        return
    previous = history.deleted[0] if history.deleted else None
    connection.execute(
        GraveStatusEvent.__table__.insert().values(
            id=new_id(),
            parish_id=target.parish_id,
            grave_id=target.id,
            from_status=GraveStatus(previous).value if previous else None,
            to_status=GraveStatus(target.status).value,
            changed_at=utcnow(),
        )
    )


def seed_demo_data(session) -> dict[str, str]:
    """Create one parish with a small cemetery covering every occupancy state."""
    parish = Parish(name="Parohia Sfantul Nicolae", code="SFN")
    session.add(parish)
    session.flush()

    admin = User(
        email="admin@parohie.local",
        full_name="Admin Parohie",
        password_hash=generate_password_hash("admin123"),
    )
    operator = User(
        email="operator@parohie.local",
        full_name="Operator Cimitir",
        password_hash=generate_password_hash("operator123"),
    )
    viewer = User(
        email="viewer@parohie.local",
        full_name="Consultant Cimitir",
        password_hash=generate_password_hash("viewer123"),
    )
    session.add_all([admin, operator, viewer])
    session.flush()
    session.add_all(
        [
            Membership(user_id=admin.id, parish_id=parish.id, role="admin"),
            Membership(user_id=operator.id, parish_id=parish.id, role="operator"),
            Membership(user_id=viewer.id, parish_id=parish.id, role="viewer"),
        ]
    )

    cemetery = Cemetery(parish_id=parish.id, name="Cimitirul Central", code="CC", address="Str. Bisericii 1")
    session.add(cemetery)
    session.flush()
    parcel = CemeteryParcel(parish_id=parish.id, cemetery_id=cemetery.id, name="Parcela A", code="A")
    session.add(parcel)
    session.flush()
    row = CemeteryRow(parish_id=parish.id, cemetery_id=cemetery.id, parcel_id=parcel.id, name="Rand 1", code="R1")
    session.add(row)
    session.flush()

    graves = {
        code: Grave(
            parish_id=parish.id,
            cemetery_id=cemetery.id,
            parcel_id=parcel.id,
            row_id=row.id,
            code=code,
            status=status,
            width=Decimal("1.20"),
            length=Decimal("2.40"),
            position_x=index,
            position_y=1,
        )
        for index, (code, status) in enumerate(
            [
                ("A-1", GraveStatus.OCCUPIED),
                ("A-2", GraveStatus.RESERVED),
                ("A-3", GraveStatus.FREE),
                ("A-4", GraveStatus.MAINTENANCE),
            ],
            start=1,
        )
    }
    session.add_all(graves.values())
    session.flush()

    holder = Client(parish_id=parish.id, first_name="Maria", last_name="Popescu")
    second_holder = Client(parish_id=parish.id, company_name="Familia Ionescu SRL")
    deceased = Client(parish_id=parish.id, first_name="Ion", last_name="Popescu")
    session.add_all([holder, second_holder, deceased])
    session.flush()

    occupied_concession = Concession(
        parish_id=parish.id,
        grave_id=graves["A-1"].id,
        cemetery_id=cemetery.id,
        holder_client_id=holder.id,
        contract_number="CC-2020-001",
        contract_date=date(2020, 1, 1),
        start_date=date(2020, 1, 1),
        expiry_date=date(2045, 1, 1),
        duration_years=25,
        annual_fee=Decimal("150.00"),
        currency="RON",
        status=ConcessionStatus.ACTIVE,
    )
    reserved_concession = Concession(
        parish_id=parish.id,
        grave_id=graves["A-2"].id,
        cemetery_id=cemetery.id,
        holder_client_id=second_holder.id,
        contract_number="CC-2024-002",
        contract_date=date(2024, 1, 1),
        start_date=date(2024, 1, 1),
        expiry_date=date(2026, 1, 1),
        duration_years=2,
        annual_fee=Decimal("120.00"),
        currency="RON",
        status=ConcessionStatus.ACTIVE,
    )
    session.add_all([occupied_concession, reserved_concession])
    session.add(
        Burial(
            parish_id=parish.id,
            grave_id=graves["A-1"].id,
            cemetery_id=cemetery.id,
            deceased_client_id=deceased.id,
            deceased_name="Ion Popescu",
            deceased_birth_date=date(1940, 3, 12),
            deceased_death_date=date(2021, 5, 2),
            burial_date=date(2021, 5, 5),
            burial_certificate_number="AD-2021-117",
        )
    )
    session.commit()
    return {
        "parish_id": parish.id,
        "cemetery_id": cemetery.id,
        "parcel_id": parcel.id,
        "row_id": row.id,
        "holder_id": holder.id,
        "second_holder_id": second_holder.id,
        "deceased_id": deceased.id,
        **{f"grave_{code}": grave.id for code, grave in graves.items()},
        "occupied_concession_id": occupied_concession.id,
        "reserved_concession_id": reserved_concession.id,
    }
