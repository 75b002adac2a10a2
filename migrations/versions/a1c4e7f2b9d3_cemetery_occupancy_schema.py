"""cemetery occupancy schema

Revision ID: a1c4e7f2b9d3
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1c4e7f2b9d3"
down_revision = None
branch_labels = None
depends_on = None


GRAVE_STATUS = sa.Enum("free", "occupied", "reserved", "maintenance", name="grave_status")
CONCESSION_STATUS = sa.Enum("active", "expired", "cancelled", "pending", name="concession_status")


def _id_column():
    return sa.Column("id", sa.String(length=36), primary_key=True)


def _parish_column():
    return sa.Column("parish_id", sa.String(length=36), sa.ForeignKey("parish.id"), nullable=False)


def upgrade():
    op.create_table(
        "parish",
        _id_column(),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
        sa.Column("code", sa.String(length=30), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "user_account",
        _id_column(),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=120), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "membership",
        _id_column(),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("user_account.id"), nullable=False),
        _parish_column(),
        sa.Column("role", sa.String(length=30), nullable=False, server_default="operator"),
        sa.UniqueConstraint("user_id", "parish_id", name="uq_membership_user_parish"),
    )
    op.create_table(
        "client",
        _id_column(),
        _parish_column(),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("company_name", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_client_parish_id", "client", ["parish_id"], unique=False)

    op.create_table(
        "cemetery",
        _id_column(),
        _parish_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("parish_id", "code", name="uq_cemetery_parish_code"),
    )
    op.create_index("ix_cemetery_parish_id", "cemetery", ["parish_id"], unique=False)

    op.create_table(
        "cemetery_parcel",
        _id_column(),
        _parish_column(),
        sa.Column("cemetery_id", sa.String(length=36), sa.ForeignKey("cemetery.id"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("cemetery_id", "code", name="uq_parcel_cemetery_code"),
    )
    with op.batch_alter_table("cemetery_parcel", schema=None) as batch_op:
        batch_op.create_index("ix_cemetery_parcel_parish_id", ["parish_id"], unique=False)
        batch_op.create_index("ix_cemetery_parcel_cemetery_id", ["cemetery_id"], unique=False)

    op.create_table(
        "cemetery_row",
        _id_column(),
        _parish_column(),
        sa.Column("cemetery_id", sa.String(length=36), sa.ForeignKey("cemetery.id"), nullable=False),
        sa.Column("parcel_id", sa.String(length=36), sa.ForeignKey("cemetery_parcel.id"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("parcel_id", "code", name="uq_row_parcel_code"),
    )
    with op.batch_alter_table("cemetery_row", schema=None) as batch_op:
        batch_op.create_index("ix_cemetery_row_parish_id", ["parish_id"], unique=False)
        batch_op.create_index("ix_cemetery_row_cemetery_id", ["cemetery_id"], unique=False)
        batch_op.create_index("ix_cemetery_row_parcel_id", ["parcel_id"], unique=False)

    op.create_table(
        "cemetery_grave",
        _id_column(),
        _parish_column(),
        sa.Column("cemetery_id", sa.String(length=36), sa.ForeignKey("cemetery.id"), nullable=False),
        sa.Column("parcel_id", sa.String(length=36), sa.ForeignKey("cemetery_parcel.id"), nullable=False),
        sa.Column("row_id", sa.String(length=36), sa.ForeignKey("cemetery_row.id"), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("status", GRAVE_STATUS, nullable=False, server_default="free"),
        sa.Column("width", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("length", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("position_x", sa.Integer(), nullable=True),
        sa.Column("position_y", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("row_id", "code", name="uq_grave_row_code"),
    )
    with op.batch_alter_table("cemetery_grave", schema=None) as batch_op:
        batch_op.create_index("ix_cemetery_grave_parish_id", ["parish_id"], unique=False)
        batch_op.create_index("ix_cemetery_grave_parcel_id", ["parcel_id"], unique=False)
        batch_op.create_index("ix_cemetery_grave_row_id", ["row_id"], unique=False)
        batch_op.create_index(
            "ix_grave_parish_cemetery_status",
            ["parish_id", "cemetery_id", "status"],
            unique=False,
        )

    op.create_table(
        "cemetery_concession",
        _id_column(),
        _parish_column(),
        sa.Column("grave_id", sa.String(length=36), sa.ForeignKey("cemetery_grave.id"), nullable=False),
        sa.Column("cemetery_id", sa.String(length=36), sa.ForeignKey("cemetery.id"), nullable=False),
        sa.Column("holder_client_id", sa.String(length=36), sa.ForeignKey("client.id"), nullable=False),
        sa.Column("contract_number", sa.String(length=50), nullable=False),
        sa.Column("contract_date", sa.Date(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=False),
        sa.Column("duration_years", sa.Integer(), nullable=False),
        sa.Column("annual_fee", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="RON"),
        sa.Column("status", CONCESSION_STATUS, nullable=False, server_default="active"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("parish_id", "contract_number", name="uq_concession_parish_contract"),
        sa.CheckConstraint("expiry_date >= start_date", name="ck_concession_dates"),
    )
    with op.batch_alter_table("cemetery_concession", schema=None) as batch_op:
        batch_op.create_index("ix_cemetery_concession_parish_id", ["parish_id"], unique=False)
        batch_op.create_index("ix_concession_grave_status", ["grave_id", "status"], unique=False)

    op.create_table(
        "cemetery_burial",
        _id_column(),
        _parish_column(),
        sa.Column("grave_id", sa.String(length=36), sa.ForeignKey("cemetery_grave.id"), nullable=False),
        sa.Column("cemetery_id", sa.String(length=36), sa.ForeignKey("cemetery.id"), nullable=False),
        sa.Column("deceased_client_id", sa.String(length=36), sa.ForeignKey("client.id"), nullable=True),
        sa.Column("deceased_name", sa.String(length=255), nullable=False),
        sa.Column("deceased_birth_date", sa.Date(), nullable=True),
        sa.Column("deceased_death_date", sa.Date(), nullable=False),
        sa.Column("burial_date", sa.Date(), nullable=False),
        sa.Column("burial_certificate_number", sa.String(length=50), nullable=True),
        sa.Column("burial_certificate_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("burial_date >= deceased_death_date", name="ck_burial_dates"),
    )
    with op.batch_alter_table("cemetery_burial", schema=None) as batch_op:
        batch_op.create_index("ix_cemetery_burial_parish_id", ["parish_id"], unique=False)
        batch_op.create_index("ix_burial_grave_date", ["grave_id", "burial_date"], unique=False)

    op.create_table(
        "cemetery_concession_payment",
        _id_column(),
        _parish_column(),
        sa.Column(
            "concession_id",
            sa.String(length=36),
            sa.ForeignKey("cemetery_concession.id"),
            nullable=False,
        ),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="RON"),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("receipt_number", sa.String(length=50), nullable=True),
        sa.Column("receipt_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("period_end >= period_start", name="ck_concession_payment_period"),
    )
    with op.batch_alter_table("cemetery_concession_payment", schema=None) as batch_op:
        batch_op.create_index("ix_cemetery_concession_payment_parish_id", ["parish_id"], unique=False)
        batch_op.create_index(
            "ix_concession_payment_concession_date",
            ["concession_id", "payment_date"],
            unique=False,
        )

    op.create_table(
        "ledger_payment",
        _id_column(),
        _parish_column(),
        sa.Column("payment_number", sa.String(length=50), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False, server_default="income"),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("client.id"), nullable=True),
        sa.Column("amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="RON"),
        sa.Column("description", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="completed"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("payment_number", name="uq_ledger_payment_number"),
    )
    op.create_index("ix_ledger_payment_parish_id", "ledger_payment", ["parish_id"], unique=False)

    op.create_table(
        "grave_status_event",
        _id_column(),
        _parish_column(),
        sa.Column("grave_id", sa.String(length=36), sa.ForeignKey("cemetery_grave.id"), nullable=False),
        sa.Column("from_status", sa.String(length=20), nullable=True),
        sa.Column("to_status", sa.String(length=20), nullable=False),
        sa.Column("changed_at", sa.DateTime(), nullable=False),
    )
    with op.batch_alter_table("grave_status_event", schema=None) as batch_op:
        batch_op.create_index("ix_grave_status_event_parish_id", ["parish_id"], unique=False)
        batch_op.create_index("ix_grave_status_event_grave_id", ["grave_id"], unique=False)
        batch_op.create_index("ix_grave_status_event_changed_at", ["changed_at"], unique=False)


def downgrade():
    op.drop_table("grave_status_event")
    op.drop_table("ledger_payment")
    op.drop_table("cemetery_concession_payment")
    op.drop_table("cemetery_burial")
    op.drop_table("cemetery_concession")
    op.drop_table("cemetery_grave")
    op.drop_table("cemetery_row")
    op.drop_table("cemetery_parcel")
    op.drop_table("cemetery")
    op.drop_table("client")
    op.drop_table("membership")
    op.drop_table("user_account")
    op.drop_table("parish")
    CONCESSION_STATUS.drop(op.get_bind(), checkfirst=True)
    GRAVE_STATUS.drop(op.get_bind(), checkfirst=True)
