"""create materials management tables

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261017_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
    ]


def _create_indexes(inspector: sa.Inspector, table_name: str, indexes: list[tuple[str, list, bool]]) -> None:
    for index_name, columns, unique in indexes:
        if not _index_exists(inspector, table_name, index_name):
            op.create_index(index_name, table_name, columns, unique=unique)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("username", sa.String(length=50), nullable=False),
            sa.Column("hashed_password", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=100), nullable=True),
            sa.Column("role", sa.String(length=30), nullable=False, server_default="employee"),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
            sa.UniqueConstraint("username"),
        )
    inspector = sa.inspect(bind)
    _create_indexes(
        inspector,
        "users",
        [
            ("ux_users_email_lower", [sa.text("lower(email)")], True),
            ("ux_users_username_lower", [sa.text("lower(username)")], True),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "suppliers"):
        op.create_table(
            "suppliers",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("contact_person", sa.String(length=100), nullable=True),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("phone", sa.String(length=20), nullable=True),
            sa.Column("address", sa.String(length=500), nullable=True),
            sa.Column("tax_number", sa.String(length=50), nullable=True),
            sa.Column("payment_terms", sa.String(length=100), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
    inspector = sa.inspect(bind)
    _create_indexes(inspector, "suppliers", [("ix_suppliers_active_name", ["is_active", "name"], False)])

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "purchase_orders"):
        op.create_table(
            "purchase_orders",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("po_number", sa.String(length=30), nullable=False),
            sa.Column("supplier_id", sa.String(length=36), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="DRAFT"),
            sa.Column("total_amount", sa.Numeric(14, 2), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("po_number"),
        )
    inspector = sa.inspect(bind)
    _create_indexes(inspector, "purchase_orders", [("ix_purchase_orders_supplier_id", ["supplier_id"], False)])

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "materials"):
        op.create_table(
            "materials",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("material_code", sa.String(length=50), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=100), nullable=False),
            sa.Column("unit", sa.String(length=20), nullable=False),
            sa.Column("unit_cost", sa.Numeric(12, 2), nullable=True),
            sa.Column("minimum_stock_level", sa.Numeric(14, 3), nullable=True),
            sa.Column("maximum_stock_level", sa.Numeric(14, 3), nullable=True),
            sa.Column("reorder_point", sa.Numeric(14, 3), nullable=True),
            sa.Column("supplier_id", sa.String(length=36), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("material_code"),
        )
    inspector = sa.inspect(bind)
    _create_indexes(
        inspector,
        "materials",
        [
            ("ix_materials_supplier_id", ["supplier_id"], False),
            ("ix_materials_category_name", ["category", "name"], False),
            ("ix_materials_active_name", ["is_active", "name"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "material_inventory"):
        op.create_table(
            "material_inventory",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("material_id", sa.String(length=36), nullable=False),
            sa.Column("location_type", sa.String(length=10), nullable=False),
            sa.Column("location_reference", sa.String(length=100), nullable=False, server_default=""),
            sa.Column("project_id", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("current_stock", sa.Numeric(14, 3), nullable=False, server_default="0"),
            sa.Column("reserved_stock", sa.Numeric(14, 3), nullable=False, server_default="0"),
            sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["material_id"], ["materials.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "material_id",
                "location_type",
                "location_reference",
                "project_id",
                name="uq_material_inventory_location",
            ),
            sa.CheckConstraint("current_stock >= 0", name="ck_material_inventory_stock_non_negative"),
        )
    inspector = sa.inspect(bind)
    _create_indexes(
        inspector,
        "material_inventory",
        [
            ("ix_material_inventory_material_id", ["material_id"], False),
            ("ix_material_inventory_location", ["location_type", "project_id"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "material_requests"):
        op.create_table(
            "material_requests",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("request_number", sa.String(length=30), nullable=False),
            sa.Column("material_id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("requested_by_id", sa.String(length=36), nullable=False),
            sa.Column("requested_quantity", sa.Numeric(14, 3), nullable=False),
            sa.Column("justification", sa.Text(), nullable=False),
            sa.Column("urgency", sa.String(length=10), nullable=False, server_default="NORMAL"),
            sa.Column("delivery_location", sa.String(length=10), nullable=False, server_default="SITE"),
            sa.Column("required_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
            sa.Column("approved_quantity", sa.Numeric(14, 3), nullable=True),
            sa.Column("issued_quantity", sa.Numeric(14, 3), nullable=True),
            sa.Column("acknowledged_quantity", sa.Numeric(14, 3), nullable=True),
            sa.Column("unit_cost", sa.Numeric(12, 2), nullable=True),
            sa.Column("total_cost", sa.Numeric(14, 2), nullable=True),
            sa.Column("approved_by_id", sa.String(length=36), nullable=True),
            sa.Column("approval_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("approval_comments", sa.Text(), nullable=True),
            sa.Column("issued_by_id", sa.String(length=36), nullable=True),
            sa.Column("issuance_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("issuance_comments", sa.Text(), nullable=True),
            sa.Column("acknowledged_by_id", sa.String(length=36), nullable=True),
            sa.Column("acknowledgment_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("acknowledgment_comments", sa.Text(), nullable=True),
            sa.Column("completed_by_id", sa.String(length=36), nullable=True),
            sa.Column("completion_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completion_comments", sa.Text(), nullable=True),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["material_id"], ["materials.id"]),
            sa.ForeignKeyConstraint(["requested_by_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["approved_by_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["issued_by_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["acknowledged_by_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["completed_by_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("request_number"),
        )
    inspector = sa.inspect(bind)
    _create_indexes(
        inspector,
        "material_requests",
        [
            ("ix_material_requests_material_id", ["material_id"], False),
            ("ix_material_requests_project_id", ["project_id"], False),
            ("ix_material_requests_requested_by_id", ["requested_by_id"], False),
            ("ix_material_requests_status_created_at", ["status", "created_at"], False),
            ("ix_material_requests_project_status", ["project_id", "status"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "material_transactions"):
        op.create_table(
            "material_transactions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("material_id", sa.String(length=36), nullable=False),
            sa.Column("transaction_type", sa.String(length=20), nullable=False),
            sa.Column("reference_type", sa.String(length=30), nullable=True),
            sa.Column("reference_id", sa.String(length=36), nullable=True),
            sa.Column("from_location_type", sa.String(length=10), nullable=True),
            sa.Column("from_location_reference", sa.String(length=100), nullable=True),
            sa.Column("from_project_id", sa.Integer(), nullable=True),
            sa.Column("to_location_type", sa.String(length=10), nullable=True),
            sa.Column("to_location_reference", sa.String(length=100), nullable=True),
            sa.Column("to_project_id", sa.Integer(), nullable=True),
            sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
            sa.Column("unit_cost", sa.Numeric(12, 2), nullable=True),
            sa.Column("total_cost", sa.Numeric(14, 2), nullable=True),
            sa.Column("performed_by_id", sa.String(length=36), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["material_id"], ["materials.id"]),
            sa.ForeignKeyConstraint(["performed_by_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    inspector = sa.inspect(bind)
    _create_indexes(
        inspector,
        "material_transactions",
        [
            ("ix_material_transactions_material_id", ["material_id"], False),
            ("ix_material_transactions_reference_id", ["reference_id"], False),
            ("ix_material_transactions_performed_by_id", ["performed_by_id"], False),
            ("ix_material_transactions_material_created_at", ["material_id", "created_at"], False),
            ("ix_material_transactions_type_created_at", ["transaction_type", "created_at"], False),
        ],
    )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "material_request_sequences"):
        op.create_table(
            "material_request_sequences",
            sa.Column("name", sa.String(length=50), nullable=False),
            sa.Column("current_value", sa.BigInteger(), nullable=False, server_default="0"),
            sa.PrimaryKeyConstraint("name"),
        )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table_name in (
        "material_request_sequences",
        "material_transactions",
        "material_requests",
        "material_inventory",
        "materials",
        "purchase_orders",
        "suppliers",
        "users",
    ):
        if _table_exists(inspector, table_name):
            op.drop_table(table_name)
