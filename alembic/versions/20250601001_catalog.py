"""Catalog schema: categories, specialties and providers."""

from alembic import op
import sqlalchemy as sa

revision = "20250601001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_categories"),
        sa.UniqueConstraint("name", name="uq_categories_name"),
    )

    op.create_table(
        "specialties",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_specialties"),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["categories.id"],
            name="fk_specialties_category_id_categories",
            ondelete="CASCADE",
            onupdate="CASCADE",
        ),
        sa.UniqueConstraint("name", "category_id", name="uq_specialties_name_category_id"),
    )
    op.create_index("ix_specialties_name", "specialties", ["name"], unique=False)
    op.create_index("ix_specialties_category_id", "specialties", ["category_id"], unique=False)

    op.create_table(
        "providers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("company_name", sa.String(length=200), nullable=False),
        sa.Column("contact_name", sa.String(length=100), nullable=True),
        sa.Column("email", sa.String(length=150), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("postal_code", sa.String(length=10), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("department", sa.String(length=100), nullable=True),
        sa.Column("latitude", sa.Numeric(precision=10, scale=8), nullable=True),
        sa.Column("longitude", sa.Numeric(precision=11, scale=8), nullable=True),
        sa.Column("rating", sa.Numeric(precision=2, scale=1), server_default=sa.text("0"), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("website", sa.String(length=255), nullable=True),
        sa.Column("image_url", sa.String(length=255), nullable=True),
        sa.Column("featured", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("specialty_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_providers"),
        sa.ForeignKeyConstraint(
            ["specialty_id"],
            ["specialties.id"],
            name="fk_providers_specialty_id_specialties",
            ondelete="RESTRICT",
            onupdate="CASCADE",
        ),
        sa.UniqueConstraint("email", name="uq_providers_email"),
        sa.CheckConstraint("rating >= 0 AND rating <= 5", name="ck_providers_rating_range"),
        sa.CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_providers_latitude_range"),
        sa.CheckConstraint(
            "longitude >= -180 AND longitude <= 180", name="ck_providers_longitude_range"
        ),
    )
    op.create_index("ix_providers_city", "providers", ["city"], unique=False)
    op.create_index("ix_providers_department", "providers", ["department"], unique=False)
    op.create_index("ix_providers_rating", "providers", ["rating"], unique=False)
    op.create_index("ix_providers_featured", "providers", ["featured"], unique=False)
    op.create_index("ix_providers_specialty_id", "providers", ["specialty_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_providers_specialty_id", table_name="providers")
    op.drop_index("ix_providers_featured", table_name="providers")
    op.drop_index("ix_providers_rating", table_name="providers")
    op.drop_index("ix_providers_department", table_name="providers")
    op.drop_index("ix_providers_city", table_name="providers")
    op.drop_table("providers")
    op.drop_index("ix_specialties_category_id", table_name="specialties")
    op.drop_index("ix_specialties_name", table_name="specialties")
    op.drop_table("specialties")
    op.drop_table("categories")
