from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_users_properties"
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def _audit_columns():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("avatar", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("login_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lock_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "properties",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("address", sa.String(length=200), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="available"),
        sa.Column("bedrooms", sa.Integer(), nullable=False),
        sa.Column("bathrooms", sa.Float(), nullable=False),
        sa.Column("area", sa.Float(), nullable=False),
        sa.Column("year_built", sa.Integer(), nullable=True),
        sa.Column("parking_spaces", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pet_friendly", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("furnished", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("images", JSONType, nullable=False),
        sa.Column("utilities", JSONType, nullable=False),
        sa.Column("contact_info", JSONType, nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_properties_coordinates", "properties", ["latitude", "longitude"])
    op.create_index("ix_properties_type_status", "properties", ["type", "status"])
    op.create_index("ix_properties_bedrooms_bathrooms", "properties", ["bedrooms", "bathrooms"])
    op.create_index("ix_properties_price", "properties", ["price"])
    op.create_index("ix_properties_created_at", "properties", ["created_at"])

    op.create_table(
        "property_features",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("property_id", sa.String(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name", sa.String(length=120), nullable=False),
    )
    op.create_index("ix_property_features_property_id", "property_features", ["property_id"])
    op.create_index("ix_property_features_name", "property_features", ["name"])


def downgrade():
    op.drop_index("ix_property_features_name", table_name="property_features")
    op.drop_index("ix_property_features_property_id", table_name="property_features")
    op.drop_table("property_features")

    op.drop_index("ix_properties_created_at", table_name="properties")
    op.drop_index("ix_properties_price", table_name="properties")
    op.drop_index("ix_properties_bedrooms_bathrooms", table_name="properties")
    op.drop_index("ix_properties_type_status", table_name="properties")
    op.drop_index("ix_properties_coordinates", table_name="properties")
    op.drop_table("properties")

    op.drop_index("ix_users_created_at", table_name="users")
    op.drop_table("users")
