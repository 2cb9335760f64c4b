"""create observation, user, water-monitoring and passcode tables"""

from alembic import op
import sqlalchemy as sa

revision = "0001_create_collections"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "observations",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("animal", sa.String(length=128), nullable=True),
        sa.Column("incident_type", sa.String(length=128), nullable=True),
        sa.Column("poaching_type", sa.String(length=64), nullable=True),
        sa.Column("maintenance_type", sa.String(length=128), nullable=True),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("timestamp", sa.DateTime, nullable=False),
        sa.Column("user", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.String, nullable=True),
        sa.Column("image_path", sa.String(length=512), nullable=True),
        sa.Column("image_filename", sa.String(length=255), nullable=True),
        sa.Column("synced", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_observations_category", "observations", ["category"])
    op.create_index("ix_observations_timestamp", "observations", ["timestamp"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("uid", sa.String(length=255), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="user"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("registered_at", sa.DateTime, nullable=False),
        sa.Column("last_login", sa.DateTime, nullable=True),
        sa.Column("updated_at", sa.DateTime, nullable=True),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
    )
    op.create_index("ix_users_uid", "users", ["uid"])
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_registered_at", "users", ["registered_at"])

    op.create_table(
        "water-monitoring",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("location", sa.String(length=64), nullable=False),
        sa.Column("location_name", sa.String(length=255), nullable=True),
        sa.Column("date", sa.String(length=32), nullable=False),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("parameters", sa.JSON, nullable=True),
        sa.Column("timestamp", sa.DateTime, nullable=False),
        sa.Column("user", sa.String(length=255), nullable=True),
    )
    op.create_index("ix_water-monitoring_location", "water-monitoring", ["location"])
    op.create_index("ix_water-monitoring_date", "water-monitoring", ["date"])

    op.create_table(
        "pending_passcodes",
        sa.Column("email", sa.String(length=255), primary_key=True),
        sa.Column("pin_hash", sa.String(length=64), nullable=False),
        sa.Column("salt", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("issued_at", sa.Float, nullable=False),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("ix_pending_passcodes_issued_at", "pending_passcodes", ["issued_at"])


def downgrade() -> None:
    op.drop_index("ix_pending_passcodes_issued_at", table_name="pending_passcodes")
    op.drop_table("pending_passcodes")
    op.drop_index("ix_water-monitoring_date", table_name="water-monitoring")
    op.drop_index("ix_water-monitoring_location", table_name="water-monitoring")
    op.drop_table("water-monitoring")
    op.drop_index("ix_users_registered_at", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_uid", table_name="users")
    op.drop_table("users")
    op.drop_index("ix_observations_timestamp", table_name="observations")
    op.drop_index("ix_observations_category", table_name="observations")
    op.drop_table("observations")
