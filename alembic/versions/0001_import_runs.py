from alembic import op
import sqlalchemy as sa

revision = "0001_import_runs"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "import_runs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("kind", sa.String(length=16), nullable=False),  # historical|nightly
        sa.Column("status", sa.String(length=16), nullable=False),  # pending|running|completed|failed|cancelled
        sa.Column("params", sa.JSON(), nullable=False, server_default=sa.text("'{}'::json")),
        sa.Column("state", sa.JSON(), nullable=True),  # engine checkpoint
        sa.Column("complete", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("last_step", sa.String(length=32), nullable=True),
        sa.Column("cancel_requested", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("lease_id", sa.String(length=32), nullable=True),
        sa.Column("lease_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_import_runs_kind_created", "import_runs", ["kind", "created_at"], unique=False)
    op.create_index("ix_import_runs_status_lease", "import_runs", ["status", "lease_expires_at"], unique=False)


def downgrade():
    op.drop_index("ix_import_runs_status_lease", table_name="import_runs")
    op.drop_index("ix_import_runs_kind_created", table_name="import_runs")
    op.drop_table("import_runs")
