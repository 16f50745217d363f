"""create profiles, waste_reports and assignment_audits

Revision ID: 001_waste_reports
Revises:
Create Date: 2026-10-19
"""

from alembic import op

revision = '001_waste_reports'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ENUM types; SQLAlchemy's Enum persists member names, which equal the values.
    op.execute(r'''
    DO $$
    BEGIN
        IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'role') THEN
            CREATE TYPE role AS ENUM ('user','management','worker');
        END IF;
        IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'reportstatus') THEN
            CREATE TYPE reportstatus AS ENUM ('pending','assigned','in_progress','completed','rejected');
        END IF;
        IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'wastetype') THEN
            CREATE TYPE wastetype AS ENUM ('household','construction','green','electronic','hazardous','other');
        END IF;
    END$$;
    ''')

    op.execute(r'''
    CREATE TABLE IF NOT EXISTS profiles (
      id VARCHAR PRIMARY KEY,
      email VARCHAR UNIQUE,
      name VARCHAR,
      role role NOT NULL DEFAULT 'user',
      created_at TIMESTAMPTZ DEFAULT now()
    )
    ''')
    op.execute("CREATE INDEX IF NOT EXISTS ix_profiles_role ON profiles (role)")

    op.execute(r'''
    CREATE TABLE IF NOT EXISTS waste_reports (
      id VARCHAR PRIMARY KEY,
      reporter_id VARCHAR NOT NULL REFERENCES profiles (id),
      title VARCHAR NOT NULL,
      description VARCHAR,
      waste_type wastetype NOT NULL DEFAULT 'household',
      image_url VARCHAR NOT NULL,
      latitude DOUBLE PRECISION NOT NULL,
      longitude DOUBLE PRECISION NOT NULL,
      address VARCHAR,
      status reportstatus NOT NULL DEFAULT 'pending',
      worker_id VARCHAR REFERENCES profiles (id),
      management_notes VARCHAR,
      worker_notes VARCHAR,
      cleaned_image_url VARCHAR,
      rating INTEGER,
      feedback_text VARCHAR,
      feedback_date TIMESTAMPTZ,
      created_at TIMESTAMPTZ DEFAULT now(),
      assigned_date TIMESTAMPTZ,
      started_at TIMESTAMPTZ,
      completed_at TIMESTAMPTZ,
      updated_at TIMESTAMPTZ,
      version INTEGER NOT NULL DEFAULT 1,
      CONSTRAINT chk_rating_range CHECK (rating IS NULL OR rating BETWEEN 1 AND 5),
      CONSTRAINT chk_worker_status CHECK (
        worker_id IS NULL OR status IN ('assigned','in_progress','completed')
      ),
      CONSTRAINT chk_completed_has_cleaned_image CHECK (
        status <> 'completed' OR cleaned_image_url IS NOT NULL
      )
    )
    ''')
    op.execute("CREATE INDEX IF NOT EXISTS ix_waste_reports_reporter_id ON waste_reports (reporter_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_waste_reports_worker_id ON waste_reports (worker_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_waste_reports_status ON waste_reports (status)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_waste_reports_created_at ON waste_reports (created_at)")

    op.execute(r'''
    CREATE TABLE IF NOT EXISTS assignment_audits (
      id SERIAL PRIMARY KEY,
      report_id VARCHAR NOT NULL REFERENCES waste_reports (id),
      assigned_by VARCHAR NOT NULL,
      assigned_to VARCHAR NOT NULL,
      created_at TIMESTAMPTZ DEFAULT now()
    )
    ''')
    op.execute("CREATE INDEX IF NOT EXISTS ix_assignment_audits_report_id ON assignment_audits (report_id)")

    op.execute("COMMENT ON TABLE waste_reports IS 'Citizen waste reports and their cleanup lifecycle'")


def downgrade():
    op.execute("DROP TABLE IF EXISTS assignment_audits")
    op.execute("DROP TABLE IF EXISTS waste_reports")
    op.execute("DROP TABLE IF EXISTS profiles")
    op.execute("DROP TYPE IF EXISTS wastetype")
    op.execute("DROP TYPE IF EXISTS reportstatus")
    op.execute("DROP TYPE IF EXISTS role")
