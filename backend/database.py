import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL")

engine = create_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_consultation_schema_checked = False


def _apply_migration_steps(table_name: str, migration_steps: list[tuple[str, str]], index_statements: list[str]) -> None:
    inspector = inspect(engine)

    if table_name not in inspector.get_table_names():
        return

    existing_columns = {column['name'] for column in inspector.get_columns(table_name)}

    with engine.begin() as connection:
        for column_name, statement in migration_steps:
            if column_name not in existing_columns:
                connection.execute(text(statement))
        for statement in index_statements:
            connection.execute(text(statement))


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        _apply_migration_steps(
            'availability',
            [
                ('booked_at', 'ALTER TABLE availability ADD COLUMN booked_at TIMESTAMP'),
                ('created_at', 'ALTER TABLE availability ADD COLUMN created_at TIMESTAMP'),
            ],
            [
                'CREATE UNIQUE INDEX IF NOT EXISTS uq_availability_counselor_slot '
                'ON availability(counselor_id, date, start_time)',
                'CREATE INDEX IF NOT EXISTS idx_availability_booked_date ON availability(is_booked, date)',
            ],
        )

        _availability_schema_checked = True


def ensure_consultation_schema() -> None:
    global _consultation_schema_checked

    if _consultation_schema_checked:
        return

    with _schema_lock:
        if _consultation_schema_checked:
            return

        _apply_migration_steps(
            'consultations',
            [
                ('reason', 'ALTER TABLE consultations ADD COLUMN reason VARCHAR'),
                ('rejection_reason', 'ALTER TABLE consultations ADD COLUMN rejection_reason VARCHAR'),
                ('counselor_notes', 'ALTER TABLE consultations ADD COLUMN counselor_notes VARCHAR'),
                ('meeting_ended', 'ALTER TABLE consultations ADD COLUMN meeting_ended BOOLEAN DEFAULT FALSE'),
                ('updated_at', 'ALTER TABLE consultations ADD COLUMN updated_at TIMESTAMP'),
            ],
            [
                'CREATE INDEX IF NOT EXISTS idx_consultations_counselor_status '
                'ON consultations(counselor_id, status)',
                'CREATE INDEX IF NOT EXISTS idx_consultations_slot_tuple '
                'ON consultations(counselor_id, date, time)',
                'CREATE INDEX IF NOT EXISTS idx_consultations_availability ON consultations(availability_id)',
            ],
        )

        _consultation_schema_checked = True
