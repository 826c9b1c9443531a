import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL")

engine = create_engine(DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

# Columns added after the first deployment of the appointments table.
APPOINTMENT_COLUMN_MIGRATIONS = (
    ('duration_minutes', 'INTEGER DEFAULT 15'),
    ('notes', 'VARCHAR(500)'),
    ('created_at', 'TIMESTAMP'),
)

# Calendar lookups filter by participant or status, then by start time.
APPOINTMENT_INDEXES = {
    'idx_appointments_petitioner_start': ('petitioner_id', 'scheduled_at'),
    'idx_appointments_attorney_start': ('staff_attorney_id', 'scheduled_at'),
    'idx_appointments_assistant_start': ('staff_legal_assistant_id', 'scheduled_at'),
    'idx_appointments_status_start': ('status', 'scheduled_at'),
}

_schema_lock = Lock()
_appointment_schema_checked = False


def ensure_appointment_schema() -> None:
    """Bring an existing appointments table up to date; a no-op after the first call."""
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}

        with engine.begin() as connection:
            for column_name, column_type in APPOINTMENT_COLUMN_MIGRATIONS:
                if column_name not in existing_columns:
                    connection.execute(text(f'ALTER TABLE appointments ADD COLUMN {column_name} {column_type}'))
            for index_name, columns in APPOINTMENT_INDEXES.items():
                connection.execute(
                    text(f'CREATE INDEX IF NOT EXISTS {index_name} ON appointments({", ".join(columns)})')
                )

        _appointment_schema_checked = True
