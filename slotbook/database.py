import sqlite3
from datetime import timezone
from threading import Lock

from sqlalchemy import DateTime, create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.types import TypeDecorator

from slotbook.core import config
from slotbook.core.time_range import to_utc


engine = create_engine(config.DATABASE_URL, echo=config.DB_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_slot_schema_checked = False


@event.listens_for(Engine, 'connect')
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


class UTCDateTime(TypeDecorator):
    """Stores instants as naive UTC and hands them back as aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return to_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def ensure_slot_schema() -> None:
    global _slot_schema_checked

    if _slot_schema_checked:
        return

    with _schema_lock:
        if _slot_schema_checked:
            return

        inspector = inspect(engine)

        if 'slots' not in inspector.get_table_names():
            _slot_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('slots')}
        migration_steps = [
            ('specialty', 'ALTER TABLE slots ADD COLUMN specialty VARCHAR(40)'),
            ('org_id', 'ALTER TABLE slots ADD COLUMN org_id VARCHAR(64)'),
            ('notes', 'ALTER TABLE slots ADD COLUMN notes VARCHAR(600)'),
            ('reserved_at', 'ALTER TABLE slots ADD COLUMN reserved_at TIMESTAMP'),
            ('confirmed_at', 'ALTER TABLE slots ADD COLUMN confirmed_at TIMESTAMP'),
            ('cancel_reason', 'ALTER TABLE slots ADD COLUMN cancel_reason VARCHAR(600)'),
            ('cancelled_at', 'ALTER TABLE slots ADD COLUMN cancelled_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_slots_staff_range ON slots(staff_user_id, start_at, end_at)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_slots_center_start ON slots(center_id, start_at)')
            )
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_slots_staff_start_active '
                    "ON slots(staff_user_id, start_at) WHERE status <> 'CANCELLED'"
                )
            )

        _slot_schema_checked = True
