from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

from slotbook import database
from slotbook.database import UTCDateTime


@pytest.fixture
def legacy_engine(tmp_path, monkeypatch: pytest.MonkeyPatch):
    engine = create_engine(f"sqlite:///{tmp_path / 'legacy.db'}")
    with engine.begin() as connection:
        connection.execute(text('CREATE TABLE centers (id INTEGER PRIMARY KEY, name VARCHAR NOT NULL)'))
        connection.execute(
            text(
                'CREATE TABLE slots ('
                'id VARCHAR(36) PRIMARY KEY, center_id INTEGER NOT NULL REFERENCES centers(id), '
                'staff_user_id VARCHAR(64) NOT NULL, start_at TIMESTAMP NOT NULL, end_at TIMESTAMP NOT NULL, '
                'status VARCHAR(20) NOT NULL, reserved_by_id VARCHAR(64), created_at TIMESTAMP)'
            )
        )
    monkeypatch.setattr(database, 'engine', engine)
    monkeypatch.setattr(database, '_slot_schema_checked', False)
    try:
        yield engine
    finally:
        engine.dispose()


def test_ensure_slot_schema_adds_missing_columns(legacy_engine) -> None:
    database.ensure_slot_schema()

    columns = {column['name'] for column in inspect(legacy_engine).get_columns('slots')}
    assert {'specialty', 'org_id', 'notes', 'reserved_at', 'confirmed_at', 'cancel_reason', 'cancelled_at'} <= columns
    assert database._slot_schema_checked is True


def test_ensure_slot_schema_adds_active_start_unique_index(legacy_engine) -> None:
    database.ensure_slot_schema()

    insert = text(
        'INSERT INTO slots (id, center_id, staff_user_id, start_at, end_at, status) '
        "VALUES (:id, 1, 'staff-1', '2025-09-01 09:00:00', '2025-09-01 09:30:00', :status)"
    )
    with legacy_engine.begin() as connection:
        connection.execute(text("INSERT INTO centers (id, name) VALUES (1, 'Centro Norte')"))
        connection.execute(insert, {'id': 'cancelled', 'status': 'CANCELLED'})
        connection.execute(insert, {'id': 'free', 'status': 'FREE'})

    with pytest.raises(IntegrityError):
        with legacy_engine.begin() as connection:
            connection.execute(insert, {'id': 'duplicate', 'status': 'RESERVED'})


def test_utc_datetime_stores_naive_utc_and_returns_aware() -> None:
    column_type = UTCDateTime()
    plus_two = timezone(timedelta(hours=2))

    stored = column_type.process_bind_param(datetime(2025, 9, 1, 11, 0, tzinfo=plus_two), dialect=None)
    loaded = column_type.process_result_value(datetime(2025, 9, 1, 9, 0), dialect=None)

    assert stored == datetime(2025, 9, 1, 9, 0)
    assert stored.tzinfo is None
    assert loaded == datetime(2025, 9, 1, 9, 0, tzinfo=timezone.utc)
    assert loaded.tzinfo == timezone.utc
