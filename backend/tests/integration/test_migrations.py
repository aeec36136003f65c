"""
Tests for the Alembic baseline migration.

Runs the migration chain against a fresh SQLite file; the PostgreSQL-only
constraints are skipped on that dialect.
"""

import os

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

import core.config

ALEMBIC_DIR = os.path.join(os.path.dirname(__file__), '..', '..', 'alembic')

EXPECTED_TABLES = {
    "organizations", "professionals", "clients", "services", "work_schedules",
    "work_schedule_breaks", "appointments", "group_activities", "group_activity_participants",
}


@pytest.fixture
def migration_db(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'migrations.db'}"
    monkeypatch.setattr(core.config, "DATABASE_URL", url)
    config = Config()
    config.set_main_option("script_location", os.path.abspath(ALEMBIC_DIR))
    return config, url


def _tables(url):
    engine = create_engine(url)
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_upgrade_creates_every_table(migration_db):
    config, url = migration_db

    command.upgrade(config, "head")

    tables = _tables(url)
    assert EXPECTED_TABLES <= tables
    assert "alembic_version" in tables


def test_appointment_columns(migration_db):
    config, url = migration_db
    command.upgrade(config, "head")

    engine = create_engine(url)
    try:
        columns = {column["name"] for column in inspect(engine).get_columns("appointments")}
    finally:
        engine.dispose()

    assert {
        "professional_id", "client_id", "date", "start_time", "end_time", "status",
        "is_group_activity", "google_calendar_event_id", "synced_with_google", "last_google_sync",
    } <= columns


def test_downgrade_drops_tables(migration_db):
    config, url = migration_db
    command.upgrade(config, "head")

    command.downgrade(config, "base")

    assert not (EXPECTED_TABLES & _tables(url))
