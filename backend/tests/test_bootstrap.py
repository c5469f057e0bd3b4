from sqlalchemy import inspect

from app.db.bootstrap import REQUIRED_COLUMNS, ensure_runtime_schema_compatibility
from app.db.session import engine


def test_bootstrap_creates_every_required_table():
    ensure_runtime_schema_compatibility()

    inspector = inspect(engine)
    tables = set(inspector.get_table_names())
    assert set(REQUIRED_COLUMNS) <= tables
    for table_name, columns in REQUIRED_COLUMNS.items():
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        assert columns <= existing


def test_bootstrap_is_idempotent():
    ensure_runtime_schema_compatibility()
    ensure_runtime_schema_compatibility()
