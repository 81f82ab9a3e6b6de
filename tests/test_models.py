"""
Schema bootstrap tests.

Guards against:
1. Columns added to a model never reaching a database created by an older release
2. Relative SQLite paths resolving against whatever cwd the scheduler runs in
"""
import os

from sqlalchemy import inspect, text

from shopsync.models.base import build_engine, init_db, resolve_database_url


def test_missing_columns_are_added():
    engine = build_engine("sqlite://")
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE shops (id INTEGER PRIMARY KEY, shop_id BIGINT NOT NULL, "
            "partner_id BIGINT NOT NULL, partner_key TEXT NOT NULL)"
        ))

    init_db(engine)

    columns = {c["name"] for c in inspect(engine).get_columns("shops")}
    assert {"access_token", "refresh_token", "expires_at", "updated_at"} <= columns
    assert inspect(engine).has_table("sync_status")
    engine.dispose()


def test_relative_sqlite_path_is_made_absolute():
    assert resolve_database_url("sqlite:///./data/shop.db") == "sqlite:///" + os.path.abspath("./data/shop.db")
    assert resolve_database_url("sqlite:////var/db/shop.db") == "sqlite:////var/db/shop.db"
    assert resolve_database_url("sqlite:///:memory:") == "sqlite:///:memory:"
    assert resolve_database_url("postgresql://u@h/db") == "postgresql://u@h/db"
