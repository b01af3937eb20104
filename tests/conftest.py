"""
Shared fixtures
"""

import pytest
from sqlalchemy import create_engine, text

from datanexus.models import ConnectionRecord


@pytest.fixture
def sqlite_connection(tmp_path):
    """SQLite database with users and orders, as a connection record"""
    path = tmp_path / "shop.db"
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE users (id INTEGER PRIMARY KEY, username VARCHAR(50) NOT NULL, age INTEGER)"))
        conn.execute(text(
            "CREATE TABLE orders (id INTEGER PRIMARY KEY, user_id INTEGER, amount NUMERIC(10, 2), created_at DATE)"
        ))
        conn.execute(text("INSERT INTO users (id, username, age) VALUES (1, 'johndoe', 30), (2, 'ann', 41)"))
        conn.execute(text(
            "INSERT INTO orders (id, user_id, amount, created_at) VALUES "
            "(10, 1, 12.50, '2024-01-02'), (11, 1, 7.25, '2024-01-03'), (12, 2, 99.00, '2024-02-01')"
        ))
    engine.dispose()

    return ConnectionRecord(id="db1", name="Shop", type="sqlite", database=str(path), user_id="u1")
