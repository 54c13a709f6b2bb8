# backend/tests/conftest.py
from __future__ import annotations

import os
import tempfile

# must be set before hunt_engine.config is imported anywhere
_DB_DIR = tempfile.mkdtemp(prefix="hunt_engine_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["APP_ENV"] = "test"
os.environ["AUTH_MODE"] = "dev"

import pytest  # noqa: E402

from hunt_engine import models  # noqa: E402,F401
from hunt_engine.db import Base, engine  # noqa: E402

Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
