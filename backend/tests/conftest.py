"""Shared fixtures for backend tests."""

import os
import tempfile

# Settings and the global database are created at import time, so point
# them at a scratch directory before any backend module is imported.
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="cuentas-tests-"))

import pytest  # noqa: E402

from backend.db.sqlite import Database  # noqa: E402


@pytest.fixture
def database(tmp_path):
    """A fresh SQLite database per test."""
    return Database(db_path=tmp_path / "cuentas_test.db")


@pytest.fixture
def user_id():
    return "user-1"
