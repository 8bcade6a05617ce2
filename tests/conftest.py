"""
Pytest configuration and shared fixtures for service master tests.
"""

import os
import sys
import tempfile

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment variables before importing app
_TEST_DIR = tempfile.mkdtemp(prefix="service_master_test_")
os.environ.setdefault("FLASK_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATA_DIR", _TEST_DIR)
os.environ.setdefault("LOG_DIR", _TEST_DIR)
os.environ.setdefault("SEED_ON_STARTUP", "false")

import db
from data_store import DataStore, init_service_tables
from service_catalog import create_category, create_preset, create_task
from service_settings import ServiceSettings
from template_composer import create_template


@pytest.fixture(autouse=True)
def _service_db(tmp_path, monkeypatch):
    """Point every test at its own fresh SQLite file."""
    path = str(tmp_path / "service_master.db")
    monkeypatch.setattr(db, "SERVICE_DB", path)
    init_service_tables()
    yield path


@pytest.fixture
def store():
    return DataStore()


@pytest.fixture
def settings():
    return ServiceSettings(pending_before_hours=20, pending_after_hours=15, master_admin_code="1234")


@pytest.fixture
def standard_preset(store):
    return create_preset(store, {"name": "Standard Ladder", "intervals": [50, 100, 250, 500]})


@pytest.fixture
def engine_category(store):
    return create_category(store, {"name": "Engine", "color": "#EF4444"})


@pytest.fixture
def oil_task(store, engine_category):
    return create_task(store, {
        "name": "Oil Change",
        "category_id": engine_category["id"],
        "estimated_duration": 30,
        "auto_apply": True,
    })


@pytest.fixture
def belt_task(store):
    return create_task(store, {"name": "Belt Inspection", "estimated_duration": 15})


@pytest.fixture
def template(store, standard_preset):
    return create_template(store, {"name": "Mower", "preset_id": standard_preset["id"]})
