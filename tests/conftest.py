"""Pytest shared fixtures for the users API."""
import os
import pathlib
import sys

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ["AUDIT_LOG_DIR"] = ""
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from webapi.config.settings import AppConfig
from webapi.core import audit
from webapi.core.models import UserEntity
from webapi.core.repository import InMemoryUserRepository
from webapi.flask_app import create_app

API_PREFIX = "/api/users"


def make_config(**overrides) -> AppConfig:
    base = dict(
        users_api_prefix=API_PREFIX,
        default_page_size=10,
        max_page_size=20,
        max_content_length=65536,
        trusted_proxy_ips="127.0.0.1/32,::1/128",
        log_level="WARNING",
        preferred_url_scheme="http",
        audit_log_dir="",
        audit_log_signing_key="",
        seed_demo_users=False,
    )
    base.update(overrides)
    return AppConfig(**base)


@pytest.fixture(autouse=True)
def _audit_disabled():
    """Keep tests from writing an audit trail unless they opt in."""
    audit.configure(None)
    yield
    audit.configure(None)


@pytest.fixture()
def repository():
    return InMemoryUserRepository()


@pytest.fixture()
def app(repository):
    flask_app = create_app(make_config(), repository)
    flask_app.config.update(TESTING=True)
    return flask_app


# Provide a test client so each test can exercise routes without running a server.
@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture()
def existing_user(repository):
    """A stored user with non-default pass-through fields."""
    return repository.insert(
        UserEntity(login="alice", first_name="Alice", last_name="Smith", games_played=7)
    )
