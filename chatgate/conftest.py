# chatgate/conftest.py
import os
import tempfile
from pathlib import Path

import pytest

# Point the app at a throwaway SQLite database before anything imports settings
_TMP_DIR = Path(tempfile.mkdtemp(prefix="chatgate-tests-"))
TEST_DB_URL = f"sqlite:///{_TMP_DIR / 'chatgate-test.db'}"

os.environ["ENV"] = "test"
os.environ["TEST_DATABASE_URL"] = TEST_DB_URL
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["SKIP_ENV_VALIDATION"] = "1"
os.environ.setdefault("SESSION_SECRET", "chatgate-test-secret-0123456789abcdef")
os.environ["HEADER_AUTH_ENABLED"] = "true"


@pytest.fixture(scope="function", autouse=True)
def reset_db():
    """
    Rebuild the schema and seed the default subscription types before each test.
    """
    from chatgate.core.database import reset_database
    from chatgate.core.metrics import METRICS
    from chatgate.features.registry.service import seed_subscription_types

    reset_database()
    seed_subscription_types()
    METRICS.reset()
    yield


@pytest.fixture
def make_user():
    """Factory: create a user on a given subscription type."""
    from chatgate.features.users.service import get_or_create_user

    def _make(user_id: str, subscription_type_id: int = 1, is_admin: bool = False):
        return get_or_create_user(
            user_id,
            email=f"{user_id}@example.com",
            subscription_type_id=subscription_type_id,
            is_admin=is_admin,
        )

    return _make


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from chatgate.main import app

    return TestClient(app)
