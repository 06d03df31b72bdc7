# tests/conftest.py
import os

os.environ["ENVIRONMENT"] = "TEST"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.config.setting import settings
from app.core.intent_classifier import IntentClassifier
from app.core.query_analyzer import QueryAnalyzer
from app.core.query_builder import QueryBuilder
from app.core.schema_catalog import build_crm_catalog
from app.main import app
from app.models.user import UserContext


@pytest.fixture(scope="session")
def catalog():
    return build_crm_catalog()


@pytest.fixture
def classifier(catalog):
    return IntentClassifier(catalog)


@pytest.fixture
def builder(catalog):
    return QueryBuilder(catalog)


@pytest.fixture
def analyzer(catalog):
    return QueryAnalyzer(catalog)


@pytest.fixture
def user_context():
    return UserContext.from_identity("u-1", "user", "emp-7")


@pytest.fixture
def admin_context():
    return UserContext.from_identity("admin-1", "admin", "emp-1")


def create_token(user_id="u-1", role="user", employee_id="emp-7", secret=None, **extra):
    """Helper to create test JWT"""
    payload = {
        "user_id": user_id,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        **extra,
    }
    if role:
        payload["role"] = role
    if employee_id:
        payload["employee_id"] = employee_id
    return jwt.encode(payload, secret or settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def auth_headers(**claims):
    return {"Authorization": f"Bearer {create_token(**claims)}"}


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
