# test_validations.py
import pytest

from conftest import auth_headers, create_token
from app.core.exceptions import ValidationError
from app.middleware.validation import ValidationMiddleware

EXPLAIN_URL = "/api/ai/query-explain"
PREVIEW_URL = "/api/ai/intent-preview"


def test_no_auth(client):
    """Test without authentication"""
    response = client.post(EXPLAIN_URL, json={"question": "How many contacts do I have?"})
    assert response.status_code == 401, f"Expected 401, got {response.status_code}"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_auth_checked_before_body(client):
    """Missing identity wins over a bad body"""
    response = client.post(EXPLAIN_URL, json={"question": ""})
    assert response.status_code == 401


def test_invalid_token(client):
    """Test with invalid token"""
    response = client.post(
        EXPLAIN_URL,
        headers={"Authorization": "Bearer invalid_token"},
        json={"question": "How many contacts do I have?"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Unable to decode JWT Token"


def test_wrong_scheme(client):
    response = client.post(
        EXPLAIN_URL,
        headers={"Authorization": f"Token {create_token()}"},
        json={"question": "How many contacts do I have?"},
    )
    assert response.status_code == 401


def test_token_signed_with_other_secret(client):
    response = client.post(
        EXPLAIN_URL,
        headers=auth_headers(secret="some-other-secret"),
        json={"question": "How many contacts do I have?"},
    )
    assert response.status_code == 401


def test_empty_question(client):
    """Test with empty question"""
    response = client.post(EXPLAIN_URL, headers=auth_headers(), json={"question": ""})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Invalid request"
    assert body["error_code"] == "validation_error"


def test_missing_question(client):
    response = client.post(EXPLAIN_URL, headers=auth_headers(), json={"options": {"limit": 5}})
    assert response.status_code == 400
    assert "must be a string" in response.json()["message"]


def test_question_not_a_string(client):
    response = client.post(EXPLAIN_URL, headers=auth_headers(), json={"question": 42})
    assert response.status_code == 400


def test_long_question(client):
    """Test with question too long"""
    response = client.post(EXPLAIN_URL, headers=auth_headers(), json={"question": "a" * 1001})
    assert response.status_code == 400
    assert "too long" in response.json()["message"]


def test_invalid_json(client):
    response = client.post(
        EXPLAIN_URL,
        headers={**auth_headers(), "Content-Type": "application/json"},
        content="{not json",
    )
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert body["validation_errors"][0]["field"] == "body"


def test_body_must_be_object(client):
    response = client.post(EXPLAIN_URL, headers=auth_headers(), json=["How many contacts do I have?"])
    assert response.status_code == 400
    assert response.json()["validation_errors"][0]["type"] == "dict_type"


def test_invalid_options(client):
    response = client.post(
        EXPLAIN_URL,
        headers=auth_headers(),
        json={"question": "Show my leads", "options": {"limit": 0}},
    )
    assert response.status_code == 400
    assert response.json()["validation_errors"][0]["field"] == "options.limit"


def test_preview_rejects_empty_question_without_auth(client):
    response = client.post(PREVIEW_URL, json={"question": "   "})
    assert response.status_code == 400


class TestValidationMiddleware:
    def test_accepts_plain_question(self):
        assert ValidationMiddleware.validate_question("Show my leads") is True

    @pytest.mark.parametrize("question", [
        None,
        "",
        "   ",
        "a",
        "x" * 1001,
        "show leads <script>alert(1)</script>",
        "contacts; drop table contacts",
        "leads /* comment",
    ])
    def test_rejects(self, question):
        with pytest.raises(ValidationError):
            ValidationMiddleware.validate_question(question)

    def test_sanitize(self):
        assert ValidationMiddleware.sanitize_question("  Show\x00 my   leads!!!!!  ") == "Show my leads!!"
