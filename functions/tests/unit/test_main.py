"""Unit tests for the drew_agent HTTP entry point."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from config.errors import ConfigurationError, LLMError

import main


def make_request(method="POST", body=None, headers=None):
    """Mock https_fn.Request."""
    req = MagicMock()
    req.method = method
    req.headers = headers or {}
    req.get_json.return_value = body
    return req


@pytest.fixture
def mock_orchestrator():
    """Patch DrewOrchestrator with a canned turn."""
    response = MagicMock()
    response.to_wire.return_value = {
        "message": "Hey! I'm Drew.",
        "state": {"phase": "job_selection"},
        "quickReplies": ["Panel upgrade"],
    }
    with patch("main.DrewOrchestrator") as mock_cls:
        mock_cls.return_value.run_turn = AsyncMock(return_value=response)
        yield mock_cls


@pytest.fixture(autouse=True)
def mock_settings():
    with patch("main.settings") as mock:
        yield mock


class TestDrewAgent:
    """Tests for drew_agent."""

    def test_preflight(self):
        response = main.drew_agent(make_request(method="OPTIONS"))

        assert response.status_code == 204
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    def test_method_not_allowed(self):
        response = main.drew_agent(make_request(method="GET"))

        assert response.status_code == 405
        assert json.loads(response.get_data(as_text=True)) == {"error": "Method not allowed"}

    def test_turn(self, mock_orchestrator):
        """Test a valid turn returns the orchestrator's wire response."""
        response = main.drew_agent(make_request(body={"userMessage": "hi"}))

        assert response.status_code == 200
        body = json.loads(response.get_data(as_text=True))
        assert body["message"] == "Hey! I'm Drew."
        request, = mock_orchestrator.return_value.run_turn.await_args.args
        assert request.user_message == "hi"
        assert mock_orchestrator.return_value.run_turn.await_args.kwargs == {"user_id": None}

    def test_invalid_body(self, mock_orchestrator):
        response = main.drew_agent(make_request(body={"state": {"phase": "invoicing"}}))

        assert response.status_code == 400
        assert json.loads(response.get_data(as_text=True))["error"].startswith("Invalid request:")
        mock_orchestrator.return_value.run_turn.assert_not_called()

    def test_unparseable_json(self):
        req = make_request()
        req.get_json.side_effect = ValueError("Expecting value")

        response = main.drew_agent(req)

        assert response.status_code == 400

    def test_missing_credentials(self, mock_settings, mock_orchestrator):
        """Test a missing API key fails before the turn runs."""
        mock_settings.validate.side_effect = ConfigurationError(
            "OPENAI_API_KEY is required", setting="OPENAI_API_KEY"
        )

        response = main.drew_agent(make_request(body={"userMessage": "hi"}))

        assert response.status_code == 500
        assert json.loads(response.get_data(as_text=True)) == {"error": "OPENAI_API_KEY is required"}
        mock_orchestrator.assert_not_called()

    def test_llm_failure(self, mock_orchestrator):
        mock_orchestrator.return_value.run_turn.side_effect = LLMError("Rate limit exceeded")

        response = main.drew_agent(make_request(body={"userMessage": "hi"}))

        assert response.status_code == 500
        assert json.loads(response.get_data(as_text=True)) == {"error": "Rate limit exceeded"}


class TestGetUserId:
    """Tests for bearer token resolution."""

    def test_no_header(self):
        assert main.get_user_id(make_request()) is None

    def test_valid_token(self):
        with patch("main.auth.verify_id_token", return_value={"uid": "user-1"}) as verify:
            user_id = main.get_user_id(make_request(headers={"Authorization": "Bearer abc"}))

        assert user_id == "user-1"
        verify.assert_called_once_with("abc")

    def test_rejected_token_is_anonymous(self):
        with patch("main.auth.verify_id_token", side_effect=ValueError("malformed")):
            assert main.get_user_id(make_request(headers={"Authorization": "Bearer abc"})) is None
