"""Unit tests for DrewRequest validation."""

import pytest

from config.errors import ValidationError, ErrorCode
from validators.request_validator import parse_drew_request, validate_drew_request


class TestValidateDrewRequest:
    """Tests for validate_drew_request."""

    def test_first_turn(self):
        """Test a first turn without state parses to an empty request."""
        result = validate_drew_request({"userMessage": "panel upgrade"})

        assert result.is_valid is True
        assert result.errors == []
        assert result.parsed.user_message == "panel upgrade"
        assert result.parsed.state is None
        assert result.parsed.user_settings.default_labor_rate is None

    def test_state_round_trip(self):
        """Test a state blob emitted by the server validates unchanged."""
        body = {
            "userMessage": "8 hours",
            "state": {
                "phase": "labor",
                "quoteItems": [{"productId": "p-1", "name": "200A panel", "unitPrice": 289, "qty": 1}],
                "tradecraftJobType": "panel_upgrade",
            },
            "userSettings": {"defaultLaborRate": 85},
        }

        result = validate_drew_request(body)

        assert result.is_valid is True
        state = result.parsed.state
        assert state.phase == "labor"
        assert state.quote_items["p-1"].unit_price == 289
        assert state.to_wire()["quoteItems"] == body["state"]["quoteItems"]
        assert result.parsed.user_settings.default_labor_rate == 85

    def test_not_an_object(self):
        result = validate_drew_request(["hello"])

        assert result.is_valid is False
        assert result.errors == ["body: expected a JSON object"]

    def test_invalid_state(self):
        """Test field errors are reported with their location."""
        result = validate_drew_request({"userMessage": "hi", "state": {"phase": "invoicing"}})

        assert result.is_valid is False
        assert result.parsed is None
        assert result.errors[0].startswith("state.phase:")

    def test_negative_default_rate(self):
        result = validate_drew_request({"userSettings": {"defaultLaborRate": -10}})

        assert result.is_valid is False
        assert result.errors[0].startswith("userSettings.defaultLaborRate:")


class TestParseDrewRequest:
    """Tests for parse_drew_request."""

    def test_valid(self):
        request = parse_drew_request({"userMessage": "start over"})

        assert request.user_message == "start over"

    def test_invalid_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_drew_request({"userMessage": 42})

        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
        assert exc_info.value.message.startswith("Invalid request: userMessage:")
        assert exc_info.value.details["errors"]
