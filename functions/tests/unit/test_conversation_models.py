"""Unit tests for conversation state models and the wire format."""

import pytest
from pydantic import ValidationError

from models.conversation import (
    ConversationState,
    ContentBlock,
    Message,
    Phase,
    QuoteItem,
    WizardProduct,
)
from models.drew_response import Display, DisplayType, DrewRequest, DrewResponse


class TestConversationStateDefaults:
    """Tests for new and legacy state blobs."""

    def test_empty_blob_is_greeting(self):
        """Test that a missing state decodes to a fresh greeting state."""
        state = ConversationState.from_wire(None)

        assert state.phase == "greeting"
        assert state.messages == []
        assert state.quote_items == {}
        assert state.is_complete is False

    def test_missing_phase_treated_as_greeting(self):
        """Test that legacy clients without a phase start at greeting."""
        state = ConversationState.from_wire({"phase": None, "laborHours": 4})

        assert state.phase == Phase.GREETING.value
        assert state.labor_hours == 4

    def test_unknown_phase_rejected(self):
        """Test that an unknown phase value fails validation."""
        with pytest.raises(ValidationError):
            ConversationState.from_wire({"phase": "invoicing"})

    def test_negative_money_rejected(self):
        """Test that negative labor and markup values are invalid."""
        with pytest.raises(ValidationError):
            ConversationState.from_wire({"laborRate": -5})
        with pytest.raises(ValidationError):
            ConversationState.from_wire({"markupPercent": -1})


class TestQuestionIndexBounds:
    """Tests for the scoping question pointer."""

    def test_index_equal_to_question_count_allowed(self, scoping_state):
        """Test that index == len(questions) means all answered."""
        state = scoping_state.model_copy(update={"current_question_index": 2})
        decoded = ConversationState.from_wire(state.to_wire())

        assert decoded.current_question_index == 2
        assert decoded.current_question is None

    def test_index_past_question_count_rejected(self, scoping_state):
        """Test that index > len(questions) fails validation."""
        wire = scoping_state.to_wire()
        wire["currentQuestionIndex"] = 3

        with pytest.raises(ValidationError):
            ConversationState.from_wire(wire)

    def test_current_question_follows_index(self, scoping_state):
        """Test current_question resolves the question at the index."""
        assert scoping_state.current_question.store_as == "current_amperage"

        advanced = scoping_state.model_copy(update={"current_question_index": 1})
        assert advanced.current_question.store_as == "panel_location"


class TestWireFormat:
    """Tests for encoding and decoding the client state blob."""

    def test_quote_items_encoded_as_list(self, priced_state):
        """Test that quote items travel as a list with camelCase keys."""
        wire = priced_state.to_wire()

        assert isinstance(wire["quoteItems"], list)
        assert wire["quoteItems"][0]["productId"] == "p-panel"
        assert wire["quoteItems"][0]["unitPrice"] == 289.0
        assert "labor_hours" not in wire
        assert wire["laborHours"] == 8

    def test_unset_fields_omitted(self):
        """Test that None fields are left out of the wire format."""
        wire = ConversationState(phase=Phase.JOB_SELECTION).to_wire()

        assert "quoteName" not in wire
        assert "pendingChecklist" not in wire
        assert wire["phase"] == "job_selection"

    def test_round_trip_full_state(self, checklist_state, sample_products):
        """Test that a populated state survives encode/decode unchanged."""
        state = checklist_state.model_copy(update={
            "messages": [
                Message(role="user", content="panel upgrade"),
                Message(role="assistant", content=[
                    ContentBlock(type="text", text="Looking that up"),
                    ContentBlock(type="tool_use", id="call_1", name="search_tradecraft",
                                 input={"query": "panel upgrade"}),
                ]),
                Message(role="user", content=[
                    ContentBlock(type="tool_result", tool_use_id="call_1", content="Found it"),
                ]),
            ],
            "quote_items": {
                "p-ser": QuoteItem(product_id="p-ser", name="4/0 SER Cable", unit_price=4.25, qty=30, unit="ft"),
            },
            "pending_products": [
                WizardProduct(id=p.id, name=p.name, price=p.price, unit=p.unit,
                              retailer=p.retailer, source=p.source, suggested_qty=1)
                for p in sample_products
            ],
            "quote_name": "Garage panel",
            "client_email": "pat@example.com",
            "labor_hours": 7.5,
            "labor_rate": 90,
            "markup_percent": 0,
        })

        decoded = ConversationState.from_wire(state.to_wire())

        assert decoded == state
        assert decoded.to_wire() == state.to_wire()

    def test_unknown_client_fields_preserved(self):
        """Test that extra fields from newer clients are round-tripped."""
        wire = {"phase": "labor", "draftNotes": "call before noon"}

        decoded = ConversationState.from_wire(wire)

        assert decoded.to_wire()["draftNotes"] == "call before noon"

    def test_quote_items_keyed_by_product_id(self):
        """Test that decoding a list keys items by product id."""
        state = ConversationState.from_wire({"quoteItems": [
            {"productId": "a", "name": "Wire", "unitPrice": 1.5, "qty": 10},
            {"productId": "b", "name": "Box", "unitPrice": 2, "qty": 3},
        ]})

        assert set(state.quote_items) == {"a", "b"}
        assert state.quote_items["a"].line_total == 15.0


class TestEnvelopes:
    """Tests for request/response envelopes."""

    def test_request_defaults(self):
        """Test that only the user message is needed."""
        request = DrewRequest.model_validate({"userMessage": "hi"})

        assert request.state is None
        assert request.user_settings.default_labor_rate is None

    def test_request_parses_user_settings(self):
        """Test camelCase user settings."""
        request = DrewRequest.model_validate({
            "userMessage": "8 hours",
            "state": {"phase": "labor"},
            "userSettings": {"defaultLaborRate": 85, "defaultMarkupPercent": 20},
        })

        assert request.state.phase == "labor"
        assert request.user_settings.default_labor_rate == 85
        assert request.user_settings.default_markup_percent == 20

    def test_response_wire_format(self, panel_checklist):
        """Test that the response uses camelCase and drops empty fields."""
        response = DrewResponse(
            message="Here's what you'll need:",
            state=ConversationState(phase="checklist", pending_checklist=panel_checklist),
            display=Display(type=DisplayType.CHECKLIST, checklist=panel_checklist),
            quick_replies=[],
        )

        wire = response.to_wire()

        assert wire["quickReplies"] == []
        assert wire["display"]["type"] == "checklist"
        assert wire["display"]["checklist"][0]["searchTerms"] == ["200A panel", "200 amp load center"]
        assert "toolCalls" not in wire
        assert wire["state"]["pendingChecklist"][0]["category"] == "main_panel"
