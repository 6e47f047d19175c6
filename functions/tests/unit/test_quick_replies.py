"""Unit tests for quick-reply parsing and response formatting."""

from agents.phrases import PRODUCT_QUICK_REPLIES
from agents.quick_replies import fallback_quick_replies, parse_quick_replies
from agents.response_formatter import build_display, build_response, resolve_quick_replies
from models.conversation import ConversationState, UserSettings, WizardProduct


class TestParseQuickReplies:
    """Tests for the [QUICK_REPLIES: ...] directive."""

    def test_directive_stripped_and_parsed(self):
        text, options = parse_quick_replies(
            'What size is the panel?\n\n[QUICK_REPLIES: "100A", "150A", "60A or fuse box"]'
        )

        assert text == "What size is the panel?"
        assert options == ["100A", "150A", "60A or fuse box"]

    def test_no_directive(self):
        text, options = parse_quick_replies("  Got it.  ")

        assert text == "Got it."
        assert options is None

    def test_single_quotes_and_multiline(self):
        text, options = parse_quick_replies("Where is it? [QUICK_REPLIES: 'Garage',\n 'Basement']")

        assert text == "Where is it?"
        assert options == ["Garage", "Basement"]

    def test_directive_without_options_is_still_removed(self):
        text, options = parse_quick_replies("Okay. [QUICK_REPLIES: none]")

        assert text == "Okay."
        assert options is None

    def test_every_directive_removed(self):
        text, options = parse_quick_replies('A [QUICK_REPLIES: "x"] B [QUICK_REPLIES: "y"]')

        assert "QUICK_REPLIES" not in text
        assert options == ["x"]


class TestFallbackQuickReplies:
    """Tests for state-derived quick replies."""

    def test_empty_quote(self):
        assert fallback_quick_replies(ConversationState(), UserSettings()) == ["Look up materials"]

    def test_items_without_labor_with_default_rate(self, priced_state):
        state = priced_state.model_copy(update={"labor_hours": None})

        replies = fallback_quick_replies(state, UserSettings(default_labor_rate=85))

        assert replies == ["Use my default rate", "Set labor hours", "Look up materials"]

    def test_items_and_labor_without_markup(self, priced_state):
        state = priced_state.model_copy(update={"markup_percent": None})

        replies = fallback_quick_replies(state, UserSettings(default_markup_percent=20))

        assert replies == ["Use 20% markup", "Set markup percentage", "Look up materials"]

    def test_ready_to_finalize(self, priced_state):
        replies = fallback_quick_replies(priced_state, UserSettings())

        assert replies[:2] == ["Yes, finalize", "Add more materials"]
        assert len(replies) <= 3

    def test_complete_quote(self, priced_state):
        state = priced_state.model_copy(update={"is_complete": True})

        assert fallback_quick_replies(state, UserSettings()) == ["Save Quote", "Add more materials"]


class TestResponseFormatter:
    """Tests for display selection and quick-reply precedence."""

    def test_checklist_display_wins(self, checklist_state):
        state = checklist_state.model_copy(update={
            "pending_products": [WizardProduct(id="p", name="Panel", price=1)],
        })

        display = build_display(state)

        assert display.type == "checklist"
        assert resolve_quick_replies(display, ["Sure"], state, UserSettings()) == []

    def test_products_display(self):
        state = ConversationState(pending_products=[WizardProduct(id="p", name="Panel", price=1)])

        display = build_display(state)

        assert display.type == "products"
        assert resolve_quick_replies(display, ["Sure"], state, UserSettings()) == PRODUCT_QUICK_REPLIES

    def test_directive_beats_fallback(self):
        state = ConversationState()

        assert build_display(state) is None
        assert resolve_quick_replies(None, ["20%", "25%"], state, UserSettings()) == ["20%", "25%"]
        assert resolve_quick_replies(None, None, state, UserSettings()) == ["Look up materials"]

    def test_build_response(self, checklist_state):
        response = build_response("Here's the list:", checklist_state, UserSettings(), directive=["Ok"])

        assert response.message == "Here's the list:"
        assert response.display.checklist == checklist_state.pending_checklist
        assert response.quick_replies == []
