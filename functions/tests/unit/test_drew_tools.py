"""Unit tests for the Drew tool manifest."""

import pytest
from pydantic import ValidationError

from tools import DREW_TOOL_SPECS, DREW_TOOLS_BY_NAME, openai_tool_schemas
from tools.drew_tools import AddQuoteItemsInput, LookupMaterialsInput, SetLaborInput


class TestToolManifest:
    """Tests for the exported tool schemas."""

    def test_tool_names(self):
        assert [spec.name for spec in DREW_TOOL_SPECS] == [
            "search_tradecraft",
            "propose_checklist",
            "lookup_materials",
            "add_quote_items",
            "remove_quote_items",
            "set_labor",
            "set_markup",
            "set_quote_info",
            "get_quote_summary",
            "finalize_quote",
        ]
        assert set(DREW_TOOLS_BY_NAME) == {spec.name for spec in DREW_TOOL_SPECS}

    def test_openai_format(self):
        """Test every schema is an OpenAI function tool with our name and description."""
        schemas = openai_tool_schemas()

        assert len(schemas) == 10
        for spec, schema in zip(DREW_TOOL_SPECS, schemas):
            assert schema["type"] == "function"
            assert schema["function"]["name"] == spec.name
            assert schema["function"]["description"] == spec.description
            assert schema["function"]["parameters"]["type"] == "object"

    def test_camel_case_arguments(self):
        """Test aliased fields are exposed under their camelCase names."""
        schema = DREW_TOOLS_BY_NAME["lookup_materials"].to_openai_tool()
        parameters = schema["function"]["parameters"]

        assert "searchTerms" in parameters["properties"]
        assert "searchTerms" in parameters["required"]
        assert "categories" not in parameters.get("required", [])

    def test_required_arguments(self):
        schema = DREW_TOOLS_BY_NAME["set_labor"].to_openai_tool()

        assert set(schema["function"]["parameters"]["required"]) == {"hours", "rate"}


class TestToolInputs:
    """Tests for tool input validation."""

    def test_lookup_requires_terms(self):
        with pytest.raises(ValidationError):
            LookupMaterialsInput.model_validate({"searchTerms": []})

    def test_add_items_from_camel_case(self):
        parsed = AddQuoteItemsInput.model_validate({
            "items": [{"productId": "p-1", "name": "200A panel", "unitPrice": 289, "qty": 1}]
        })

        assert parsed.items[0].product_id == "p-1"
        assert parsed.items[0].unit is None

    def test_negative_labor_rejected(self):
        with pytest.raises(ValidationError):
            SetLaborInput.model_validate({"hours": -1, "rate": 75})
