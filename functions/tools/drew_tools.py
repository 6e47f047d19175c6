"""
Drew tool manifest.

Pydantic input schemas for every tool the orchestrator exposes to the
model, exported as OpenAI function-calling schemas.

Architecture:
- One input model per tool (validated before the handler runs)
- Field aliases keep the camelCase argument names the model is prompted with
- Handlers live in agents.tool_executors, keyed by the same tool names
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, Field
from langchain_core.utils.function_calling import convert_to_openai_tool


class SearchTradecraftInput(BaseModel):
    """Input schema for search_tradecraft tool."""

    query: str = Field(
        description='What to search for (e.g., "panel upgrade", "EV charger installation", "recessed lighting")'
    )
    trade: Optional[str] = Field(
        default=None,
        description='Optional: filter by trade (e.g., "electrical", "plumbing", "drywall")',
    )


class ProposeChecklistInput(BaseModel):
    """Input schema for propose_checklist tool."""

    job_type: str = Field(
        description='The job type from tradecraft (e.g., "panel_upgrade", "ev_charger", "recessed_lighting")'
    )


class LookupMaterialsInput(BaseModel):
    """Input schema for lookup_materials tool."""

    search_terms: List[str] = Field(
        alias="searchTerms",
        min_length=1,
        description='List of materials to search for (e.g., ["200A panel", "6/3 wire", "50A breaker"])',
    )
    categories: Optional[List[str]] = Field(
        default=None,
        description='Category names for grouping results (e.g., ["Main breaker panel", "Service entrance cable"])',
    )

    class Config:
        populate_by_name = True


class QuoteItemInput(BaseModel):
    """One item to add to the quote."""

    product_id: str = Field(alias="productId")
    name: str
    unit_price: float = Field(alias="unitPrice", ge=0)
    qty: float = Field(ge=0)
    unit: Optional[str] = None

    class Config:
        populate_by_name = True


class AddQuoteItemsInput(BaseModel):
    """Input schema for add_quote_items tool."""

    items: List[QuoteItemInput] = Field(description="Items to add to the quote")


class RemoveQuoteItemsInput(BaseModel):
    """Input schema for remove_quote_items tool."""

    product_ids: List[str] = Field(
        default_factory=list,
        alias="productIds",
        description="Product IDs to remove (if known)",
    )
    product_names: List[str] = Field(
        default_factory=list,
        alias="productNames",
        description="Product names or partial names to match and remove",
    )

    class Config:
        populate_by_name = True


class SetLaborInput(BaseModel):
    """Input schema for set_labor tool."""

    hours: float = Field(ge=0, description="Number of labor hours")
    rate: float = Field(ge=0, description="Hourly rate in dollars (use user default if available)")


class SetMarkupInput(BaseModel):
    """Input schema for set_markup tool."""

    percent: float = Field(ge=0, description="Markup percentage (e.g., 20 for 20%)")


class SetQuoteInfoInput(BaseModel):
    """Input schema for set_quote_info tool."""

    quote_name: Optional[str] = Field(default=None, alias="quoteName", description="Name for the quote")
    client_name: Optional[str] = Field(default=None, alias="clientName", description="Client name")
    client_email: Optional[str] = Field(default=None, alias="clientEmail", description="Client email")
    client_phone: Optional[str] = Field(default=None, alias="clientPhone", description="Client phone")

    class Config:
        populate_by_name = True


class GetQuoteSummaryInput(BaseModel):
    """Input schema for get_quote_summary tool (no arguments)."""


class FinalizeQuoteInput(BaseModel):
    """Input schema for finalize_quote tool."""

    quote_name: Optional[str] = Field(default=None, alias="quoteName", description="Optional name for the quote")

    class Config:
        populate_by_name = True


@dataclass(frozen=True)
class ToolSpec:
    """Name, model-facing description and input schema of one tool."""

    name: str
    description: str
    input_model: Type[BaseModel]

    def to_openai_tool(self) -> Dict[str, Any]:
        schema = convert_to_openai_tool(self.input_model)
        schema["function"]["name"] = self.name
        schema["function"]["description"] = self.description
        return schema


DREW_TOOL_SPECS: List[ToolSpec] = [
    ToolSpec(
        "search_tradecraft",
        "Search the tradecraft knowledge base for job-specific guidance. Use this FIRST when a user "
        "mentions any job type to get expert scoping questions, material lists, and labor estimates.",
        SearchTradecraftInput,
    ),
    ToolSpec(
        "propose_checklist",
        "Propose a materials checklist based on tradecraft. Call this AFTER scoping questions are "
        "answered, BEFORE looking up specific products. This shows the user what material categories "
        "they need so they can confirm.",
        ProposeChecklistInput,
    ),
    ToolSpec(
        "lookup_materials",
        "Search the product catalog for materials with real prices. ONLY use this after the user "
        "confirms the checklist - search only for confirmed categories.",
        LookupMaterialsInput,
    ),
    ToolSpec(
        "add_quote_items",
        "Add materials to the quote. Use after looking up materials and confirming quantities with the user.",
        AddQuoteItemsInput,
    ),
    ToolSpec(
        "remove_quote_items",
        "Remove items from the quote by product ID or name. Use when the user says to remove, delete, "
        "or clean up items that don't belong.",
        RemoveQuoteItemsInput,
    ),
    ToolSpec(
        "set_labor",
        "Set labor hours and hourly rate for the quote. Always confirm hours with the user first.",
        SetLaborInput,
    ),
    ToolSpec(
        "set_markup",
        "Set markup percentage for materials.",
        SetMarkupInput,
    ),
    ToolSpec(
        "set_quote_info",
        "Set quote name and/or client information.",
        SetQuoteInfoInput,
    ),
    ToolSpec(
        "get_quote_summary",
        "Get a summary of the current quote (items, totals, etc). Use to review before finalizing.",
        GetQuoteSummaryInput,
    ),
    ToolSpec(
        "finalize_quote",
        "Mark the quote as complete and ready to save. Use this when the user confirms they are done "
        "building the quote.",
        FinalizeQuoteInput,
    ),
]

DREW_TOOLS_BY_NAME: Dict[str, ToolSpec] = {spec.name: spec for spec in DREW_TOOL_SPECS}


def openai_tool_schemas() -> List[Dict[str, Any]]:
    """Tool manifest in OpenAI function-calling format."""
    return [spec.to_openai_tool() for spec in DREW_TOOL_SPECS]
