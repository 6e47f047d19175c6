"""Conversation state models for Drew.

The ConversationState is the single piece of state threaded through every
turn. The server keeps no session memory: the client persists the encoded
state and sends it back verbatim on the next request.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from models.tradecraft import ChecklistItem, ScopingQuestion


class Phase(str, Enum):
    """Stages of the guided quote-building conversation, in forward order."""

    GREETING = "greeting"
    JOB_SELECTION = "job_selection"
    SCOPING = "scoping"
    CHECKLIST = "checklist"
    PRODUCTS = "products"
    LABOR = "labor"
    MARKUP = "markup"
    REVIEW = "review"
    DONE = "done"


PHASE_ORDER: List[str] = [phase.value for phase in Phase]


class Role(str, Enum):
    """Message author."""

    USER = "user"
    ASSISTANT = "assistant"


class ContentBlock(BaseModel):
    """Structured content for tool-use / tool-result turns."""

    type: str = Field(description="text | tool_use | tool_result")
    text: Optional[str] = None
    id: Optional[str] = None
    name: Optional[str] = None
    input: Optional[Dict[str, Any]] = None
    tool_use_id: Optional[str] = None
    content: Optional[str] = None


class Message(BaseModel):
    """One role-tagged turn in the append-only conversation log."""

    role: Role
    content: Union[str, List[ContentBlock]]

    class Config:
        use_enum_values = True


class QuoteItem(BaseModel):
    """A material line on the quote."""

    product_id: str = Field(alias="productId")
    name: str
    unit_price: float = Field(alias="unitPrice", ge=0)
    qty: float = Field(ge=0)
    unit: Optional[str] = None

    class Config:
        populate_by_name = True

    @property
    def line_total(self) -> float:
        return self.unit_price * self.qty


class WizardProduct(BaseModel):
    """A candidate product awaiting user selection."""

    id: str
    name: str
    price: float = Field(ge=0)
    unit: str = "ea"
    retailer: Optional[str] = None
    source: Optional[str] = None
    suggested_qty: float = Field(default=1, alias="suggestedQty", ge=0)

    class Config:
        populate_by_name = True

    def to_quote_item(self, qty: Optional[float] = None) -> QuoteItem:
        return QuoteItem(
            product_id=self.id,
            name=self.name,
            unit_price=self.price,
            qty=self.suggested_qty if qty is None else qty,
            unit=self.unit,
        )


class ProductGroup(BaseModel):
    """Products grouped under the checklist category that found them."""

    category: str
    category_name: str = Field(alias="categoryName")
    products: List[WizardProduct] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class UserSettings(BaseModel):
    """Caller-supplied defaults."""

    default_labor_rate: Optional[float] = Field(default=None, alias="defaultLaborRate", ge=0)
    default_markup_percent: Optional[float] = Field(default=None, alias="defaultMarkupPercent", ge=0)

    class Config:
        populate_by_name = True


class ConversationState(BaseModel):
    """Opaque-to-the-client state blob round-tripped on every turn.

    quote_items is keyed by product id in memory and encoded as a list of
    QuoteItem objects on the wire.
    """

    phase: Phase = Field(default=Phase.GREETING, description="Current phase")
    messages: List[Message] = Field(default_factory=list)
    quote_items: Dict[str, QuoteItem] = Field(default_factory=dict, alias="quoteItems")

    quote_name: Optional[str] = Field(default=None, alias="quoteName")
    client_name: Optional[str] = Field(default=None, alias="clientName")
    client_email: Optional[str] = Field(default=None, alias="clientEmail")
    client_phone: Optional[str] = Field(default=None, alias="clientPhone")

    labor_hours: Optional[float] = Field(default=None, alias="laborHours", ge=0)
    labor_rate: Optional[float] = Field(default=None, alias="laborRate", ge=0)
    markup_percent: Optional[float] = Field(default=None, alias="markupPercent", ge=0)

    tradecraft_context: Optional[str] = Field(default=None, alias="tradecraftContext")
    tradecraft_job_type: Optional[str] = Field(default=None, alias="tradecraftJobType")

    pending_checklist: Optional[List[ChecklistItem]] = Field(default=None, alias="pendingChecklist")
    pending_products: Optional[List[WizardProduct]] = Field(default=None, alias="pendingProducts")

    scoping_questions: Optional[List[ScopingQuestion]] = Field(default=None, alias="scopingQuestions")
    current_question_index: Optional[int] = Field(default=None, alias="currentQuestionIndex", ge=0)
    scoping_answers: Optional[Dict[str, str]] = Field(default=None, alias="scopingAnswers")

    is_complete: bool = Field(default=False, alias="isComplete")

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True
        extra = "allow"

    @field_validator("phase", mode="before")
    @classmethod
    def _legacy_phase(cls, value: Any) -> Any:
        # Legacy clients send no phase at all
        return Phase.GREETING if value in (None, "") else value

    @field_validator("quote_items", mode="before")
    @classmethod
    def _quote_items_from_list(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return value
        items: Dict[str, Any] = {}
        for item in value:
            if isinstance(item, QuoteItem):
                items[item.product_id] = item
            else:
                product_id = item.get("productId", item.get("product_id"))
                items[product_id] = item
        return items

    @field_serializer("quote_items")
    def _quote_items_to_list(self, items: Dict[str, QuoteItem], info) -> List[Dict[str, Any]]:
        return [
            item.model_dump(
                mode=info.mode,
                by_alias=info.by_alias,
                exclude_none=info.exclude_none,
            )
            for item in items.values()
        ]

    @model_validator(mode="after")
    def _question_index_in_bounds(self) -> "ConversationState":
        if self.current_question_index is not None:
            total = len(self.scoping_questions or [])
            if self.current_question_index > total:
                raise ValueError(
                    f"currentQuestionIndex {self.current_question_index} exceeds "
                    f"{total} scoping questions"
                )
        return self

    @classmethod
    def from_wire(cls, data: Optional[Dict[str, Any]]) -> "ConversationState":
        """Decode the client's state blob (None = brand-new conversation)."""
        return cls.model_validate(data or {})

    def to_wire(self) -> Dict[str, Any]:
        """Encode for the client with camelCase keys, omitting unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @property
    def current_question(self) -> Optional[ScopingQuestion]:
        """Scoping question awaiting an answer, if any."""
        if not self.scoping_questions:
            return None
        index = self.current_question_index or 0
        if index >= len(self.scoping_questions):
            return None
        return self.scoping_questions[index]

    @property
    def has_pending_checklist(self) -> bool:
        return bool(self.pending_checklist)

    @property
    def has_pending_products(self) -> bool:
        return bool(self.pending_products)
