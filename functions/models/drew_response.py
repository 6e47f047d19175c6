"""Request/response envelope models for the Drew endpoint."""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from models.conversation import ConversationState, ProductGroup, UserSettings, WizardProduct
from models.tradecraft import ChecklistItem


class DisplayType(str, Enum):
    """Rich payload kinds rendered by the mobile client."""

    PRODUCTS = "products"
    ADDED = "added"
    SUMMARY = "summary"
    CHECKLIST = "checklist"


class AddedItem(BaseModel):
    """Line shown after items were added to the quote."""

    name: str
    qty: float


class Display(BaseModel):
    """Display payload for the client (at most one per turn)."""

    type: DisplayType
    products: Optional[List[WizardProduct]] = None
    product_groups: Optional[List[ProductGroup]] = Field(default=None, alias="productGroups")
    checklist: Optional[List[ChecklistItem]] = None
    added_items: Optional[List[AddedItem]] = Field(default=None, alias="addedItems")

    class Config:
        populate_by_name = True
        use_enum_values = True


class ToolCall(BaseModel):
    """Client-side action hint (reserved; the client applies state directly)."""

    type: str
    product_id: Optional[str] = Field(default=None, alias="productId")
    product_name: Optional[str] = Field(default=None, alias="productName")
    qty: Optional[float] = None
    unit_price: Optional[float] = Field(default=None, alias="unitPrice")
    hours: Optional[float] = None
    rate: Optional[float] = None
    percent: Optional[float] = None
    name: Optional[str] = None

    class Config:
        populate_by_name = True


class DrewRequest(BaseModel):
    """One conversation turn from the client."""

    user_message: str = Field(default="", alias="userMessage")
    state: Optional[ConversationState] = None
    user_settings: UserSettings = Field(default_factory=UserSettings, alias="userSettings")

    class Config:
        populate_by_name = True


class DrewResponse(BaseModel):
    """One conversation turn back to the client."""

    message: str
    state: ConversationState
    display: Optional[Display] = None
    quick_replies: Optional[List[str]] = Field(default=None, alias="quickReplies")
    tool_calls: Optional[List[ToolCall]] = Field(default=None, alias="toolCalls")

    class Config:
        populate_by_name = True

    def to_wire(self) -> Dict[str, Any]:
        """Encode for the HTTP response body."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
