"""Tradecraft knowledge base models for Drew.

Pydantic models for tradecraft documents stored in /tradecraftDocs/{jobType}:
narrative guidance, scoping questions and the materials checklist.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class Trade(str, Enum):
    """Trades with expert personas."""
    
    ELECTRICAL = "electrical"
    PLUMBING = "plumbing"
    GENERAL = "general"
    HVAC = "hvac"
    ROOFING = "roofing"


class ScopingQuestion(BaseModel):
    """A clarifying question tied to a job type."""
    
    id: str = Field(description="Stable question identifier")
    question: str = Field(description="Question text shown to the user")
    quick_replies: List[str] = Field(
        default_factory=list,
        alias="quickReplies",
        description="Likely answers surfaced as buttons"
    )
    store_as: str = Field(
        alias="storeAs",
        description="Key the answer is stored under in scopingAnswers"
    )
    
    class Config:
        populate_by_name = True


class ChecklistItem(BaseModel):
    """A material category to confirm before searching for products."""
    
    category: str = Field(description="Category key, e.g. main_panel")
    name: str = Field(description="Human-readable name, e.g. Main breaker panel")
    search_terms: List[str] = Field(
        default_factory=list,
        alias="searchTerms",
        description="Keywords for product search"
    )
    default_qty: float = Field(
        default=1,
        alias="defaultQty",
        ge=0,
        description="Suggested quantity"
    )
    unit: str = Field(default="ea", description="Unit of measure")
    required: bool = Field(default=False, description="Pre-checked if true")
    notes: Optional[str] = Field(default=None, description="Helper text")
    
    class Config:
        populate_by_name = True


class AdjustmentAction(str, Enum):
    """Checklist adjustment actions proposed by a trade expert."""
    
    ADD = "add"
    REMOVE = "remove"
    MODIFY = "modify"


class ChecklistAdjustment(BaseModel):
    """One change to a base checklist, driven by scoping answers."""
    
    action: AdjustmentAction
    category: str
    name: Optional[str] = None
    reason: str = ""
    search_terms: Optional[List[str]] = Field(default=None, alias="searchTerms")
    default_qty: Optional[float] = Field(default=None, alias="defaultQty", ge=0)
    unit: Optional[str] = None
    
    class Config:
        populate_by_name = True
        use_enum_values = True


class TradecraftDoc(BaseModel):
    """Knowledge base document for one job type."""
    
    title: str = Field(description="Document title, e.g. 200 Amp Panel Upgrade")
    content: str = Field(default="", description="Narrative guidance in markdown")
    job_type: str = Field(alias="jobType", description="Canonical job type key")
    trade: Optional[str] = Field(default=None, description="Owning trade")
    scoping_questions: Optional[List[ScopingQuestion]] = Field(
        default=None,
        alias="scopingQuestions",
        description="Ordered scoping questions"
    )
    materials_checklist: Optional[List[ChecklistItem]] = Field(
        default=None,
        alias="materialsChecklist",
        description="Ordered materials checklist"
    )
    similarity: Optional[float] = Field(
        default=None,
        description="Cosine similarity when returned from semantic search"
    )
    
    class Config:
        populate_by_name = True
