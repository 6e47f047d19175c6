"""Priced product models for Drew material search."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class ProductSource(str, Enum):
    """Where a priced product came from."""
    
    PRICEBOOK = "pricebook"
    CATALOG = "catalog"


class PricedProduct(BaseModel):
    """A candidate product returned by material search."""
    
    id: str = Field(description="Product identifier (dedup key)")
    name: str = Field(description="Product name")
    price: float = Field(ge=0, description="Unit price in dollars")
    unit: str = Field(default="ea", description="Unit of measure")
    retailer: Optional[str] = Field(default=None, description="Retailer for catalog products")
    source: ProductSource = Field(description="Private price list or shared catalog")
    
    class Config:
        populate_by_name = True
        use_enum_values = True
    
    def source_label(self) -> str:
        """Label used when listing the product to the model."""
        if self.source == ProductSource.PRICEBOOK:
            return " (Your Pricebook)"
        if self.retailer:
            return f" ({self.retailer})"
        return ""
