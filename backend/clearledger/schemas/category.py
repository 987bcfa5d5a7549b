"""
Category Pydantic schemas for API validation.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from clearledger.models.category import CategoryType


class CategoryBase(BaseModel):
    """Base category schema."""
    name: str = Field(..., min_length=1, max_length=100)
    category_type: CategoryType = CategoryType.expense
    parent_id: Optional[str] = None
    sort_order: int = 0


class CategoryCreate(CategoryBase):
    """Schema for creating a category."""
    pass


class CategoryUpdate(BaseModel):
    """Schema for updating a category."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    category_type: Optional[CategoryType] = None
    parent_id: Optional[str] = None
    sort_order: Optional[int] = None


class CategoryResponse(CategoryBase):
    """Schema for category response."""
    id: str
    created_at: datetime
    children: list["CategoryResponse"] = []

    class Config:
        from_attributes = True


# Enable forward references for recursive model
CategoryResponse.model_rebuild()


class CategoryList(BaseModel):
    """Schema for listing categories."""
    items: list[CategoryResponse]
    total: int
