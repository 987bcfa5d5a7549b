"""
Categorization rule schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from clearledger.models.categorization_rule import RuleMatchType, RuleCreatedBy


class RuleCreate(BaseModel):
    match_type: RuleMatchType = RuleMatchType.exact
    payee_pattern: str = Field(..., min_length=1, max_length=255)
    description_pattern: Optional[str] = None
    category_id: str
    confidence: float = Field(0.95, ge=0.0, le=1.0)


class RuleResponse(BaseModel):
    id: str
    match_type: RuleMatchType
    payee_pattern: str
    description_pattern: Optional[str] = None
    category_id: str
    confidence: float
    times_applied: int
    times_correct: int = 0
    times_wrong: int = 0
    last_used: Optional[datetime] = None
    created_by: RuleCreatedBy
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class RuleList(BaseModel):
    items: list[RuleResponse]
    total: int
