"""
Account Pydantic schemas for API validation.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from clearledger.models.account import AccountType, NormalBalance


class AccountBase(BaseModel):
    """Base account schema."""
    name: str = Field(..., min_length=1, max_length=100)
    account_type: AccountType
    institution: Optional[str] = Field(None, max_length=100)


class AccountCreate(AccountBase):
    """Schema for creating an account. Opening balance is as printed by the institution."""
    opening_balance: Decimal = Decimal("0")
    opening_balance_date: Optional[date] = None


class AccountUpdate(BaseModel):
    """Schema for updating an account."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    institution: Optional[str] = Field(None, max_length=100)
    opening_balance: Optional[Decimal] = None
    opening_balance_date: Optional[date] = None
    is_active: Optional[bool] = None


class AccountResponse(AccountBase):
    """Schema for account response."""
    id: str
    normal_balance: NormalBalance
    opening_balance: Decimal
    opening_balance_date: Optional[date] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class AccountList(BaseModel):
    """Schema for listing accounts."""
    items: list[AccountResponse]
    total: int
