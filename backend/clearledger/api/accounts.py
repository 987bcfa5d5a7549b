"""
Account API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from clearledger.dependencies import get_db
from clearledger.models import Account
from clearledger.models.account import normal_balance_for
from clearledger.money import to_cents
from clearledger.schemas.account import (
    AccountCreate,
    AccountUpdate,
    AccountResponse,
    AccountList,
)

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("", response_model=AccountList)
def list_accounts(
    skip: int = 0,
    limit: int = 100,
    include_inactive: bool = False,
    db: Session = Depends(get_db)
):
    """List accounts."""
    query = db.query(Account)
    if not include_inactive:
        query = query.filter(Account.is_active == True)
    total = query.count()
    accounts = query.order_by(Account.name).offset(skip).limit(limit).all()

    return AccountList(
        items=accounts,
        total=total
    )


@router.post("", response_model=AccountResponse, status_code=201)
def create_account(
    account: AccountCreate,
    db: Session = Depends(get_db)
):
    """Create a new account."""
    db_account = Account(
        name=account.name,
        account_type=account.account_type,
        institution=account.institution,
        normal_balance=normal_balance_for(account.account_type),
        opening_balance_cents=to_cents(account.opening_balance),
        opening_balance_date=account.opening_balance_date,
    )
    db.add(db_account)
    db.commit()
    db.refresh(db_account)
    return db_account


@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: str,
    db: Session = Depends(get_db)
):
    """Get a specific account."""
    account = db.query(Account).filter(Account.id == account_id).first()
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    return account


@router.patch("/{account_id}", response_model=AccountResponse)
def update_account(
    account_id: str,
    account_update: AccountUpdate,
    db: Session = Depends(get_db)
):
    """Update an account."""
    account = db.query(Account).filter(Account.id == account_id).first()
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")

    if account_update.name is not None:
        account.name = account_update.name
    if account_update.institution is not None:
        account.institution = account_update.institution
    if account_update.opening_balance is not None:
        account.opening_balance_cents = to_cents(account_update.opening_balance)
    if account_update.opening_balance_date is not None:
        account.opening_balance_date = account_update.opening_balance_date
    if account_update.is_active is not None:
        account.is_active = account_update.is_active

    db.commit()
    db.refresh(account)
    return account


@router.delete("/{account_id}", status_code=204)
def delete_account(
    account_id: str,
    db: Session = Depends(get_db)
):
    """Deactivate an account. Accounts with history are never removed."""
    account = db.query(Account).filter(Account.id == account_id).first()
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")

    account.is_active = False
    db.commit()
    return None
