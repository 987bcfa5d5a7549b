"""
Balanced split generation for multi-leg postings.

A split set always sums to zero cents. Anything else is rejected before a
single row is written.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from clearledger.models.account import Account, AccountType
from clearledger.money import AmountParseError, parse_amount
from clearledger.services.errors import SplitImbalanceError


@dataclass
class SplitCandidate:
    account_id: Optional[str]
    category_id: Optional[str]
    amount_cents: int
    memo: Optional[str] = None


def assert_balanced_splits(splits: Sequence[SplitCandidate]) -> None:
    if not splits:
        return
    for split in splits:
        if split.amount_cents == 0:
            raise SplitImbalanceError("Split amount cannot be zero.")
    if sum(split.amount_cents for split in splits) != 0:
        raise SplitImbalanceError("Splits must balance to zero.")


def _find_account_match(
    accounts: Sequence[Account],
    payee: str,
    account_type: AccountType
) -> Optional[Account]:
    needle = payee.lower()
    for account in accounts:
        if account.account_type == account_type and account.name.lower() in needle:
            return account
    return None


def _raw_amount(raw_data: Dict[str, str], keys: Sequence[str]) -> Optional[int]:
    for key in keys:
        if key in raw_data:
            try:
                return abs(parse_amount(raw_data[key]))
            except AmountParseError:
                return None
    return None


def build_split_candidates(
    amount_cents: int,
    account_id: str,
    payee: str,
    accounts: Sequence[Account],
    raw_data: Optional[Dict[str, str]] = None,
    transfer_to_account_id: Optional[str] = None,
) -> List[SplitCandidate]:
    """
    Build the split legs implied by a transaction, if any.

    - An explicit transfer produces out/in legs.
    - A payee naming one of our credit cards produces a card payment.
    - A payee naming one of our loans produces a loan payment, broken into
      principal and interest when the source row carries both columns.
    """
    raw_data = raw_data or {}
    splits: List[SplitCandidate] = []
    if amount_cents == 0:
        return splits

    if transfer_to_account_id:
        splits = [
            SplitCandidate(account_id, None, amount_cents, "Transfer out"),
            SplitCandidate(transfer_to_account_id, None, -amount_cents, "Transfer in"),
        ]
    else:
        others = [a for a in accounts if a.id != account_id]
        card = _find_account_match(others, payee, AccountType.credit_card)
        loan = _find_account_match(others, payee, AccountType.loan)

        if card:
            splits = [
                SplitCandidate(account_id, None, amount_cents, "Credit card payment"),
                SplitCandidate(card.id, None, -amount_cents, "Credit card liability"),
            ]
        elif loan:
            principal = _raw_amount(raw_data, ("Principal", "principal"))
            interest = _raw_amount(raw_data, ("Interest", "interest"))
            # legs take the opposite sign of the payment itself
            leg_sign = -1 if amount_cents > 0 else 1
            if (
                principal is not None
                and interest is not None
                and principal > 0
                and interest > 0
                and principal + interest == abs(amount_cents)
            ):
                splits = [
                    SplitCandidate(account_id, None, amount_cents, "Loan payment"),
                    SplitCandidate(loan.id, None, leg_sign * principal, "Principal"),
                    SplitCandidate(None, None, leg_sign * interest, "Interest"),
                ]
            else:
                splits = [
                    SplitCandidate(account_id, None, amount_cents, "Loan payment"),
                    SplitCandidate(loan.id, None, -amount_cents, "Principal"),
                ]

    assert_balanced_splits(splits)
    return splits
