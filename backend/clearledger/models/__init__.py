"""
Database models package.
"""

from clearledger.models.account import Account, AccountType, NormalBalance
from clearledger.models.category import Category, CategoryType
from clearledger.models.transaction import Transaction, ReviewStatus, ReconciliationStatus, BankStatus
from clearledger.models.transaction_split import TransactionSplit
from clearledger.models.categorization_rule import CategorizationRule, RuleMatchType, RuleCreatedBy
from clearledger.models.import_batch import ImportBatch, ImportStatus, AmountStrategy
from clearledger.models.bank_statement import BankStatement, StatementTransaction, StatementStatus, MatchMethod
from clearledger.models.review_action import ReviewAction, ReviewActionType

__all__ = [
    "Account",
    "AccountType",
    "NormalBalance",
    "Category",
    "CategoryType",
    "Transaction",
    "ReviewStatus",
    "ReconciliationStatus",
    "BankStatus",
    "TransactionSplit",
    "CategorizationRule",
    "RuleMatchType",
    "RuleCreatedBy",
    "ImportBatch",
    "ImportStatus",
    "AmountStrategy",
    "BankStatement",
    "StatementTransaction",
    "StatementStatus",
    "MatchMethod",
    "ReviewAction",
    "ReviewActionType",
]
