"""
Main API router.
"""

from fastapi import APIRouter
from clearledger.api import accounts, categories, health, imports, rules, statements, transactions

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(accounts.router)
api_router.include_router(categories.router)
api_router.include_router(rules.router)
api_router.include_router(transactions.router)
api_router.include_router(imports.router)
api_router.include_router(statements.router)
