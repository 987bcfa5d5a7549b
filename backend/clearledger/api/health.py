"""
Health check endpoint.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from clearledger.config import settings
from clearledger.dependencies import get_db

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint."""
    db.execute(text("SELECT 1"))
    return {
        "status": "ok",
        "app_name": settings.app_name
    }
