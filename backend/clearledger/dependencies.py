"""
FastAPI dependencies.
"""

from functools import lru_cache
from typing import Callable, Generator, Optional
from sqlalchemy.orm import Session
from clearledger.config import settings
from clearledger.database import SessionLocal
from clearledger.services.extraction_service import ExtractionProvider, build_extractor
from clearledger.services.suggester import CategorySuggester, build_suggester


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database sessions.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> Callable[[], Session]:
    """Session factory for work that outlives the request, such as background imports."""
    return SessionLocal


@lru_cache
def _suggester() -> Optional[CategorySuggester]:
    return build_suggester(settings)


def get_suggester() -> Optional[CategorySuggester]:
    """The category suggester, resolved once from settings. None means rule-only."""
    return _suggester()


def get_extractor() -> Optional[ExtractionProvider]:
    return build_extractor(settings)
