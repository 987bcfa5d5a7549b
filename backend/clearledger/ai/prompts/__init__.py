from clearledger.ai.prompts.categorization import CATEGORIZATION_SYSTEM, CATEGORIZATION_USER
from clearledger.ai.prompts.statement_extraction import (
    STATEMENT_EXTRACTION_SYSTEM,
    STATEMENT_EXTRACTION_USER,
)

__all__ = [
    "CATEGORIZATION_SYSTEM",
    "CATEGORIZATION_USER",
    "STATEMENT_EXTRACTION_SYSTEM",
    "STATEMENT_EXTRACTION_USER",
]
