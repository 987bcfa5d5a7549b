"""
Base parser class for file parsing.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Tuple


RawRow = Dict[str, str]


class BaseParser(ABC):
    """Base class for file parsers. Parsers only read; they never interpret values."""

    @abstractmethod
    def can_parse(self, filename: str) -> bool:
        """Check if this parser can handle the file"""
        pass

    @abstractmethod
    def parse(self, content: bytes) -> Tuple[List[str], List[RawRow]]:
        """
        Parse file content and return (headers, rows).
        Each row maps header name -> raw string value.
        """
        pass
