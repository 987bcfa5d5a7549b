"""
File parsers package.
"""

from typing import Optional

from clearledger.parsers.base import BaseParser, RawRow
from clearledger.parsers.csv_parser import CSVParser
from clearledger.parsers.ofx_parser import OFXParser, OFX_HEADERS


def get_parser(filename: str) -> Optional[BaseParser]:
    """Get appropriate parser for file type"""
    for parser in (CSVParser(), OFXParser()):
        if parser.can_parse(filename):
            return parser
    return None


__all__ = ['BaseParser', 'RawRow', 'CSVParser', 'OFXParser', 'OFX_HEADERS', 'get_parser']
