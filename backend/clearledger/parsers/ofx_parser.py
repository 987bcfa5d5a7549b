"""
OFX/QFX file parser.
"""

import io
from typing import List, Tuple

from ofxparse import OfxParser as OFXParseLib

from clearledger.parsers.base import BaseParser, RawRow

OFX_HEADERS = ['Date', 'Amount', 'Payee', 'Memo', 'Reference']


class OFXParser(BaseParser):
    """Parser for OFX/QFX bank exports, flattened to the same raw-row shape as CSV"""

    def can_parse(self, filename: str) -> bool:
        return filename.lower().endswith(('.ofx', '.qfx'))

    def parse(self, content: bytes) -> Tuple[List[str], List[RawRow]]:
        ofx = OFXParseLib.parse(io.BytesIO(content))

        rows: List[RawRow] = []
        for account in ofx.accounts:
            for txn in account.statement.transactions:
                txn_date = txn.date.date() if hasattr(txn.date, 'date') else txn.date
                rows.append({
                    'Date': txn_date.isoformat(),
                    'Amount': str(txn.amount),
                    'Payee': (txn.payee or '').strip(),
                    'Memo': (txn.memo or '').strip(),
                    'Reference': (txn.id or '').strip(),
                })

        return list(OFX_HEADERS), rows
