"""
CSV file parser.
"""

import csv
import io
from typing import List, Tuple

from clearledger.parsers.base import BaseParser, RawRow


class CSVParser(BaseParser):
    """Parser for CSV bank/card and ledger exports"""

    def can_parse(self, filename: str) -> bool:
        return filename.lower().endswith('.csv')

    def parse(self, content: bytes) -> Tuple[List[str], List[RawRow]]:
        """Parse CSV into header-keyed rows, skipping blank lines"""
        text = content.decode('utf-8-sig')
        sample = text[:8192]

        try:
            dialect = csv.Sniffer().sniff(sample, delimiters=",;\t|")
        except csv.Error:
            dialect = csv.excel

        first_line = sample.splitlines()[0] if sample else ''
        if dialect.delimiter not in first_line:
            dialect = csv.excel

        reader = csv.reader(io.StringIO(text), dialect)
        headers = [h.strip() for h in next(reader, [])]

        rows: List[RawRow] = []
        for row in reader:
            if not row or all(cell.strip() == '' for cell in row):
                continue
            padded = list(row) + [''] * (len(headers) - len(row))
            rows.append({header: padded[i] for i, header in enumerate(headers)})

        return headers, rows
