# caixafacil/outputs/csv_output.py

import os
import csv
import logging
from decimal import Decimal

from caixafacil.outputs.base import BaseOutput

logger = logging.getLogger(__name__)

HEADERS = ['date', 'description', 'type', 'category', 'amount', 'bank_account', 'notes']


class CSVOutput(BaseOutput):
    """
    Writes stored transactions to a single CSV file named Transacoes<Year>.csv
    (year of the oldest row), sorted by date, oldest first.
    """
    def __init__(self, config):
        self.config     = config
        self.output_dir = config.get('output_dir', 'data')
        os.makedirs(self.output_dir, exist_ok=True)

    def write(self, transactions):
        if not transactions:
            logger.info("No transactions to write.")
            return None

        rows = sorted(transactions, key=lambda r: (r['date'], r.get('id') or 0))
        year = rows[0]['date'][:4]
        out_path = os.path.join(self.output_dir, f"Transacoes{year}.csv")

        with open(out_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(HEADERS)
            for row in rows:
                writer.writerow([
                    row['date'],
                    row['description'],
                    row['type'],
                    row.get('category') or '',
                    f"{Decimal(str(row['amount'])):.2f}",
                    row.get('bank_account') or '',
                    row.get('notes') or '',
                ])

        logger.info("Written %d transactions to %s", len(rows), out_path)
        return out_path
