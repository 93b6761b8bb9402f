# money_manager/outputs/csv_output.py
import csv
import logging
import os

from money_manager.outputs.base import HEADERS, BaseOutput
from money_manager.utils import dedupe_transactions

logger = logging.getLogger(__name__)


class CSVOutput(BaseOutput):
    """
    Writes all transactions to a single CSV file named Transactions<Year>.csv,
    de-duplicated and sorted by date (oldest to latest).
    """
    def __init__(self, config):
        self.config = config
        self.output_dir = config.get('output_dir', 'data')
        os.makedirs(self.output_dir, exist_ok=True)

    def write(self, transactions, category_names=None, account_names=None):
        if not transactions:
            logger.info("No transactions to write.")
            return None

        records = sorted(dedupe_transactions(transactions), key=lambda tx: tx.date)
        year = records[0].date.year
        out_path = os.path.join(self.output_dir, f"Transactions{year}.csv")

        with open(out_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(HEADERS)
            for tx in records:
                row = self.to_row(tx, category_names, account_names)
                row[5] = f"{row[5]:.2f}"
                row[6] = f"{row[6]:.2f}"
                writer.writerow(row)

        logger.info("Written %d unique transactions to %s", len(records), out_path)
        return out_path
