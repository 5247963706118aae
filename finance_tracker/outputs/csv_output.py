# finance_tracker/outputs/csv_output.py
import csv
import logging

from finance_tracker.outputs.base import BaseOutput

logger = logging.getLogger(__name__)

COLUMNS = ['date', 'description', 'type', 'amount', 'confidence']


class CSVOutput(BaseOutput):
    """
    Writes parsed candidates to <output_dir>/<stem>.csv in input order.
    Amounts are formatted with two decimals.
    """
    extension = 'csv'

    def write(self, transactions, stem="parsed_transactions"):
        out_path = self.target_path(stem)
        with open(out_path, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(COLUMNS)
            for tx in transactions:
                writer.writerow([
                    tx.date.isoformat(),
                    tx.description,
                    tx.type.value,
                    f"{tx.amount:.2f}",
                    f"{tx.confidence:.2f}",
                ])
        logger.info("Written %d transaction(s) to %s", len(transactions), out_path)
        return out_path
