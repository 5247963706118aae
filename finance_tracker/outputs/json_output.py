# finance_tracker/outputs/json_output.py
import json
import logging

from finance_tracker.outputs.base import BaseOutput

logger = logging.getLogger(__name__)


class JSONOutput(BaseOutput):
    extension = 'json'

    def write(self, transactions, stem="parsed_transactions"):
        out_path = self.target_path(stem)
        with open(out_path, 'w', encoding='utf-8') as f:
            json.dump([tx.to_dict() for tx in transactions], f, indent=2)
        logger.info("Written %d transaction(s) to %s", len(transactions), out_path)
        return out_path
