# finance_tracker/outputs/base.py
import os
from abc import ABC, abstractmethod

class BaseOutput(ABC):
    extension = ""

    def __init__(self, config):
        self.config     = config
        self.output_dir = config.get('output_dir', 'data')

    def target_path(self, stem):
        os.makedirs(self.output_dir, exist_ok=True)
        return os.path.join(self.output_dir, f"{stem}.{self.extension}")

    @abstractmethod
    def write(self, transactions, stem="parsed_transactions"):
        """Write parsed candidates to the sink and return the file path."""
        pass
