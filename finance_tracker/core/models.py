# finance_tracker/core/models.py
from dataclasses import asdict, dataclass
from datetime import date
from enum import Enum


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


@dataclass(frozen=True)
class ParsedTransaction:
    amount: float
    description: str
    type: TransactionType
    date: date
    confidence: float

    def to_dict(self):
        data = asdict(self)
        data["type"] = self.type.value
        data["date"] = self.date.isoformat()
        return data
