# finance_tracker/parser.py
"""Heuristic extraction of transactions from pasted statement text.

Each non-blank line is scanned independently for an amount token, an optional
date token and a handful of keywords that hint at the direction of the money.
Lines without an amount are dropped; everything else becomes a
:class:`ParsedTransaction` with a confidence score built from the signals that
were found.
"""
from __future__ import annotations

import logging
import re
from datetime import date
from typing import Callable, List, Optional, Tuple

from finance_tracker.core.models import ParsedTransaction, TransactionType

logger = logging.getLogger(__name__)

_AMOUNT_RX = re.compile(r"[-+]?\$?\s*(\d+(?:,\d{3})*(?:\.\d{2})?)")
_DATE_RX = re.compile(r"(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})|(\d{4}[/-]\d{1,2}[/-]\d{1,2})")
_DATE_SEP_RX = re.compile(r"[/-]")

_POSITIVE_KEYWORDS = ("credit", "deposit")
_NEGATIVE_KEYWORDS = ("debit", "withdrawal", "payment")
_TYPE_INDICATORS = ("debit", "credit", "deposit", "withdrawal")

DEFAULT_DESCRIPTION = "Transaction"

# Placeholder for the date span while looking for the amount. It must not be
# whitespace, a sign, a currency symbol or a digit.
_MASK_CHAR = "\x00"


def _mask_span(line: str, match: Optional[re.Match]) -> str:
    if match is None:
        return line
    start, end = match.span()
    return line[:start] + _MASK_CHAR * (end - start) + line[end:]


def _expand_year(year: str) -> int:
    value = int(year)
    if len(year) == 2:
        return value + (2000 if value < 50 else 1900)
    return value


def _interpret_date(match: re.Match) -> Optional[date]:
    """Turn a date token into a calendar date, or ``None`` if it is not one."""
    parts = _DATE_SEP_RX.split(match.group(0))
    if match.group(2):
        year, month, day = int(parts[0]), int(parts[1]), int(parts[2])
    else:
        month, day, year = int(parts[0]), int(parts[1]), _expand_year(parts[2])
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _classify(line: str, amount: float) -> Tuple[TransactionType, float]:
    lower = line.lower()
    is_positive = "+" in line or any(kw in lower for kw in _POSITIVE_KEYWORDS)
    is_negative = "-" in line or any(kw in lower for kw in _NEGATIVE_KEYWORDS)

    # A positive signal always wins, even when the line also carries a
    # negative one ("+12.00 debit" is income).
    if is_positive:
        return TransactionType.INCOME, amount
    if is_negative:
        return TransactionType.EXPENSE, abs(amount)
    return TransactionType.EXPENSE, amount


def calculate_confidence(
    line: str,
    amount_match: Optional[re.Match],
    date_match: Optional[re.Match],
) -> float:
    """Score how much a line looks like a real transaction, in ``[0, 1]``."""
    confidence = 0.5
    if amount_match:
        confidence += 0.3
    if date_match:
        confidence += 0.2
    if len(line) > 10:
        confidence += 0.1
    lower = line.lower()
    if any(kw in lower for kw in _TYPE_INDICATORS):
        confidence += 0.1
    return min(confidence, 1.0)


def parse_line(line: str, clock: Callable[[], date] = date.today) -> Optional[ParsedTransaction]:
    """Parse a single statement line, returning ``None`` when it has no amount."""
    date_match = _DATE_RX.search(line)
    # Prefer an amount outside the date; the date's own digits are the last resort.
    amount_match = _AMOUNT_RX.search(_mask_span(line, date_match)) or _AMOUNT_RX.search(line)
    if not amount_match:
        return None

    amount = float(amount_match.group(1).replace(",", ""))
    tx_type, amount = _classify(line, amount)

    tx_date = _interpret_date(date_match) if date_match else None
    if tx_date is None:
        tx_date = clock()

    description = line.replace(amount_match.group(0), "", 1)
    if date_match:
        description = description.replace(date_match.group(0), "", 1)
    description = description.strip() or DEFAULT_DESCRIPTION

    return ParsedTransaction(
        amount=amount,
        description=description,
        type=tx_type,
        date=tx_date,
        confidence=calculate_confidence(line, amount_match, date_match),
    )


def parse_transaction_text(text: str, clock: Callable[[], date] = date.today) -> List[ParsedTransaction]:
    """Extract one candidate per line of *text* that contains an amount.

    Parameters
    ----------
    text:
        Free-form statement text, one transaction per line.
    clock:
        Callable returning the date used when a line has no usable date.
    """
    transactions = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        tx = parse_line(line, clock)
        if tx is None:
            logger.debug("No amount found in line: %r", line)
            continue
        transactions.append(tx)
    logger.debug("Parsed %d transaction(s)", len(transactions))
    return transactions
