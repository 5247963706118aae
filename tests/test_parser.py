import re
from datetime import date
from typing import Tuple, get_type_hints

import pytest

from finance_tracker.core.models import TransactionType
from finance_tracker.parser import _classify, calculate_confidence, parse_line, parse_transaction_text

FIXED_DAY = date(2030, 6, 1)


def fixed_clock():
    return FIXED_DAY


def test_grocery_debit_line():
    txs = parse_transaction_text("01/15/2024 Grocery Store $45.99 debit", clock=fixed_clock)
    assert len(txs) == 1
    tx = txs[0]
    assert tx.amount == pytest.approx(45.99)
    assert tx.type is TransactionType.EXPENSE
    assert tx.date == date(2024, 1, 15)
    assert tx.description == "Grocery Store  debit"
    assert tx.confidence == pytest.approx(1.0)


def test_salary_deposit_credit_line():
    txs = parse_transaction_text("01/16/2024 Salary deposit $2500.00 credit", clock=fixed_clock)
    assert len(txs) == 1
    tx = txs[0]
    assert tx.amount == pytest.approx(2500.00)
    assert tx.type is TransactionType.INCOME
    assert tx.date == date(2024, 1, 16)
    assert tx.confidence == pytest.approx(1.0)


def test_line_without_amount_is_skipped():
    assert parse_transaction_text("no amount here at all") == []


def test_bare_negative_amount():
    txs = parse_transaction_text("-75.00", clock=fixed_clock)
    assert len(txs) == 1
    tx = txs[0]
    assert tx.amount == pytest.approx(75.00)
    assert tx.type is TransactionType.EXPENSE
    assert tx.description == "Transaction"
    assert tx.date == FIXED_DAY
    assert tx.confidence == pytest.approx(0.8)


def test_plus_sign_beats_debit_keyword():
    tx = parse_line("+12.50 debit card refund", clock=fixed_clock)
    assert tx.type is TransactionType.INCOME
    assert tx.amount == pytest.approx(12.5)


def test_credit_keyword_beats_minus_sign():
    tx = parse_line("Card credit -20.00", clock=fixed_clock)
    assert tx.type is TransactionType.INCOME
    assert tx.amount == pytest.approx(20.0)


def test_iso_date_hyphen_counts_as_negative_signal():
    tx = parse_line("2024-03-01 Paycheck 100.00", clock=fixed_clock)
    assert tx.type is TransactionType.EXPENSE
    assert tx.date == date(2024, 3, 1)
    assert tx.description == "Paycheck"


def test_multi_line_keeps_order_and_drops_invalid_lines():
    text = (
        "01/15/2024 Coffee 4.50\n"
        "nothing to see here\n"
        "01/16/2024 Rent payment 1,200.00\n"
        "\n"
        "   \n"
        "2024-01-17 Refund +15.00"
    )
    txs = parse_transaction_text(text, clock=fixed_clock)
    assert len(txs) == 3
    assert [tx.description for tx in txs] == ["Coffee", "Rent payment", "Refund"]
    assert [tx.amount for tx in txs] == pytest.approx([4.5, 1200.0, 15.0])
    assert [tx.type for tx in txs] == [
        TransactionType.EXPENSE,
        TransactionType.EXPENSE,
        TransactionType.INCOME,
    ]
    assert [tx.date for tx in txs] == [date(2024, 1, 15), date(2024, 1, 16), date(2024, 1, 17)]


def test_amount_outside_date_is_preferred():
    tx = parse_line("2024-02-01 Rent 950.00", clock=fixed_clock)
    assert tx.amount == pytest.approx(950.0)
    assert tx.date == date(2024, 2, 1)


def test_line_with_only_date_digits_still_yields_candidate():
    txs = parse_transaction_text("Rent due 2024-02-01", clock=fixed_clock)
    assert len(txs) == 1
    tx = txs[0]
    assert tx.amount == pytest.approx(2024.0)
    assert tx.date == date(2024, 2, 1)
    assert tx.type is TransactionType.EXPENSE
    assert 0.0 <= tx.confidence <= 1.0


def test_thousands_separators_and_currency_symbol():
    tx = parse_line("Bonus $12,345.67", clock=fixed_clock)
    assert tx.amount == pytest.approx(12345.67)
    assert tx.description == "Bonus"


def test_two_digit_year():
    tx = parse_line("1/5/24 Lunch 12.00", clock=fixed_clock)
    assert tx.date == date(2024, 1, 5)
    assert tx.description == "Lunch"


def test_invalid_date_falls_back_to_clock_but_still_scores():
    tx = parse_line("13/45/2024 Something 10.00", clock=fixed_clock)
    assert tx.date == FIXED_DAY
    assert tx.confidence == pytest.approx(1.0)


def test_confidence_without_date():
    tx = parse_line("Coffee shop 4.50", clock=fixed_clock)
    assert tx.date == FIXED_DAY
    assert tx.confidence == pytest.approx(0.9)


def test_windows_line_endings():
    txs = parse_transaction_text("10.00 fee\r\n20.00 lunch\r\n", clock=fixed_clock)
    assert [tx.description for tx in txs] == ["fee", "lunch"]


def test_calculate_confidence_terms():
    amount = re.search(r"\d+", "5")
    assert calculate_confidence("5", amount, None) == pytest.approx(0.8)
    assert calculate_confidence("a long line with 5", amount, None) == pytest.approx(0.9)
    assert calculate_confidence("5 withdrawal", amount, None) == pytest.approx(1.0)
    assert calculate_confidence("short", None, None) == pytest.approx(0.5)


def test_amount_and_confidence_bounds():
    text = "\n".join(
        [
            "-1,000.00 withdrawal",
            "+5",
            "12/31/1999 - payment 0.99 debit credit",
            "Deposit 300",
            "misc 7",
        ]
    )
    txs = parse_transaction_text(text, clock=fixed_clock)
    assert len(txs) == 5
    for tx in txs:
        assert tx.amount >= 0
        assert 0.0 <= tx.confidence <= 1.0


def test_parsing_is_deterministic_with_explicit_dates():
    text = "01/15/2024 Grocery Store $45.99 debit\n2024-02-01 Transfer +100.00"
    assert parse_transaction_text(text) == parse_transaction_text(text)


def test_to_dict_serializes_enum_and_date():
    tx = parse_line("01/15/2024 Grocery Store $45.99 debit", clock=fixed_clock)
    data = tx.to_dict()
    assert data["type"] == "expense"
    assert data["date"] == "2024-01-15"
    assert data["amount"] == pytest.approx(45.99)


def test_confidence_is_not_rounded():
    amount = re.search(r"\d+", "a long line with 5")
    assert calculate_confidence("a long line with 5", amount, None) == min(0.5 + 0.3 + 0.1, 1.0)


def test_classify_declares_type_and_amount_pair():
    hints = get_type_hints(_classify)
    assert hints["return"] == Tuple[TransactionType, float]
    assert _classify("refund +3.00", 3.0) == (TransactionType.INCOME, 3.0)
