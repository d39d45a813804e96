import sys
from pathlib import Path
from decimal import Decimal
import random

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / 'src'))

import sim  # type: ignore
import objects as G  # type: ignore


CATALOG = {
    1: G.Product(id=1, name="Bread", category=G.Category.FOOD, wholesale_price=Decimal("2")),
}


def setup_game(**config) -> sim.GameState:
    return sim.GameState(config=G.GameConfig(**config), catalog=dict(CATALOG), rng=random.Random(0))


def compounded(balance: Decimal, rate: Decimal, days: int) -> Decimal:
    for _ in range(days):
        balance += balance * rate / G.DAYS_PER_YEAR
    return balance


def test_flexible_loan_adds_cash_and_debt():
    game = setup_game()
    loan = game.take_loan(1000)
    assert loan.loan_type == G.LoanType.FLEXIBLE
    assert loan.interest_rate == Decimal("0.08")
    assert game.cash == Decimal("2000")
    assert game.total_debt() == Decimal("1000")
    # borrowing does not make the player richer
    assert game.net_worth() == Decimal("1000")


def test_loan_limits():
    game = setup_game()
    with pytest.raises(sim.InvalidLoan):
        game.take_loan(499)
    with pytest.raises(sim.InvalidLoan):
        game.take_loan(25001)
    game.take_loan(25000)
    game.take_loan(25000)
    with pytest.raises(sim.InvalidLoan):
        game.take_loan(500)
    assert game.total_debt() == Decimal("50000")
    assert len(game.player.loans) == 2


def test_term_loan_durations_and_discounts():
    game = setup_game()
    with pytest.raises(sim.InvalidLoan):
        game.take_loan(1000, G.LoanType.TERM, term_days=10)
    with pytest.raises(sim.InvalidLoan):
        game.take_loan(1000, G.LoanType.FLEXIBLE, term_days=7)
    assert game.take_loan(1000, G.LoanType.TERM, term_days=7).interest_rate == Decimal("0.06")
    assert game.take_loan(1000, G.LoanType.TERM, term_days=14).interest_rate == Decimal("0.055")
    assert game.take_loan(1000, G.LoanType.TERM, term_days=30).interest_rate == Decimal("0.05")
    assert game.cash == Decimal("4000")


def test_repay_loan():
    game = setup_game()
    loan = game.take_loan(1000)
    assert game.repay_loan(loan.loan_id, 300) == Decimal("300")
    assert loan.balance == Decimal("700")
    assert game.cash == Decimal("1700")
    with pytest.raises(sim.InsufficientFunds):
        game.repay_loan(loan.loan_id, 5000)
    # overpaying only clears the balance
    assert game.repay_loan(loan.loan_id, 1000) == Decimal("700")
    assert game.cash == Decimal("1000")
    assert game.player.loans == []


def test_repay_rejects_bad_requests():
    game = setup_game()
    loan = game.take_loan(1000)
    with pytest.raises(sim.InvalidLoan):
        game.repay_loan(loan.loan_id, 0)
    with pytest.raises(sim.InvalidLoan):
        game.repay_loan(loan.loan_id + 1, 10)
    assert game.cash == Decimal("2000")


def test_interest_accrues_daily():
    game = setup_game(daily_rent=0)
    loan = game.take_loan(1000)
    result = game.advance_day()
    assert loan.balance == compounded(Decimal("1000"), Decimal("0.08"), 1)
    assert result.loan_interest == Decimal("1000") * Decimal("0.08") / G.DAYS_PER_YEAR
    assert result.net_profit == -result.loan_interest


def test_line_of_credit_pays_itself_down():
    game = setup_game(daily_rent=0)
    loan = game.take_loan(1000, G.LoanType.LINE_OF_CREDIT)
    result = game.advance_day()
    accrued = compounded(Decimal("1000"), Decimal("0.07"), 1)
    expected_payment = accrued * Decimal("0.02")
    assert result.loan_payments == [(loan.loan_id, expected_payment)]
    assert loan.balance == accrued - expected_payment
    assert game.cash == Decimal("2000") - expected_payment


def test_line_of_credit_minimum_payment():
    loan = G._LoanInstance(loan_id=1, loan_type=G.LoanType.LINE_OF_CREDIT, principal=Decimal("300"),
                           balance=Decimal("300"), interest_rate=Decimal("0.07"))
    assert loan.auto_payment(Decimal("0.02"), Decimal("10")) == Decimal("10")
    loan.balance = Decimal("4")
    assert loan.auto_payment(Decimal("0.02"), Decimal("10")) == Decimal("4")


def test_term_loan_paid_when_due():
    game = setup_game(daily_rent=0)
    game.take_loan(1000, G.LoanType.TERM, term_days=7)
    for _ in range(6):
        assert game.advance_day().loans_due == []
    result = game.advance_day()
    owed = compounded(Decimal("1000"), Decimal("0.06"), 7)
    assert result.loans_due == [(1, owed)]
    assert result.term_loan_penalties == 0
    assert game.player.loans == []
    assert game.cash == Decimal("2000") - owed


def test_term_loan_default_adds_penalty():
    game = setup_game(daily_rent=0)
    game.take_loan(5000, G.LoanType.TERM, term_days=7)
    game.buy_store()
    assert game.cash == Decimal("1000")
    for _ in range(7):
        result = game.advance_day()
    owed = compounded(Decimal("5000"), Decimal("0.06"), 7)
    penalty = owed * Decimal("0.25")
    assert result.term_loan_penalties == penalty
    assert game.cash == 0
    assert not game.is_game_over
    (loan,) = game.player.loans
    assert loan.balance == owed - Decimal("1000") + penalty
