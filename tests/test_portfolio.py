"""Paper ledger: trade arithmetic, skips and bounded logs."""

import pytest

from core.models import Decision, TradingAction
from core.portfolio import PortfolioLedger, PortfolioState


def decision(action: str, fraction: float, reasoning: str = "test") -> Decision:
    return Decision(action=TradingAction(action), reasoning=reasoning, trade_fraction=fraction)


class RecordingJournal:

    def __init__(self):
        self.trades = []
        self.decisions = []

    def log_trade(self, record):
        self.trades.append(record)

    def log_decision(self, record):
        self.decisions.append(record)


class TestApply:

    def test_buy_spends_fraction_of_cash(self):
        ledger = PortfolioLedger(initial_cash=1000.0)
        trade = ledger.apply(decision("BUY", 0.5), price=100.0)

        assert ledger.state == PortfolioState(cash=500.0, asset_amount=5.0)
        assert trade.action == TradingAction.BUY
        assert trade.amount == pytest.approx(5.0)
        assert trade.price == 100.0
        assert trade.asset == "BTC"
        assert trade.id.startswith("trade-")

    def test_sell_sells_fraction_of_holdings(self):
        ledger = PortfolioLedger(initial_cash=0.0, initial_asset=2.0)
        trade = ledger.apply(decision("SELL", 0.5), price=100.0)

        assert ledger.asset_amount == pytest.approx(1.0)
        assert ledger.cash == pytest.approx(100.0)
        assert trade.notional == pytest.approx(100.0)

    def test_hold_changes_nothing(self):
        ledger = PortfolioLedger(initial_cash=1000.0)
        assert ledger.apply(decision("HOLD", 0.9), price=100.0) is None
        assert ledger.state == PortfolioState(1000.0, 0.0)
        assert ledger.trades == ()

    def test_buy_skipped_at_minimum_cash(self):
        ledger = PortfolioLedger(initial_cash=10.0)
        assert ledger.apply(decision("BUY", 1.0), price=100.0) is None
        assert ledger.cash == 10.0
        assert ledger.trade_count == 0

    def test_sell_skipped_without_holdings(self):
        ledger = PortfolioLedger(initial_cash=1000.0)
        assert ledger.apply(decision("SELL", 1.0), price=100.0) is None
        assert ledger.trades == ()

    def test_zero_fraction_skips(self):
        ledger = PortfolioLedger(initial_cash=1000.0, initial_asset=1.0)
        assert ledger.apply(decision("BUY", 0.0), price=100.0) is None
        assert ledger.apply(decision("SELL", 0.0), price=100.0) is None
        assert ledger.trade_count == 0

    def test_full_buy_then_full_sell_never_goes_negative(self):
        ledger = PortfolioLedger(initial_cash=1000.0)
        ledger.apply(decision("BUY", 1.0), price=333.0)
        assert ledger.cash == 0.0
        ledger.apply(decision("SELL", 1.0), price=333.0)
        assert ledger.asset_amount == 0.0
        assert ledger.cash == pytest.approx(1000.0)

    @pytest.mark.parametrize("price", [0.0, -5.0, float("nan")])
    def test_bad_price_rejected(self, price):
        ledger = PortfolioLedger(initial_cash=1000.0)
        with pytest.raises(ValueError):
            ledger.apply(decision("BUY", 0.5), price=price)
        assert ledger.cash == 1000.0

    def test_negative_starting_balance_rejected(self):
        with pytest.raises(ValueError):
            PortfolioLedger(initial_cash=-1.0)


class TestValuation:

    def test_value_and_pnl(self):
        ledger = PortfolioLedger(initial_cash=1000.0)
        ledger.apply(decision("BUY", 0.5), price=100.0)

        assert ledger.portfolio_value(110.0) == pytest.approx(1050.0)
        assert ledger.profit_loss(110.0) == pytest.approx(50.0)
        assert ledger.profit_loss_pct(110.0) == pytest.approx(5.0)

    def test_value_without_price_is_cash(self):
        ledger = PortfolioLedger(initial_cash=1000.0, initial_asset=3.0)
        assert ledger.portfolio_value(None) == 1000.0


class TestLogs:

    def test_trade_log_newest_first_and_capped(self):
        ledger = PortfolioLedger(initial_cash=1_000_000.0, log_capacity=50)
        prices = [100.0 + i for i in range(55)]
        for price in prices:
            ledger.apply(decision("BUY", 0.01), price=price)

        trades = ledger.trades
        assert len(trades) == 50
        assert trades[0].price == prices[-1]
        assert trades[-1].price == prices[5]
        assert ledger.trade_count == 55

    def test_decision_log_newest_first_and_capped(self):
        ledger = PortfolioLedger(log_capacity=3)
        for i in range(5):
            ledger.record_decision(decision("HOLD", 0.0, reasoning=f"r{i}"))

        assert [d.reasoning for d in ledger.decisions] == ["r4", "r3", "r2"]
        assert ledger.decisions[0].decision == TradingAction.HOLD
        assert ledger.decisions[0].id.startswith("logic-")

    def test_journal_receives_trades_and_decisions(self):
        journal = RecordingJournal()
        ledger = PortfolioLedger(initial_cash=1000.0, journal=journal)
        d = decision("BUY", 0.25, reasoning="breakout")
        ledger.apply(d, price=50.0)
        ledger.record_decision(d)

        assert len(journal.trades) == 1
        assert journal.trades[0]["action"] == "BUY"
        assert journal.decisions[0]["reasoning"] == "breakout"
        assert journal.decisions[0]["trade_fraction"] == 0.25
