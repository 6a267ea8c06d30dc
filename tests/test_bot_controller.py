"""Controller lifecycle, generation fencing and error policy."""

import asyncio
import json

import pytest

from core.decision_cycle import CycleOutcome
from core.journal import SessionJournal
from core.models import BotStatus, FeedMode, RiskLevel
from core.portfolio import PortfolioState
from support import FakeReasoner, feed_bars, tick_at, wait_until

BUY_HALF = {"decision": "BUY", "reasoning": "Strong green bar", "tradePercentage": 0.5}


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_and_stop(self, make_controller):
        ctrl = make_controller()
        statuses = []
        ctrl.register_callback(statuses.append)

        result = await ctrl.start()
        assert result == {"success": True, "status": "running", "mode": "simulated"}
        assert ctrl.status == BotStatus.RUNNING
        assert ctrl.feed_mode == FeedMode.SIMULATED
        assert ctrl.scheduler.is_armed
        assert ctrl.bus.tick_handler_count == 1
        assert ctrl.generation == 1

        result = await ctrl.stop()
        assert result["success"] and result["status"] == "inactive"
        assert ctrl.status == BotStatus.INACTIVE
        assert ctrl.feed_mode is None
        assert ctrl.feed.mode is None
        assert not ctrl.scheduler.is_armed
        assert ctrl.bus.tick_handler_count == 0
        assert ctrl.generation == 2
        assert statuses == [BotStatus.RUNNING, BotStatus.INACTIVE]

    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self, make_controller):
        ctrl = make_controller()
        assert (await ctrl.stop())["message"] == "Already stopped"
        assert ctrl.generation == 0

        await ctrl.start()
        again = await ctrl.start()
        assert again["message"] == "Already running"
        assert ctrl.generation == 1
        assert ctrl.bus.tick_handler_count == 1

    @pytest.mark.asyncio
    async def test_ticks_ignored_while_stopped(self, make_controller):
        ctrl = make_controller()
        await ctrl.start()
        ctrl.bus.emit_tick(tick_at(100.0, 0))
        await ctrl.stop()
        ctrl.bus.emit_tick(tick_at(101.0, 15))

        assert len(ctrl.aggregator) == 1
        assert ctrl.snapshot().current_price == 100.0

    @pytest.mark.asyncio
    async def test_history_survives_restart(self, make_controller, rising_closes):
        ctrl = make_controller()
        await ctrl.start()
        feed_bars(ctrl, rising_closes[:10])
        await ctrl.stop()
        await ctrl.start()
        assert len(ctrl.aggregator) == 10


class TestGenerationFencing:

    @pytest.mark.asyncio
    async def test_stop_while_thinking_discards_result(self, make_controller, rising_closes):
        gate = asyncio.Event()
        ctrl = make_controller(FakeReasoner(BUY_HALF, gate=gate))
        await ctrl.start()
        feed_bars(ctrl, rising_closes[:30])

        task = ctrl.scheduler.trigger()
        await wait_until(lambda: ctrl.status == BotStatus.THINKING)
        await ctrl.stop()
        assert ctrl.status == BotStatus.INACTIVE

        gate.set()
        assert await task == CycleOutcome.DISCARDED
        assert ctrl.status == BotStatus.INACTIVE
        assert ctrl.ledger.state == PortfolioState(cash=10000.0, asset_amount=0.0)
        assert ctrl.ledger.decisions == ()

    @pytest.mark.asyncio
    async def test_response_during_stop_shutdown_is_discarded(self, make_controller, rising_closes):
        gate = asyncio.Event()
        ctrl = make_controller(FakeReasoner(BUY_HALF, gate=gate))
        await ctrl.start()
        feed_bars(ctrl, rising_closes[:30])

        task = ctrl.scheduler.trigger()
        await wait_until(lambda: ctrl.status == BotStatus.THINKING)

        # answer lands while stop() is suspended shutting inputs down
        stopping = asyncio.create_task(ctrl.stop())
        await asyncio.sleep(0)
        assert ctrl.status == BotStatus.INACTIVE
        gate.set()
        await stopping

        assert await task == CycleOutcome.DISCARDED
        assert ctrl.status == BotStatus.INACTIVE
        assert ctrl.ledger.trade_count == 0
        assert ctrl.ledger.decisions == ()

    @pytest.mark.asyncio
    async def test_restart_while_thinking_discards_result(self, make_controller, rising_closes):
        gate = asyncio.Event()
        ctrl = make_controller(FakeReasoner(BUY_HALF, gate=gate))
        await ctrl.start()
        feed_bars(ctrl, rising_closes[:30])

        task = ctrl.scheduler.trigger()
        await wait_until(lambda: ctrl.status == BotStatus.THINKING)
        await ctrl.stop()
        await ctrl.start()

        gate.set()
        assert await task == CycleOutcome.DISCARDED
        assert ctrl.status == BotStatus.RUNNING
        assert ctrl.ledger.trade_count == 0

    @pytest.mark.asyncio
    async def test_stale_failure_does_not_enter_error(self, make_controller, rising_closes):
        gate = asyncio.Event()
        ctrl = make_controller(FakeReasoner({"decision": "MAYBE"}, gate=gate))
        await ctrl.start()
        feed_bars(ctrl, rising_closes[:30])

        task = ctrl.scheduler.trigger()
        await wait_until(lambda: ctrl.status == BotStatus.THINKING)
        await ctrl.stop()
        await ctrl.start()

        gate.set()
        await task
        assert ctrl.status == BotStatus.RUNNING
        assert ctrl.last_error is None


class TestErrorPolicy:

    @pytest.mark.asyncio
    async def test_malformed_payload_enters_error_without_mutation(self, make_controller, rising_closes):
        ctrl = make_controller(FakeReasoner({"decision": "BUY", "reasoning": "x", "tradePercentage": 7}))
        await ctrl.start()
        feed_bars(ctrl, rising_closes[:30])

        assert await ctrl.scheduler.run_cycle() == CycleOutcome.REJECTED
        assert ctrl.status == BotStatus.ERROR
        assert "fraction_out_of_range" in ctrl.last_error
        assert ctrl.ledger.state == PortfolioState(cash=10000.0, asset_amount=0.0)
        assert ctrl.ledger.decisions == ()

    @pytest.mark.asyncio
    async def test_error_persists_until_stop_start(self, make_controller, rising_closes):
        reasoner = FakeReasoner(RuntimeError("connection refused"), BUY_HALF)
        ctrl = make_controller(reasoner)
        await ctrl.start()
        feed_bars(ctrl, rising_closes[:30])

        assert await ctrl.scheduler.run_cycle() == CycleOutcome.FAILED
        assert ctrl.status == BotStatus.ERROR
        assert "connection refused" in ctrl.last_error

        # continue-on-error: inputs stay up, firings are turned away
        assert ctrl.scheduler.is_armed
        assert ctrl.feed.mode == FeedMode.SIMULATED
        assert await ctrl.scheduler.run_cycle() == CycleOutcome.SKIPPED_BUSY
        assert len(reasoner.requests) == 1

        result = await ctrl.start()
        assert result["success"] is False
        assert ctrl.status == BotStatus.ERROR

        await ctrl.stop()
        assert ctrl.status == BotStatus.INACTIVE
        await ctrl.start()
        assert ctrl.status == BotStatus.RUNNING
        assert ctrl.last_error is None

        assert await ctrl.scheduler.run_cycle() == CycleOutcome.APPLIED
        assert ctrl.ledger.trade_count == 1

    @pytest.mark.asyncio
    async def test_halt_on_error_shuts_down_inputs(self, make_controller, rising_closes):
        ctrl = make_controller(FakeReasoner({"reasoning": "no action"}), halt_on_error=True)
        await ctrl.start()
        feed_bars(ctrl, rising_closes[:30])

        assert await ctrl.scheduler.run_cycle() == CycleOutcome.REJECTED
        await wait_until(lambda: not ctrl.scheduler.is_armed and ctrl.feed.mode is None)
        assert ctrl.status == BotStatus.ERROR
        assert ctrl.bus.tick_handler_count == 0

        await ctrl.stop()
        assert ctrl.status == BotStatus.INACTIVE


class TestRiskLevel:

    @pytest.mark.asyncio
    async def test_only_changes_while_inactive(self, make_controller):
        ctrl = make_controller(risk_level="medium")
        assert ctrl.set_risk_level("HIGH") == {"success": True, "risk_level": "high", "previous": "medium"}

        await ctrl.start()
        result = ctrl.set_risk_level("low")
        assert result["success"] is False
        assert ctrl.risk_level == RiskLevel.HIGH

        await ctrl.stop()
        assert ctrl.set_risk_level(RiskLevel.LOW)["success"]
        assert ctrl.risk_level == RiskLevel.LOW

    @pytest.mark.asyncio
    async def test_changes_while_in_error(self, make_controller, rising_closes):
        ctrl = make_controller(FakeReasoner({"decision": "WAIT"}), risk_level="low")
        await ctrl.start()
        feed_bars(ctrl, rising_closes[:30])
        await ctrl.scheduler.run_cycle()
        assert ctrl.status == BotStatus.ERROR
        assert ctrl.snapshot().can_change_risk

        result = ctrl.set_risk_level("high")
        assert result["success"] is True
        assert ctrl.risk_level == RiskLevel.HIGH
        assert ctrl.status == BotStatus.ERROR

    def test_constructor_normalises_level(self):
        from core.bot_controller import BotController
        from core.events import EventBus
        from datafeeds.feed_connector import FeedConnector

        ctrl = BotController(feed=FeedConnector(EventBus(), api_key=""), reasoner=FakeReasoner(), risk_level=" HIGH ")
        assert ctrl.risk_level == RiskLevel.HIGH

    def test_rejects_unknown_level(self):
        from core.bot_controller import BotController
        from core.events import EventBus
        from datafeeds.feed_connector import FeedConnector

        ctrl = BotController(feed=FeedConnector(EventBus(), api_key=""), reasoner=FakeReasoner(), risk_level="low")
        result = ctrl.set_risk_level("extreme")
        assert result["success"] is False
        assert "Valid: low, medium, high" in result["error"]
        assert ctrl.risk_level == RiskLevel.LOW


class TestSnapshot:

    @pytest.mark.asyncio
    async def test_snapshot_reflects_state(self, make_controller, rising_closes):
        ctrl = make_controller(FakeReasoner(BUY_HALF))
        empty = ctrl.snapshot()
        assert empty.bars == ()
        assert empty.current_price is None
        assert empty.portfolio_value == 10000.0
        assert empty.can_change_risk

        await ctrl.start()
        feed_bars(ctrl, rising_closes[:30])
        await ctrl.scheduler.run_cycle()
        ctrl.bus.emit_tick(tick_at(50.0, 0))  # older bucket

        snap = ctrl.snapshot()
        assert snap.is_running
        assert not snap.can_change_risk
        assert len(snap.bars) == 30
        assert snap.bars[-1].indicators == snap.indicators
        assert snap.bars[0].indicators.sma_short is None
        assert snap.current_price == 129.0
        assert snap.portfolio.cash == pytest.approx(5000.0)
        assert snap.portfolio_value == pytest.approx(10000.0)
        assert snap.trade_count == 1
        assert snap.stale_ticks_dropped == 1


class TestJournalCapture:

    @pytest.mark.asyncio
    async def test_completed_bars_trades_and_decisions_written(self, make_controller, rising_closes, tmp_path):
        journal = SessionJournal(tmp_path)
        ctrl = make_controller(FakeReasoner(BUY_HALF), journal=journal)
        await ctrl.start()
        feed_bars(ctrl, rising_closes[:30])
        await ctrl.scheduler.run_cycle()

        bars = journal.path_for("bars").read_text().splitlines()
        assert len(bars) == 29  # the open bar is not complete yet
        assert json.loads(bars[0])["close"] == rising_closes[0]

        trades = [json.loads(line) for line in journal.path_for("trades").read_text().splitlines()]
        assert trades[0]["action"] == "BUY"
        decisions = journal.path_for("decisions").read_text().splitlines()
        assert json.loads(decisions[0])["decision"] == "BUY"
