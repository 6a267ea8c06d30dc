"""
Dashboard Panels - Individual UI components.

Each function renders one panel from a BotSnapshot.
"""

from datetime import datetime, timezone
from typing import Optional

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.models import BotStatus, FeedMode, TradingAction
from core.state import BotSnapshot

STATUS_STYLES = {
    BotStatus.INACTIVE: "dim",
    BotStatus.RUNNING: "green bold",
    BotStatus.THINKING: "yellow bold",
    BotStatus.ERROR: "red bold",
}

ACTION_STYLES = {
    TradingAction.BUY: "green",
    TradingAction.SELL: "red",
    TradingAction.HOLD: "yellow",
}


def _money(value: Optional[float]) -> str:
    return f"${value:,.2f}" if value is not None else "..."


def _num(value: Optional[float], fmt: str = ".2f") -> str:
    return format(value, fmt) if value is not None else "-"


def render_top_bar(snap: BotSnapshot) -> Text:
    """Render the status bar at top of dashboard."""
    bar = Text()

    bar.append("BOT: ", style="dim")
    bar.append(snap.status.value.upper(), style=STATUS_STYLES[snap.status])
    bar.append(" │ ")

    bar.append("FEED: ", style="dim")
    if snap.feed_mode == FeedMode.LIVE:
        bar.append("LIVE", style="green")
    elif snap.feed_mode == FeedMode.SIMULATED:
        bar.append("SIMULATED", style="yellow")
    else:
        bar.append("OFF", style="dim")
    bar.append(" │ ")

    bar.append("RISK: ", style="dim")
    bar.append(snap.risk_level.value.upper())
    bar.append(" │ ")

    bar.append(f"{snap.asset_name}: ", style="dim")
    bar.append(_money(snap.current_price), style="bold white")
    bar.append(" │ ")

    bar.append(datetime.now(timezone.utc).strftime("%H:%M:%S"), style="dim")
    return bar


def render_stats_panel(snap: BotSnapshot) -> Panel:
    """Portfolio value, balances and P&L."""
    pnl_style = "green" if snap.profit_loss >= 0 else "red"
    lines = [
        f"Value:    [bold]{_money(snap.portfolio_value)}[/]",
        f"Cash:     {_money(snap.portfolio.cash)}",
        f"{snap.asset_name}:      {snap.portfolio.asset_amount:.6f}",
        f"P&L:      [{pnl_style}]{snap.profit_loss:+,.2f} ({snap.profit_loss_pct:+.2f}%)[/]",
        f"Trades:   {snap.trade_count}",
    ]
    ind = snap.indicators
    lines.append("")
    lines.append(f"SMA10 {_num(ind.sma_short)}  SMA30 {_num(ind.sma_long)}  RSI {_num(ind.rsi, '.1f')}")
    if snap.last_error:
        lines.append("")
        lines.append(f"[red]{snap.last_error[:80]}[/]")
    return Panel("\n".join(lines), title="[bold magenta]📈 Portfolio[/]", border_style="magenta")


def render_bars_panel(snap: BotSnapshot, rows: int = 12) -> Panel:
    """Most recent bars with their indicators, newest first."""
    table = Table(box=None, padding=(0, 1), expand=True)
    table.add_column("Time", style="dim", width=8)
    table.add_column("Open", justify="right")
    table.add_column("High", justify="right")
    table.add_column("Low", justify="right")
    table.add_column("Close", justify="right")
    table.add_column("SMA10", justify="right")
    table.add_column("SMA30", justify="right")
    table.add_column("RSI", justify="right", width=5)

    views = list(snap.bars)[-rows:]
    for view in reversed(views):
        bar, ind = view.bar, view.indicators
        close_style = "green" if bar.is_green else "red"
        table.add_row(
            bar.bucket_start.strftime("%H:%M:%S"),
            f"{bar.open:.2f}",
            f"{bar.high:.2f}",
            f"{bar.low:.2f}",
            f"[{close_style}]{bar.close:.2f}[/]",
            _num(ind.sma_short),
            _num(ind.sma_long),
            _num(ind.rsi, ".0f"),
        )

    if not views:
        table.add_row("[dim]No bars yet[/]", "", "", "", "", "", "", "")

    return Panel(table, title=f"[bold cyan]🕯 Bars ({len(snap.bars)})[/]", border_style="cyan")


def render_trades_panel(snap: BotSnapshot, rows: int = 8) -> Panel:
    """Simulated trade log, newest first."""
    table = Table(box=None, padding=(0, 1), expand=True)
    table.add_column("Time", style="dim", width=8)
    table.add_column("Side", width=4)
    table.add_column("Amount", justify="right")
    table.add_column("Price", justify="right")

    for trade in snap.trades[:rows]:
        style = ACTION_STYLES[trade.action]
        table.add_row(
            trade.at.strftime("%H:%M:%S"),
            f"[{style}]{trade.action.value}[/]",
            f"{trade.amount:.6f}",
            f"{trade.price:,.2f}",
        )

    if not snap.trades:
        table.add_row("[dim]No trades[/]", "", "", "")

    return Panel(table, title="[bold blue]📋 Trades[/]", border_style="blue")


def render_decisions_panel(snap: BotSnapshot, rows: int = 5) -> Panel:
    """Reasoning log, newest first."""
    lines = []
    for entry in snap.decisions[:rows]:
        style = ACTION_STYLES[entry.decision]
        lines.append(f"[dim]{entry.at.strftime('%H:%M:%S')}[/] [{style}]{entry.decision.value}[/] {entry.reasoning[:100]}")
    if not lines:
        lines.append("[dim]Waiting for the first decision...[/]")
    return Panel("\n".join(lines), title="[bold yellow]🧠 Reasoning[/]", border_style="yellow")
