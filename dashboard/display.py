"""
Main Dashboard Display - terminal view of the bot.

Renders a BotSnapshot into a Rich layout; `run.py` refreshes it via Live.
"""

from typing import Callable

from rich.console import Console
from rich.layout import Layout

from core.state import BotSnapshot
from dashboard.panels import (
    render_bars_panel,
    render_decisions_panel,
    render_stats_panel,
    render_top_bar,
    render_trades_panel,
)

console = Console()


class Dashboard:
    """Clean, modular terminal dashboard."""

    def __init__(self, snapshot_source: Callable[[], BotSnapshot]):
        self.console = console
        self._snapshot_source = snapshot_source

    def render(self) -> Layout:
        """Render the full dashboard layout."""
        snap = self._snapshot_source()

        layout = Layout()
        layout.split_column(
            Layout(name="header", size=1),
            Layout(name="main"),
            Layout(name="footer", size=8),
        )
        layout["main"].split_row(
            Layout(name="left", ratio=3),
            Layout(name="right", ratio=2),
        )
        layout["right"].split_column(
            Layout(name="stats"),
            Layout(name="trades"),
        )

        layout["header"].update(render_top_bar(snap))
        layout["left"].update(render_bars_panel(snap))
        layout["stats"].update(render_stats_panel(snap))
        layout["trades"].update(render_trades_panel(snap))
        layout["footer"].update(render_decisions_panel(snap))
        return layout
