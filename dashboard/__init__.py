"""
Dashboard module - Terminal UI for the simulated trading bot.

Built with Rich; each panel renders one part of a BotSnapshot.
"""

from dashboard.display import Dashboard

__all__ = ["Dashboard"]
