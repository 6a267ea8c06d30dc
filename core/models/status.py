"""Lifecycle enums shared by the controller, scheduler and feed."""

from enum import Enum


class BotStatus(str, Enum):
    """Current bot status."""
    INACTIVE = "inactive"
    RUNNING = "running"
    THINKING = "thinking"
    ERROR = "error"

    @property
    def is_running(self) -> bool:
        return self in (BotStatus.RUNNING, BotStatus.THINKING)


class FeedMode(str, Enum):
    """Which tick source the feed connector selected."""
    LIVE = "live"
    SIMULATED = "simulated"
