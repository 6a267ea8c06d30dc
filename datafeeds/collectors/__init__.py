"""Tick sources for the price feed."""

from datafeeds.collectors.tick_sources import LiveTickSource, SimulatedTickSource

__all__ = [
    "LiveTickSource",
    "SimulatedTickSource",
]
