import os
import sys

import pytest
import pytest_asyncio

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from core.bot_controller import BotController  # noqa: E402
from core.events import EventBus  # noqa: E402
from datafeeds.feed_connector import FeedConnector  # noqa: E402
from support import FakeReasoner  # noqa: E402


@pytest.fixture
def fake_reasoner():
    return FakeReasoner()


@pytest.fixture
def rising_closes():
    return [100.0 + i for i in range(40)]


@pytest_asyncio.fixture
async def make_controller():
    """Build controllers on a quiet simulated feed; all are stopped on teardown.

    Timer and simulated ticks are pushed an hour out so tests drive cycles
    and ticks themselves.
    """
    created = []

    def _make(reasoner=None, **kwargs):
        feed = FeedConnector(EventBus(), api_key="", simulated_interval=3600)
        kwargs.setdefault("halt_on_error", False)
        kwargs.setdefault("cycle_on_new_bar", False)
        kwargs.setdefault("period", 3600)
        kwargs.setdefault("initial_delay", 3600)
        controller = BotController(feed=feed, reasoner=reasoner or FakeReasoner(), **kwargs)
        created.append(controller)
        return controller

    yield _make

    for controller in created:
        await controller.stop()
        await controller.scheduler.wait_idle()
