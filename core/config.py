"""Bot configuration.

Engine constants are fixed module values; credentials, endpoints and
operator switches come from the environment (or `.env`) via `Settings`.
"""

import logging
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)
load_dotenv()

# Bars
BAR_WIDTH_SECONDS = 15
MAX_BAR_HISTORY = 100

# Indicators
SMA_SHORT_PERIOD = 10
SMA_LONG_PERIOD = 30
RSI_PERIOD = 14

# Decision cycle
DECISION_PERIOD_SECONDS = 15.0
INITIAL_CYCLE_DELAY_SECONDS = 2.1  # first cycle lands just after the first simulated tick
RECENT_BARS_FOR_PROMPT = 5

# Ledger
INITIAL_CASH = 10000.0
MIN_TRADE_CASH = 10.0
LOG_CAPACITY = 50
ASSET_NAME = "BTC"

# Feed
FEED_URL = "wss://ws.finnhub.io"
FEED_SYMBOL = "BINANCE:BTCUSDT"
RECONNECT_DELAY_SECONDS = 5.0
SIM_TICK_INTERVAL_SECONDS = 2.0
SIM_START_PRICE = 68500.0
SIM_PRICE_FLOOR = 5000.0


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Price feed
    finnhub_api_key: str = Field(default="", alias="FINNHUB_API_KEY")

    # Reasoning service
    ollama_url: str = Field(default="http://localhost:11434", alias="OLLAMA_URL")
    ollama_model: str = Field(default="llama3.2:1b", alias="OLLAMA_MODEL")
    reasoner_timeout: float = Field(default=30.0, alias="REASONER_TIMEOUT")

    # Behaviour
    risk_level: Literal["low", "medium", "high"] = Field(default="medium", alias="RISK_LEVEL")
    halt_on_error: bool = Field(default=False, alias="HALT_ON_ERROR")
    cycle_on_new_bar: bool = Field(default=False, alias="CYCLE_ON_NEW_BAR")

    # Output
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="logs", alias="LOG_DIR")
    journal_enabled: bool = Field(default=True, alias="JOURNAL_ENABLED")

    @property
    def has_live_feed(self) -> bool:
        return bool(self.finnhub_api_key.strip())


settings = Settings()
