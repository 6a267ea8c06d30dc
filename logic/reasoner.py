"""
Reasoning service client - asks a local Ollama model for a trading decision.

The model sees the last few 15-second bars, SMA/RSI and the current holdings
and must answer with a JSON object:
    {"decision": "BUY|SELL|HOLD", "reasoning": "...", "tradePercentage": 0-1}

The client only transports; validation happens in
`core.models.decision.parse_decision`.
"""

import asyncio
import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

import requests

from core.config import (
    BAR_WIDTH_SECONDS,
    RSI_PERIOD,
    SMA_LONG_PERIOD,
    SMA_SHORT_PERIOD,
    settings,
)
from core.logging_utils import get_logger
from core.models import Bar, IndicatorSnapshot, RiskLevel

logger = get_logger(__name__)

# Thread pool for sync requests
_executor = ThreadPoolExecutor(max_workers=2)


class ReasoningError(Exception):
    """The reasoning service could not produce a payload."""


@dataclass(frozen=True)
class DecisionRequest:
    """Snapshot of everything the model is told in one decision cycle."""
    risk_level: RiskLevel
    cash: float
    asset_amount: float
    asset_name: str
    recent_bars: tuple[Bar, ...]
    indicators: IndicatorSnapshot

    @property
    def last_close(self) -> Optional[float]:
        return self.recent_bars[-1].close if self.recent_bars else None


class Reasoner(Protocol):
    async def decide(self, request: DecisionRequest) -> Any:
        """Return the raw decision payload or raise ReasoningError."""
        ...


def _fmt(value: Optional[float], prefix: str = "") -> str:
    return f"{prefix}{value:.2f}" if value is not None else "insufficient data"


def build_system_prompt(request: DecisionRequest) -> str:
    low, high = request.risk_level.fraction_band
    asset = request.asset_name
    return f"""You are a professional {asset} trading bot deciding from {BAR_WIDTH_SECONDS}-second OHLC bars. Your goal is to maximise profit.
Reading the bars:
- Green bar (close > open) shows buying pressure; a longer body means stronger buyers.
- Red bar (close < open) shows selling pressure; a longer body means stronger sellers.
- An upper wick means price was pushed back down: selling pressure above.
- A lower wick means price bounced: support below.
- Small bodies with long wicks can signal indecision or a reversal.

You hold {request.cash:.2f} USD cash and {request.asset_amount:.6f} {asset}.
Risk profile: {request.risk_level.value}. {request.risk_level.guidance}

Indicators: SMA shows the trend. RSI above 70 suggests overbought, below 30 oversold.

Choose exactly one action: BUY, SELL or HOLD, with a 1-2 sentence reason naming the bar feature or indicator you relied on.
tradePercentage is the fraction of cash (BUY) or of {asset} (SELL) to trade; for this risk profile use {low:.2f}-{high:.2f}.
Respond with a JSON object only: {{"decision": "BUY|SELL|HOLD", "reasoning": "...", "tradePercentage": 0.0}}"""


def build_market_prompt(request: DecisionRequest, bars: Sequence[Bar]) -> str:
    ind = request.indicators
    lines = [
        "Current market:",
        f"- Latest close: {_fmt(request.last_close, '$')}",
        f"- {SMA_SHORT_PERIOD}-period SMA: {_fmt(ind.sma_short, '$')}",
        f"- {SMA_LONG_PERIOD}-period SMA: {_fmt(ind.sma_long, '$')}",
        f"- {RSI_PERIOD}-period RSI: {_fmt(ind.rsi)}",
        "",
        f"Last {len(bars)} bars (OHLC):",
    ]
    for bar in bars:
        lines.append(
            f"- {bar.bucket_start.strftime('%H:%M:%S')}: "
            f"O:{bar.open:.2f} H:{bar.high:.2f} L:{bar.low:.2f} C:{bar.close:.2f}"
        )
    lines.append("")
    lines.append("Analyse the data, especially the bar patterns, and decide. JSON only.")
    return "\n".join(lines)


def extract_json(text: str) -> Any:
    """Decode the JSON object in a model response, tolerating code fences."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ReasoningError("no JSON object in model response")
    try:
        return json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise ReasoningError(f"model response is not valid JSON: {e}") from e


class OllamaReasoner:
    """Decision source backed by a local Ollama model."""

    def __init__(
        self,
        url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.url = (url or settings.ollama_url).rstrip("/")
        self.model = model or settings.ollama_model
        self.timeout = timeout if timeout is not None else settings.reasoner_timeout
        self._session = session or requests.Session()

    def _payload(self, request: DecisionRequest) -> dict:
        return {
            "model": self.model,
            "system": build_system_prompt(request),
            "prompt": build_market_prompt(request, request.recent_bars),
            "format": "json",
            "stream": False,
            "options": {
                "temperature": 0.3,  # Low temp for consistent decisions
                "num_predict": 200,
            },
        }

    def _post(self, payload: dict) -> str:
        try:
            resp = self._session.post(
                f"{self.url}/api/generate",
                json=payload,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json().get("response", "")
        except requests.RequestException as e:
            raise ReasoningError(f"reasoning service request failed: {e}") from e
        except ValueError as e:
            raise ReasoningError(f"reasoning service returned non-JSON body: {e}") from e

    async def decide(self, request: DecisionRequest) -> Any:
        payload = self._payload(request)
        loop = asyncio.get_running_loop()
        text = await loop.run_in_executor(_executor, self._post, payload)
        logger.debug("[BRAIN] Raw response: %s", text)
        return extract_json(text)
