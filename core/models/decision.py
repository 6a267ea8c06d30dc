"""Trading decisions and the parse-and-validate step for raw model output."""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Union


class TradingAction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class RiskLevel(str, Enum):
    """Risk profile handed to the reasoning service."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def guidance(self) -> str:
        return _RISK_GUIDANCE[self]

    @property
    def fraction_band(self) -> tuple[float, float]:
        return _RISK_BANDS[self]


_RISK_GUIDANCE = {
    RiskLevel.LOW: "Protect capital first. Trade only on very clear, low-risk candle patterns and lean towards HOLD.",
    RiskLevel.MEDIUM: "Balance risk and reward. Trade on combined signals from candle patterns and indicators.",
    RiskLevel.HIGH: "Prioritise growth. Trade aggressively on strong candle momentum such as long-bodied bars.",
}

_RISK_BANDS = {
    RiskLevel.LOW: (0.10, 0.25),
    RiskLevel.MEDIUM: (0.25, 0.50),
    RiskLevel.HIGH: (0.50, 0.75),
}


@dataclass(frozen=True)
class Decision:
    """Validated decision from the reasoning service."""
    action: TradingAction
    reasoning: str
    trade_fraction: float


@dataclass(frozen=True)
class DecisionRejected:
    """Named validation failure for a structurally invalid payload."""
    reason: str
    payload: Any = None

    def __str__(self) -> str:
        return f"invalid decision payload: {self.reason}"


ParsedDecision = Union[Decision, DecisionRejected]

# Accepted spellings for each field, first match wins
_ACTION_KEYS = ("decision", "action")
_REASONING_KEYS = ("reasoning",)
_FRACTION_KEYS = ("tradePercentage", "trade_fraction", "tradeFraction")


def _first(payload: Mapping, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def parse_decision(payload: Any) -> ParsedDecision:
    """Validate a raw payload into a Decision, or name what is wrong with it."""
    if not isinstance(payload, Mapping):
        return DecisionRejected("not_an_object", payload)

    raw_action = _first(payload, _ACTION_KEYS)
    if raw_action is None or (isinstance(raw_action, str) and not raw_action.strip()):
        return DecisionRejected("missing_action", payload)
    if not isinstance(raw_action, str):
        return DecisionRejected("unknown_action", payload)
    try:
        action = TradingAction(raw_action.strip().upper())
    except ValueError:
        return DecisionRejected("unknown_action", payload)

    reasoning = _first(payload, _REASONING_KEYS)
    if not isinstance(reasoning, str) or not reasoning.strip():
        return DecisionRejected("missing_reasoning", payload)

    fraction = _first(payload, _FRACTION_KEYS)
    # bool is an int subclass; "true" is not a fraction
    if isinstance(fraction, bool) or not isinstance(fraction, (int, float)):
        return DecisionRejected("fraction_not_a_number", payload)
    fraction = float(fraction)
    if math.isnan(fraction) or fraction < 0.0 or fraction > 1.0:
        return DecisionRejected("fraction_out_of_range", payload)

    return Decision(action=action, reasoning=reasoning.strip(), trade_fraction=fraction)
