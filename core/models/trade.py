"""Trade and decision log records."""

from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Any
import uuid

from core.models.decision import TradingAction


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    return value


def new_record_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Trade:
    """Executed simulated trade."""
    id: str
    at: datetime
    action: TradingAction
    asset: str
    amount: float
    price: float

    @property
    def notional(self) -> float:
        return self.amount * self.price

    def to_dict(self) -> dict:
        return _to_jsonable(asdict(self))


@dataclass(frozen=True)
class DecisionLogEntry:
    """One decision as shown in the reasoning log."""
    id: str
    at: datetime
    reasoning: str
    decision: TradingAction

    def to_dict(self) -> dict:
        return _to_jsonable(asdict(self))
