"""
Domain records. Rows coming out of the database are turned into these models
so the API layer never sees raw cents.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.money import from_cents


class GameKind(str, Enum):
    CRASH = "crash"
    COINFLIP = "coinflip"
    DICE = "dice"
    PENALTY = "penalty"


class BetType(str, Enum):
    MATCH_RESULT = "match_result"
    OVER_UNDER = "over_under"
    BTTS = "btts"
    VF4_RESULT = "vf4_result"
    FIRST_GOAL = "first_goal"


class WagerStatus(str, Enum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"


class MinigameResult(str, Enum):
    WIN = "win"
    LOSE = "lose"


class Account(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    email: str
    balance: Decimal
    total_bets: int = 0
    total_wins: int = 0
    created_at: datetime

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Account":
        return cls(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            balance=from_cents(row["balance_cents"]),
            total_bets=row["total_bets"],
            total_wins=row["total_wins"],
            created_at=row["created_at"],
        )


class Wager(BaseModel):
    """A sports bet. Only `status` and `settled_at` ever change, and only once."""

    model_config = ConfigDict(frozen=True)

    id: str
    account_id: str
    match_id: str
    bet_type: BetType
    selection: str
    odds: Decimal
    stake: Decimal
    potential_payout: Decimal
    status: WagerStatus = WagerStatus.PENDING
    created_at: datetime
    settled_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Wager":
        return cls(
            id=row["id"],
            account_id=row["account_id"],
            match_id=row["match_id"],
            bet_type=row["bet_type"],
            selection=row["selection"],
            odds=Decimal(row["odds"]),
            stake=from_cents(row["stake_cents"]),
            potential_payout=from_cents(row["payout_cents"]),
            status=row["status"],
            created_at=row["created_at"],
            settled_at=row["settled_at"],
        )


class MinigameOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    game: GameKind
    stake: Decimal
    multiplier: Decimal
    result: MinigameResult
    payout: Decimal
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @property
    def won(self) -> bool:
        return self.result == MinigameResult.WIN

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "MinigameOutcome":
        return cls(
            id=row["id"],
            game=row["game"],
            stake=from_cents(row["stake_cents"]),
            multiplier=Decimal(row["multiplier"]),
            result=row["result"],
            payout=from_cents(row["payout_cents"]),
            details=json.loads(row["details"] or "{}"),
            created_at=row["created_at"],
        )


class BetReceipt(BaseModel):
    accepted: bool = True
    wager_id: str
    potential_payout: Decimal
    balance: Decimal


class Transaction(BaseModel):
    id: int
    type: str
    game: Optional[str] = None
    amount: Decimal
    balance_after: Decimal
    details: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Transaction":
        return cls(
            id=row["id"],
            type=row["type"],
            game=row["game"],
            amount=from_cents(row["amount_cents"]),
            balance_after=from_cents(row["balance_after_cents"]),
            details=row["details"],
            created_at=row["created_at"],
        )
