from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, Field

from app.config import AppConfig
from app.core.engine import WagerEngine
from app.core.games import dice_game, penalty_game
from app.core.logger import get_logger
from app.core.odds import SPORTS_SELECTIONS
from app.core.security import verify_settlement_key
from app.core.session import Session
from app.routers.auth import get_config, get_session
from app.routers.limits import game_limit, limiter

logger = get_logger("api")

router = APIRouter()

# ==================== Request Models ====================

class SportsBetRequest(BaseModel):
    match_id: str
    bet_type: str
    selection: str
    odds: Decimal
    stake: Decimal


class MinigameRequest(BaseModel):
    stake: Decimal
    params: Dict[str, Any] = Field(default_factory=dict)


class SettlementRequest(BaseModel):
    won: bool


# ==================== Helpers ====================

def get_engine(
    request: Request,
    session: Session = Depends(get_session),
    config: AppConfig = Depends(get_config),
) -> WagerEngine:
    return WagerEngine(request.app.state.db, session, config, rng=request.app.state.rng)


# ==================== Account ====================

@router.get("/balance")
async def get_balance(engine: WagerEngine = Depends(get_engine)):
    account = engine.session.current_account()
    return {
        "balance": str(account.balance),
        "total_bets": account.total_bets,
        "total_wins": account.total_wins,
    }


@router.get("/transactions")
async def get_transactions(limit: int = 50, engine: WagerEngine = Depends(get_engine)):
    limit = max(1, min(limit, 200))
    return {"transactions": [t.model_dump(mode="json") for t in engine.transactions(limit)]}


# ==================== Sports Bets ====================

@router.get("/bets")
async def list_bets(status: Optional[str] = None, engine: WagerEngine = Depends(get_engine)):
    return {"bets": [w.model_dump(mode="json") for w in engine.list_wagers(status)]}


@router.post("/bets")
@limiter.limit(game_limit)
async def place_bet(
    request: Request, data: SportsBetRequest, engine: WagerEngine = Depends(get_engine)
):
    receipt = engine.place_sports_bet(
        data.match_id, data.bet_type, data.selection, data.odds, data.stake
    )
    return receipt.model_dump(mode="json")


@router.get("/bets/selections")
async def bet_selections():
    """Selection keys accepted per bet type."""
    return {bet_type.value: list(keys) for bet_type, keys in SPORTS_SELECTIONS.items()}


@router.post("/settlement/{wager_id}")
async def settle_bet(
    wager_id: str,
    data: SettlementRequest,
    engine: WagerEngine = Depends(get_engine),
    x_settlement_key: Optional[str] = Header(None),
):
    """Results feed entry point. Requires the X-Settlement-Key header."""
    if not verify_settlement_key(x_settlement_key, engine.config.security.settlement_key_hash):
        logger.warning("Settlement attempt with invalid key", extra={"wager_id": wager_id})
        raise HTTPException(status_code=403, detail="Invalid settlement key")

    wager = engine.settle_bet(wager_id, data.won)
    return {"wager": wager.model_dump(mode="json")}


# ==================== Minigames ====================

@router.get("/minigames/history")
async def minigame_history(engine: WagerEngine = Depends(get_engine)):
    return {"history": [o.model_dump(mode="json") for o in engine.minigame_history()]}


@router.post("/minigames/{kind}")
@limiter.limit(game_limit)
async def play_minigame(
    request: Request, kind: str, data: MinigameRequest, engine: WagerEngine = Depends(get_engine)
):
    outcome = engine.play_minigame(kind, data.params, data.stake)
    return {
        "outcome": outcome.model_dump(mode="json"),
        "balance": str(engine.get_balance()),
    }


# ==================== Odds ====================

@router.get("/odds/penalty")
async def penalty_odds():
    return {"odds": penalty_game.odds_table()}


@router.get("/odds/dice")
async def dice_odds(target: Decimal = Decimal("50")):
    if not target.is_finite():
        raise HTTPException(status_code=422, detail="Target must be a number")
    return dice_game.odds_table(target)
