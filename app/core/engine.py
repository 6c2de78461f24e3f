"""
Wager engine. Runs one wagering transaction end-to-end:
validate -> debit stake -> resolve -> credit payout -> record history.

Transaction states:
    IDLE -> VALIDATING -> RESERVED -> RESOLVING -> SETTLED
                      \\-> REJECTED

A rejection leaves no trace on the account. Once the stake is reserved the
rest of a minigame runs inside the same storage transaction, so a debit is
never visible without its settlement.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from app.config import AppConfig, GameConfig
from app.core.database import Database
from app.core.exceptions import (
    AlreadySettled,
    InsufficientFunds,
    InvalidSelection,
    NotFound,
    WagerError,
)
from app.core.games import get_game
from app.core.ledger import AccountLedger
from app.core.logger import get_logger
from app.core.models import (
    BetReceipt,
    BetType,
    MinigameOutcome,
    MinigameResult,
    Transaction,
    Wager,
    WagerStatus,
)
from app.core.money import has_cent_precision, to_cents, to_decimal
from app.core.odds import MIN_SPORTS_ODDS, is_valid_selection, potential_payout
from app.core.rng import rng as default_rng
from app.core.session import Session

logger = get_logger("engine")

MAX_SPORTS_ODDS = Decimal("1000")
MAX_MATCH_ID_LENGTH = 64


class WagerState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RESERVED = "reserved"
    RESOLVING = "resolving"
    SETTLED = "settled"
    REJECTED = "rejected"


TRANSITIONS = {
    WagerState.IDLE: {WagerState.VALIDATING},
    WagerState.VALIDATING: {WagerState.RESERVED, WagerState.REJECTED},
    WagerState.RESERVED: {WagerState.RESOLVING},
    WagerState.RESOLVING: {WagerState.SETTLED},
    WagerState.SETTLED: set(),
    WagerState.REJECTED: set(),
}


class WagerTransaction:
    """Tracks where a single wager is in its lifecycle."""

    def __init__(self, game: str):
        self.game = game
        self.state = WagerState.IDLE
        self.history = [WagerState.IDLE]

    def advance(self, state: WagerState):
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal wager transition {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def reject(self, error: WagerError):
        self.advance(WagerState.REJECTED)
        logger.warning(
            f"Wager rejected: {error.message}",
            extra={"game": self.game, "reason": error.code},
        )


class WagerEngine:
    """
    Entry point for the presentation layer. The account repository (Database),
    the active session and the RNG are handed in, never looked up globally.
    """

    def __init__(self, db: Database, session: Session, config: AppConfig, rng=None):
        self.db = db
        self.session = session
        self.config = config
        self.rng = rng or default_rng

    # ==================== Validation ====================

    def _game_config(self, game: str) -> GameConfig:
        return self.config.games.get(game)

    def _validate_stake(self, game: str, stake: Any) -> Decimal:
        game_config = self._game_config(game)
        if not game_config.enabled:
            raise InvalidSelection(f"{game} is currently disabled")

        try:
            amount = to_decimal(stake)
        except (ValueError, TypeError):
            raise InvalidSelection(f"Invalid stake: {stake!r}")
        if not amount.is_finite() or amount <= 0:
            raise InvalidSelection("Stake must be a positive amount")
        if not has_cent_precision(amount):
            raise InvalidSelection("Stake cannot have fractions of a cent")
        if amount < game_config.min_bet:
            raise InvalidSelection(f"Minimum stake is {game_config.min_bet}")
        if game_config.max_bet is not None and amount > game_config.max_bet:
            raise InvalidSelection(f"Maximum stake is {game_config.max_bet}")
        return amount

    def _check_funds(self, ledger: AccountLedger, stake: Decimal):
        if stake > ledger.get_balance():
            raise InsufficientFunds(f"Insufficient balance for a stake of {stake:.2f}")

    def _validate_odds(self, odds: Any) -> Decimal:
        try:
            value = to_decimal(odds)
        except (ValueError, TypeError):
            raise InvalidSelection(f"Invalid odds: {odds!r}")
        if not value.is_finite() or value < MIN_SPORTS_ODDS or value > MAX_SPORTS_ODDS:
            raise InvalidSelection(f"Odds must be between {MIN_SPORTS_ODDS} and {MAX_SPORTS_ODDS}")
        return value

    # ==================== Sports Bets ====================

    def place_sports_bet(
        self, match_id: str, bet_type: str, selection: str, odds: Any, stake: Any
    ) -> BetReceipt:
        """
        Reserve the stake on a fixed-odds bet. The wager stays pending until
        settle_bet() is called by the results feed.
        """
        tx = WagerTransaction("sports")
        tx.advance(WagerState.VALIDATING)
        try:
            account_id = self.session.require_account_id()

            match_id = str(match_id or "").strip()
            if not match_id or len(match_id) > MAX_MATCH_ID_LENGTH:
                raise InvalidSelection("Invalid match id")
            try:
                bet_type = BetType(bet_type)
            except ValueError:
                raise InvalidSelection(f"Invalid bet type: {bet_type!r}")
            selection = str(selection or "").strip()
            if not is_valid_selection(bet_type, selection):
                raise InvalidSelection(f"Invalid selection {selection!r} for {bet_type.value}")
            odds = self._validate_odds(odds)
            stake = self._validate_stake("sports", stake)

            ledger = AccountLedger(self.db, account_id)
            self._check_funds(ledger, stake)

            payout = potential_payout(stake, odds)
            with self.db.transaction():
                balance = ledger.debit(
                    stake, game="sports", details=f"{match_id}:{bet_type.value}:{selection}"
                )
                tx.advance(WagerState.RESERVED)
                ledger.record_bet_placed()
                row = self.db.insert_wager(
                    account_id,
                    match_id,
                    bet_type.value,
                    selection,
                    str(odds),
                    to_cents(stake),
                    to_cents(payout),
                )
                tx.advance(WagerState.RESOLVING)
        except WagerError as e:
            if tx.state == WagerState.VALIDATING:
                tx.reject(e)
            raise

        logger.info(
            "Sports bet accepted",
            extra={
                "wager_id": row["id"],
                "account_id": account_id,
                "stake": str(stake),
                "odds": str(odds),
            },
        )
        return BetReceipt(wager_id=row["id"], potential_payout=payout, balance=balance)

    def settle_bet(self, wager_id: str, won: bool) -> Wager:
        """
        Resolve a pending wager. Unknown ids raise NotFound, anything already
        settled raises AlreadySettled; neither changes state, so repeating a
        settlement can never pay twice.
        """
        with self.db.transaction():
            row = self.db.get_wager(wager_id)
            if row is None:
                raise NotFound(f"Unknown wager: {wager_id}")
            if row["status"] != WagerStatus.PENDING.value:
                raise AlreadySettled(f"Wager {wager_id} is already {row['status']}")

            status = WagerStatus.WON if won else WagerStatus.LOST
            if not self.db.close_wager(wager_id, status.value):
                raise AlreadySettled(f"Wager {wager_id} is already settled")

            if won:
                ledger = AccountLedger(self.db, row["account_id"])
                ledger.credit(
                    Wager.from_row(row).potential_payout,
                    game="sports",
                    details=f"settled:{wager_id}",
                )
                ledger.record_win()

        logger.info(
            "Sports bet settled",
            extra={"wager_id": wager_id, "status": status.value},
        )
        return Wager.from_row(self.db.get_wager(wager_id))

    # ==================== Minigames ====================

    def play_minigame(self, kind: str, params: Optional[Dict[str, Any]], stake: Any) -> MinigameOutcome:
        """
        Play one instant round. The outcome is fully settled before this
        returns; any reveal animation happens after the fact.
        """
        tx = WagerTransaction(str(getattr(kind, "value", kind)))
        tx.advance(WagerState.VALIDATING)
        try:
            account_id = self.session.require_account_id()

            game = get_game(kind)
            if game is None:
                raise InvalidSelection(f"Unknown game: {kind!r}")
            if params is not None and not isinstance(params, dict):
                raise InvalidSelection("Game parameters must be an object")
            selection = game.parse(params or {})
            quoted = game.quote(selection)
            stake = self._validate_stake(game.name, stake)

            ledger = AccountLedger(self.db, account_id)
            self._check_funds(ledger, stake)

            with self.db.transaction():
                ledger.debit(stake, game=game.name)
                tx.advance(WagerState.RESERVED)
                ledger.record_bet_placed()

                tx.advance(WagerState.RESOLVING)
                resolution = game.resolve(stake, selection, self.rng.draw_uniform())

                if resolution["win"]:
                    ledger.credit(resolution["payout"], game=game.name)
                    ledger.record_win()

                outcome = MinigameOutcome(
                    id=str(uuid.uuid4()),
                    game=game.name,
                    stake=stake,
                    multiplier=resolution["multiplier"],
                    result=MinigameResult.WIN if resolution["win"] else MinigameResult.LOSE,
                    payout=resolution["payout"],
                    details=resolution["details"],
                    created_at=datetime.now(),
                )
                self.db.add_minigame_result(
                    account_id,
                    outcome.id,
                    outcome.game.value,
                    to_cents(outcome.stake),
                    str(outcome.multiplier),
                    outcome.result.value,
                    to_cents(outcome.payout),
                    outcome.details,
                    outcome.created_at.isoformat(),
                    limit=self.config.economy.history_limit,
                )
                tx.advance(WagerState.SETTLED)
        except WagerError as e:
            if tx.state == WagerState.VALIDATING:
                tx.reject(e)
            raise

        logger.info(
            f"{game.name} round settled: {outcome.result.value}",
            extra={
                "account_id": account_id,
                "stake": str(stake),
                "quoted": str(quoted),
                "payout": str(outcome.payout),
            },
        )
        return outcome

    # ==================== Queries ====================

    def get_balance(self) -> Decimal:
        return AccountLedger(self.db, self.session.require_account_id()).get_balance()

    def list_wagers(self, status: str = None) -> List[Wager]:
        if status is not None:
            try:
                status = WagerStatus(status).value
            except ValueError:
                raise InvalidSelection(f"Invalid status: {status!r}")
        rows = self.db.get_wagers(self.session.require_account_id(), status)
        return [Wager.from_row(row) for row in rows]

    def minigame_history(self, limit: int = None) -> List[MinigameOutcome]:
        limit = limit or self.config.economy.history_limit
        rows = self.db.get_minigame_history(self.session.require_account_id(), limit)
        return [MinigameOutcome.from_row(row) for row in rows]

    def transactions(self, limit: int = 50) -> List[Transaction]:
        rows = self.db.get_transactions(self.session.require_account_id(), limit)
        return [Transaction.from_row(row) for row in rows]
