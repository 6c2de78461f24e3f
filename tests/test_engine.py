"""
Wager engine tests: scenarios, invariants and the state machine.
"""

import threading
from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.core.engine import TRANSITIONS, WagerEngine, WagerState, WagerTransaction
from app.core.exceptions import (
    AlreadySettled,
    InsufficientFunds,
    InvalidSelection,
    NotAuthenticated,
    NotFound,
)
from app.core.models import MinigameOutcome, MinigameResult, WagerStatus
from app.core.rng import ScriptedRNG
from app.core.session import Session
from tests.conftest import random_username


def balance(engine):
    return engine.get_balance()


def account(engine):
    return engine.session.current_account()


def test_outcome_result_is_validated():
    with pytest.raises(ValidationError):
        MinigameOutcome(
            id="o-1",
            game="dice",
            stake=Decimal("1"),
            multiplier=Decimal("0"),
            result="push",
            payout=Decimal("0"),
            created_at=datetime.now(),
        )


# ==================== Minigame scenarios ====================

class TestMinigameScenarios:

    def test_coinflip_loss(self, make_engine):
        engine = make_engine(0.9)
        outcome = engine.play_minigame("coinflip", {"choice": "heads"}, Decimal("100"))
        assert outcome.result == "lose"
        assert outcome.result is MinigameResult.LOSE
        assert not outcome.won
        assert outcome.payout == Decimal("0")
        assert outcome.multiplier == Decimal("0")
        assert balance(engine) == Decimal("900.00")

    def test_coinflip_win(self, make_engine):
        engine = make_engine(0.1)
        outcome = engine.play_minigame("coinflip", {"choice": "heads"}, Decimal("100"))
        assert outcome.won
        assert outcome.payout == Decimal("195.00")
        assert balance(engine) == Decimal("1095.00")

    def test_dice_over_fifty(self, make_engine):
        engine = make_engine(0.70)
        outcome = engine.play_minigame("dice", {"prediction": "over", "target": 50}, 10)
        assert outcome.won
        assert outcome.multiplier == Decimal("1.94")
        assert outcome.payout == Decimal("19.40")
        assert balance(engine) == Decimal("1009.40")

    def test_penalty_goal_and_save(self, make_engine):
        engine = make_engine(0.0, 0.5)
        kick = {"direction": "center", "height": "mid"}

        goal = engine.play_minigame("penalty", kick, Decimal("10"))
        assert goal.won
        assert goal.payout == Decimal("50.00")
        assert (goal.details["save_direction"], goal.details["save_height"]) == ("left", "low")

        save = engine.play_minigame("penalty", kick, Decimal("10"))
        assert not save.won
        assert save.payout == Decimal("0")
        assert balance(engine) == Decimal("1030.00")

    def test_crash_cash_out(self, make_engine):
        engine = make_engine(0.5, 0.5)
        won = engine.play_minigame("crash", {"cashout": "1.5"}, Decimal("10"))
        lost = engine.play_minigame("crash", {"cashout": "3"}, Decimal("10"))
        assert won.won and won.payout == Decimal("15.00")
        assert not lost.won
        assert lost.details["crash_point"] == "1.98"
        assert balance(engine) == Decimal("995.00")

    def test_same_draws_same_outcome(self, db, config, make_engine):
        other = Session(db, config)
        other.login(random_username())
        params = {"prediction": "under", "target": 30}

        first = make_engine(0.2).play_minigame("dice", params, Decimal("5"))
        second = make_engine(0.2, engine_session=other).play_minigame("dice", params, Decimal("5"))

        assert first.details == second.details
        assert (first.result, first.payout, first.multiplier) == (
            second.result,
            second.payout,
            second.multiplier,
        )


# ==================== Counters and history ====================

class TestCountersAndHistory:

    def test_counters_follow_accepted_wagers(self, make_engine):
        engine = make_engine(0.1, 0.9, 0.1)
        for _ in range(3):
            engine.play_minigame("coinflip", {"choice": "heads"}, Decimal("1"))
        with pytest.raises(InsufficientFunds):
            engine.play_minigame("coinflip", {"choice": "heads"}, Decimal("5000"))

        acct = account(engine)
        assert acct.total_bets == 3
        assert acct.total_wins == 2

    def test_history_is_most_recent_first(self, make_engine):
        engine = make_engine(0.1, 0.9)
        first = engine.play_minigame("coinflip", {"choice": "heads"}, Decimal("1"))
        second = engine.play_minigame("coinflip", {"choice": "heads"}, Decimal("2"))
        history = engine.minigame_history()
        assert [o.id for o in history] == [second.id, first.id]
        assert history[0].details == {"choice": "heads", "result": "tails"}

    def test_history_is_capped(self, make_engine, config):
        config.economy.history_limit = 3
        engine = make_engine(*([0.9] * 5))
        played = [
            engine.play_minigame("coinflip", {"choice": "heads"}, Decimal("1")) for _ in range(5)
        ]
        history = engine.minigame_history()
        assert [o.id for o in history] == [o.id for o in reversed(played[2:])]
        # Evicting history never touches the counters
        assert account(engine).total_bets == 5


# ==================== Rejections ====================

class TestRejections:

    def test_not_authenticated(self, db, config):
        engine = WagerEngine(db, Session(db, config), config, rng=ScriptedRNG([0.1]))
        with pytest.raises(NotAuthenticated):
            engine.play_minigame("coinflip", {"choice": "heads"}, Decimal("1"))
        with pytest.raises(NotAuthenticated):
            engine.place_sports_bet("m1", "match_result", "home", "2.0", "1")

    @pytest.mark.parametrize(
        "kind, params, stake",
        [
            ("roulette", {}, "10"),
            ("coinflip", {"choice": "edge"}, "10"),
            ("coinflip", ["heads"], "10"),
            ("dice", {"prediction": "over", "target": 99}, "10"),
            ("crash", {"cashout": "0.5"}, "10"),
            ("coinflip", {"choice": "heads"}, "0"),
            ("coinflip", {"choice": "heads"}, "-5"),
            ("coinflip", {"choice": "heads"}, "1.005"),
            ("coinflip", {"choice": "heads"}, "abc"),
            ("coinflip", {"choice": "heads"}, "Infinity"),
        ],
    )
    def test_invalid_selection_mutates_nothing(self, make_engine, kind, params, stake):
        engine = make_engine(0.1)
        with pytest.raises(InvalidSelection):
            engine.play_minigame(kind, params, stake)
        acct = account(engine)
        assert acct.balance == Decimal("1000.00")
        assert acct.total_bets == 0
        assert engine.minigame_history() == []
        assert engine.rng.remaining == 1

    def test_stake_equal_to_balance_is_accepted(self, make_engine):
        engine = make_engine(0.9)
        engine.play_minigame("coinflip", {"choice": "heads"}, Decimal("1000.00"))
        assert balance(engine) == Decimal("0.00")

    def test_stake_a_cent_over_balance_is_rejected(self, make_engine):
        engine = make_engine(0.1)
        with pytest.raises(InsufficientFunds):
            engine.play_minigame("coinflip", {"choice": "heads"}, Decimal("1000.01"))
        assert balance(engine) == Decimal("1000.00")

    def test_configured_stake_limits(self, make_engine, config):
        config.games.dice.max_bet = Decimal("50")
        config.games.dice.min_bet = Decimal("1")
        engine = make_engine(0.1)
        params = {"prediction": "over", "target": 50}
        with pytest.raises(InvalidSelection):
            engine.play_minigame("dice", params, Decimal("50.01"))
        with pytest.raises(InvalidSelection):
            engine.play_minigame("dice", params, Decimal("0.99"))

    def test_disabled_game(self, make_engine, config):
        config.games.crash.enabled = False
        with pytest.raises(InvalidSelection):
            make_engine(0.5).play_minigame("crash", {"cashout": 2}, Decimal("1"))

    def test_balance_never_negative(self, make_engine):
        draws = [0.9] * 20
        engine = make_engine(*draws)
        stakes = [Decimal("300")] * 5 + [Decimal("100")] * 5
        for stake in stakes:
            try:
                engine.play_minigame("coinflip", {"choice": "heads"}, stake)
            except InsufficientFunds:
                pass
            assert balance(engine) >= 0
        assert balance(engine) == Decimal("0.00")
        assert account(engine).total_bets == 4


# ==================== Sports bets ====================

class TestSportsBets:

    def test_place_bet_reserves_stake(self, make_engine):
        engine = make_engine()
        receipt = engine.place_sports_bet("match-1", "match_result", "home", "2.35", "20")
        assert receipt.accepted
        assert receipt.potential_payout == Decimal("47.00")
        assert receipt.balance == Decimal("980.00")

        [wager] = engine.list_wagers()
        assert wager.id == receipt.wager_id
        assert wager.status == WagerStatus.PENDING
        assert wager.odds == Decimal("2.35")
        assert account(engine).total_bets == 1

    def test_stake_over_balance_is_rejected(self, make_engine):
        engine = make_engine()
        with pytest.raises(InsufficientFunds):
            engine.place_sports_bet("match-1", "btts", "btts", "1.8", "1500")
        assert balance(engine) == Decimal("1000.00")
        assert engine.list_wagers() == []
        assert account(engine).total_bets == 0

    @pytest.mark.parametrize(
        "match_id, bet_type, selection, odds",
        [
            ("", "match_result", "home", "2.0"),
            ("m1", "handicap", "home", "2.0"),
            ("m1", "match_result", "over25", "2.0"),
            ("m1", "over_under", "over25", "0.9"),
            ("m1", "over_under", "over25", "NaN"),
        ],
    )
    def test_malformed_bets(self, make_engine, match_id, bet_type, selection, odds):
        engine = make_engine()
        with pytest.raises(InvalidSelection):
            engine.place_sports_bet(match_id, bet_type, selection, odds, "10")
        assert balance(engine) == Decimal("1000.00")

    def test_settle_won_pays_once(self, make_engine):
        engine = make_engine()
        receipt = engine.place_sports_bet("match-1", "vf4_result", "vf4_wins", "1.5", "100")

        wager = engine.settle_bet(receipt.wager_id, True)
        assert wager.status == WagerStatus.WON
        assert wager.settled_at is not None
        assert balance(engine) == Decimal("1050.00")

        with pytest.raises(AlreadySettled):
            engine.settle_bet(receipt.wager_id, True)
        with pytest.raises(AlreadySettled):
            engine.settle_bet(receipt.wager_id, False)
        assert balance(engine) == Decimal("1050.00")
        assert account(engine).total_wins == 1

    def test_settle_lost(self, make_engine):
        engine = make_engine()
        receipt = engine.place_sports_bet("match-2", "first_goal", "no_goal", "7.0", "10")
        assert engine.settle_bet(receipt.wager_id, False).status == WagerStatus.LOST
        assert balance(engine) == Decimal("990.00")
        assert account(engine).total_wins == 0
        assert engine.list_wagers("pending") == []
        assert len(engine.list_wagers("lost")) == 1

    def test_settle_unknown(self, make_engine):
        with pytest.raises(NotFound):
            make_engine().settle_bet("does-not-exist", True)

    def test_settlement_needs_no_session(self, db, config, make_engine):
        receipt = make_engine().place_sports_bet("m", "btts", "no_btts", "2", "10")
        feed = WagerEngine(db, Session(db, config), config)
        feed.settle_bet(receipt.wager_id, True)
        assert balance(make_engine()) == Decimal("1010.00")


# ==================== Concurrency ====================

class TestConcurrency:

    def test_only_one_of_two_racing_stakes_is_accepted(self, db, config, session):
        results = []
        barrier = threading.Barrier(2)

        def place():
            own = Session(db, config, account_id=session.account_id)
            engine = WagerEngine(db, own, config, rng=ScriptedRNG([0.9]))
            barrier.wait()
            try:
                engine.play_minigame("coinflip", {"choice": "heads"}, Decimal("600"))
                results.append("accepted")
            except InsufficientFunds:
                results.append("rejected")
            finally:
                db.close()

        threads = [threading.Thread(target=place) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == ["accepted", "rejected"]
        assert db.get_balance_cents(session.account_id) == 40000
        assert db.get_account(session.account_id)["total_bets"] == 1


# ==================== State machine ====================

class TestWagerTransaction:

    def test_happy_path(self):
        tx = WagerTransaction("dice")
        for state in (
            WagerState.VALIDATING,
            WagerState.RESERVED,
            WagerState.RESOLVING,
            WagerState.SETTLED,
        ):
            tx.advance(state)
        assert tx.history[0] == WagerState.IDLE
        assert tx.state == WagerState.SETTLED

    def test_cannot_skip_reservation(self):
        tx = WagerTransaction("dice")
        tx.advance(WagerState.VALIDATING)
        with pytest.raises(RuntimeError):
            tx.advance(WagerState.RESOLVING)

    def test_terminal_states(self):
        assert TRANSITIONS[WagerState.SETTLED] == set()
        assert TRANSITIONS[WagerState.REJECTED] == set()
        tx = WagerTransaction("coinflip")
        tx.advance(WagerState.VALIDATING)
        tx.reject(InvalidSelection("bad"))
        with pytest.raises(RuntimeError):
            tx.advance(WagerState.RESERVED)
