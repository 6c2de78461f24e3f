from decimal import Decimal

import pytest

from app.core.exceptions import InvalidSelection, NotAuthenticated
from app.core.session import Session
from tests.conftest import random_username


def test_first_login_creates_account_with_bonus(db, config):
    session = Session(db, config)
    assert not session.is_authenticated

    account = session.login("  rookie_01 ", "rookie@example.com")
    assert session.is_authenticated
    assert account.username == "rookie_01"
    assert account.email == "rookie@example.com"
    assert account.balance == Decimal("1000.00")
    assert (account.total_bets, account.total_wins) == (0, 0)


def test_login_reattaches_existing_account(db, config):
    first = Session(db, config).login("veteran", "old@example.com")
    db.debit(first.id, 25000)

    again = Session(db, config).login("VETERAN", "new@example.com")
    assert again.id == first.id
    assert again.email == "new@example.com"
    assert again.balance == Decimal("750.00")


def test_logout_keeps_account(db, config):
    session = Session(db, config)
    account = session.login(random_username())
    session.logout()

    assert not session.is_authenticated
    with pytest.raises(NotAuthenticated):
        session.current_account()
    assert db.get_account(account.id) is not None


def test_starting_balance_is_configurable(db, config):
    config.economy.starting_balance = Decimal("250.50")
    account = Session(db, config).login(random_username())
    assert account.balance == Decimal("250.50")


def test_restoring_unknown_account_is_anonymous(db, config):
    assert not Session(db, config, account_id="ghost").is_authenticated


@pytest.mark.parametrize("username", ["", "ab", "has space", "x" * 21, "semi;colon"])
def test_invalid_usernames(db, config, username):
    with pytest.raises(InvalidSelection):
        Session(db, config).login(username)
