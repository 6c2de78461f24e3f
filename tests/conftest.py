import random
import string

import pytest

from app.config import AppConfig
from app.core.database import Database
from app.core.engine import WagerEngine
from app.core.rng import ScriptedRNG
from app.core.session import Session


def random_username():
    """Generate a valid random username for tests."""
    return "test" + "".join(random.choices(string.ascii_lowercase + string.digits, k=8))


@pytest.fixture()
def config(tmp_path):
    return AppConfig(
        paths={"database": str(tmp_path / "test.db")},
        rate_limit={"enabled": False},
    )


@pytest.fixture()
def db(tmp_path):
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture()
def session(db, config):
    s = Session(db, config)
    s.login(random_username(), "player@example.com")
    return s


@pytest.fixture()
def make_engine(db, session, config):
    """Engine bound to the logged-in session, replaying the given draws."""

    def _make(*draws, engine_session=None):
        return WagerEngine(db, engine_session or session, config, rng=ScriptedRNG(draws))

    return _make
