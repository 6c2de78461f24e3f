"""Shared slowapi limiter. Limits are read from settings on each request."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings

limiter = Limiter(key_func=get_remote_address)


def game_limit() -> str:
    return settings.rate_limit.game_requests


def auth_limit() -> str:
    return settings.rate_limit.auth_requests
