"""
Configuration management for VF4 Bet.
Supports config.json with environment variable overrides.
All paths are resolved relative to the project root.
"""

import json
import os
from decimal import Decimal
from pathlib import Path
from typing import Optional

import bcrypt
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()

# Project root directory (parent of 'app' folder)
PROJECT_ROOT = Path(__file__).parent.parent


def get_env(key: str, default: str = None) -> Optional[str]:
    """Get environment variable with optional default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes", "on")


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


# ==================== Configuration Models ====================

class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = True
    name: str = "VF4 Bet"


class SecurityConfig(BaseModel):
    secret_key: str = "CHANGE_THIS_IN_PRODUCTION_PLEASE"
    session_max_age_days: int = 30
    settlement_key_hash: str = ""  # bcrypt hash of the settlement feed key


class EconomyConfig(BaseModel):
    starting_balance: Decimal = Decimal("1000.00")
    history_limit: int = 50  # Minigame results kept per account


class GameConfig(BaseModel):
    enabled: bool = True
    min_bet: Decimal = Decimal("0.01")
    max_bet: Optional[Decimal] = None  # No ceiling unless configured

    model_config = ConfigDict(extra="allow")  # Game-specific extras


class GamesConfig(BaseModel):
    sports: GameConfig = Field(default_factory=GameConfig)
    crash: GameConfig = Field(default_factory=GameConfig)
    coinflip: GameConfig = Field(default_factory=GameConfig)
    dice: GameConfig = Field(default_factory=GameConfig)
    penalty: GameConfig = Field(default_factory=GameConfig)

    def get(self, game: str) -> GameConfig:
        return getattr(self, game, None) or GameConfig()


class RateLimitConfig(BaseModel):
    enabled: bool = True
    game_requests: str = "30/minute"  # For wagers and minigame plays
    auth_requests: str = "10/minute"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_to_file: bool = False
    formatter: str = "color"


class PathsConfig(BaseModel):
    """All paths are relative to PROJECT_ROOT."""
    database: str = "data/vf4bet.db"
    log_file: str = "data/app.log"

    def get_db_path(self) -> Path:
        path = Path(self.database)
        return path if path.is_absolute() else PROJECT_ROOT / path

    def get_log_path(self) -> Path:
        return PROJECT_ROOT / self.log_file


class AppConfig(BaseModel):
    """Main application configuration."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    economy: EconomyConfig = Field(default_factory=EconomyConfig)
    games: GamesConfig = Field(default_factory=GamesConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)


# ==================== Configuration Loading ====================

def hash_settlement_key(key: str) -> str:
    return bcrypt.hashpw(key.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def _is_bcrypt_hash(value: str) -> bool:
    return value.startswith("$2") and len(value) == 60


def load_config(config_path: Path = None) -> AppConfig:
    """
    Load configuration from config.json with environment variable overrides.
    Environment variables take precedence over config.json values.
    """
    config_path = config_path or PROJECT_ROOT / "config.json"

    data = {}
    if config_path.exists():
        with open(config_path, "r") as f:
            data = json.load(f)

    # Apply environment variable overrides
    if get_env("SERVER_HOST"):
        data.setdefault("server", {})["host"] = get_env("SERVER_HOST")
    if get_env("SERVER_PORT"):
        data.setdefault("server", {})["port"] = get_env_int("SERVER_PORT", 8000)
    if get_env("DEBUG"):
        data.setdefault("server", {})["debug"] = get_env_bool("DEBUG")

    if get_env("SECRET_KEY"):
        data.setdefault("security", {})["secret_key"] = get_env("SECRET_KEY")
    if get_env("SETTLEMENT_KEY"):
        data.setdefault("security", {})["settlement_key_hash"] = get_env("SETTLEMENT_KEY")

    if get_env("STARTING_BALANCE"):
        data.setdefault("economy", {})["starting_balance"] = get_env("STARTING_BALANCE")

    if get_env("DB_PATH"):
        data.setdefault("paths", {})["database"] = get_env("DB_PATH")

    if get_env("LOG_LEVEL"):
        data.setdefault("logging", {})["level"] = get_env("LOG_LEVEL")
    if get_env("LOG_TO_FILE"):
        data.setdefault("logging", {})["log_to_file"] = get_env_bool("LOG_TO_FILE")
    if get_env("LOG_FORMATTER"):
        data.setdefault("logging", {})["formatter"] = get_env("LOG_FORMATTER")

    if get_env("RATE_LIMIT_ENABLED"):
        data.setdefault("rate_limit", {})["enabled"] = get_env_bool("RATE_LIMIT_ENABLED", True)
    if get_env("RATE_LIMIT_GAME_REQUESTS"):
        data.setdefault("rate_limit", {})["game_requests"] = get_env("RATE_LIMIT_GAME_REQUESTS")

    # Plain text settlement keys are hashed in memory only
    current_key = data.get("security", {}).get("settlement_key_hash", "")
    if current_key and not _is_bcrypt_hash(current_key):
        data["security"]["settlement_key_hash"] = hash_settlement_key(current_key)

    return AppConfig(**data)


# Global config instance
settings = load_config()
