from logging import CRITICAL, DEBUG, ERROR, INFO, WARNING
from os import PathLike
from pathlib import Path
from tomllib import load
from typing import Literal

from pydantic import BaseModel, field_validator

DEFAULT_CONFIG_PATH = Path("config.toml")


class General(BaseModel):
    title: str


class Database(BaseModel):
    path: str
    timeout: float = 5.0  # seconds to wait on a locked database


class Logging(BaseModel):
    level: int

    @field_validator("level", mode="before")
    @classmethod
    def convert_log_level(cls, value):
        if isinstance(value, int):
            return value
        log_levels = {
            "DEBUG": DEBUG,
            "INFO": INFO,
            "WARNING": WARNING,
            "ERROR": ERROR,
            "CRITICAL": CRITICAL,
        }
        return log_levels.get(value.upper(), INFO)


class Paths(BaseModel):
    logs: str


class Auth(BaseModel):
    secret: str
    token_ttl: int = 86400 * 30  # 30 days
    bcrypt_rounds: int = 10
    alternate_header: str = "X-Auth-Token"
    query_param: str = "token"
    # Query tokens end up in access logs and caches; disable in production
    allow_query_token: bool = False

    @field_validator("secret")
    @classmethod
    def secret_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("auth.secret must not be empty")
        return value


class Devices(BaseModel):
    command_expiry: int = 60
    heartbeat_timeout: int = 120
    poll_interval: int = 3
    id_pattern: str = r"^BOX_[A-Z][0-9]+$"


class RateLimit(BaseModel):
    backend: Literal["memory", "database"] = "memory"
    max_requests: int = 100
    window_seconds: int = 60
    trust_forwarded: bool = False


class Network(BaseModel):
    host: str
    port: int
    reload: bool

    rate_limit: RateLimit


class Config(BaseModel):
    general: General
    database: Database
    paths: Paths
    logging: Logging
    auth: Auth
    devices: Devices = Devices()
    network: Network


def load_config(
    shared_config_file: PathLike = DEFAULT_CONFIG_PATH,
    specific_config_file: PathLike | None = None,
) -> Config:
    """Load and merge configurations from TOML files."""
    # Load shared config
    with Path(shared_config_file).open("rb") as f:
        config_data = load(f)

    # Load and merge specific config if provided
    if specific_config_file:
        with Path(specific_config_file).open("rb") as f:
            specific_data = load(f)
            for section, values in specific_data.items():
                if isinstance(values, dict) and isinstance(
                    config_data.get(section), dict
                ):
                    config_data[section].update(values)
                else:
                    config_data[section] = values

    return Config(**config_data)
