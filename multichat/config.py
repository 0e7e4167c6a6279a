"""Multichat configuration."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from dotenv import load_dotenv
from pydantic import ValidationError

from .models import HostsFile

load_dotenv()


class ConfigError(Exception):
    """Raised when the hosts file cannot be used. Fatal at startup."""


@dataclass
class Config:
    """Configuration loaded from environment variables."""

    # Hosts file
    config_path: str = field(default_factory=lambda: os.getenv("MULTICHAT_CONFIG", "config.json"))

    # HTTP
    request_timeout: float = field(default_factory=lambda: float(os.getenv("MULTICHAT_TIMEOUT", "300")))
    connect_timeout: float = field(default_factory=lambda: float(os.getenv("MULTICHAT_CONNECT_TIMEOUT", "10")))

    # Logging
    log_file: str = field(default_factory=lambda: os.getenv("MULTICHAT_LOG_FILE", "debug.log"))
    debug: bool = field(default_factory=lambda: bool(os.getenv("DEBUG")))


def load_hosts_file(path: Union[str, Path]) -> HostsFile:
    """
    Read and validate the JSON hosts file.

    Raises ConfigError if the file cannot be read or parsed, or if no
    hosts are defined.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"could not read config file {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"could not parse config JSON: {e}") from e

    try:
        hosts_file = HostsFile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid config: {e}") from e

    if not hosts_file.hosts:
        raise ConfigError("config must contain at least one host")

    return hosts_file


# Global config instance
config = Config()
