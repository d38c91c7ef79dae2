"""Configuration management for mpv-jsonipc."""

from __future__ import annotations

import os
import random
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from .process import START_TIMEOUT
from .protocol.correlator import COMMAND_TIMEOUT
from .protocol.messages import LogLevel


@dataclass
class ClientConfig:
    """Connection settings."""

    ipc_socket: str = ""
    command_timeout: float = COMMAND_TIMEOUT
    connect_timeout: float = 1.0
    log_level: str = LogLevel.STATUS.value


@dataclass
class ProcessConfig:
    """Settings used when launching mpv."""

    mpv_location: str = ""
    start_timeout: float = START_TIMEOUT
    args: dict[str, str] = field(default_factory=dict)


@dataclass
class Config:
    """Full mpv-jsonipc configuration."""

    client: ClientConfig = field(default_factory=ClientConfig)
    process: ProcessConfig = field(default_factory=ProcessConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        process = dict(data.get("process", {}))
        process["args"] = {str(k): str(v) for k, v in process.get("args", {}).items()}
        return cls(
            client=ClientConfig(**data.get("client", {})),
            process=ProcessConfig(**process),
        )

    @property
    def log_level(self) -> LogLevel:
        return LogLevel(self.client.log_level)


def get_config_dir() -> Path:
    """Get the mpv-jsonipc config directory."""
    if xdg_config := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_config) / "mpv-jsonipc"
    return Path.home() / ".config" / "mpv-jsonipc"


def get_config_file() -> Path:
    if env_file := os.environ.get("MPV_JSONIPC_CONFIG"):
        return Path(env_file)
    return get_config_dir() / "config.toml"


def default_socket_path() -> str:
    """A fresh random IPC address: a /tmp socket, or a named pipe on Windows."""
    name = f"mpv{random.randrange(2**32)}"
    if sys.platform == "win32":
        return f"\\\\.\\pipe\\{name}"
    return f"/tmp/{name}"


def load_config(path: Path | None = None) -> Config:
    """Load configuration from file."""
    config_file = path or get_config_file()

    if not config_file.exists():
        return Config()

    with open(config_file, "rb") as f:
        data = tomllib.load(f)

    return Config.from_dict(data)
