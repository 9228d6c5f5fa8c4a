# cardscan: configuration
# Paths and endpoints come from cardscan.yaml (optional); credentials come
# from the environment, with a .env file in the working directory loaded first.

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml
from dotenv import load_dotenv

CONFIG_PATH = Path("cardscan.yaml")

REQUIRED_ENV = ("OPENAI_API_KEY", "TRELLO_API_KEY", "TRELLO_API_TOKEN")


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class Config:
    """Runtime configuration for a sync run."""

    # Local state
    db_path: str = "trello_scraper.db"
    last_board_path: str = "last_board.txt"
    error_log_path: str = "logs/errors.log"
    log_level: str = "INFO"

    # Extraction service
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    max_tokens: int = 100
    request_timeout: float = 30.0

    # Board service
    trello_base_url: str = "https://api.trello.com/1"

    # Filled from the environment by load_credentials()
    credentials: Dict[str, str] = field(default_factory=dict, repr=False)

    def resolve_paths(self, base: Optional[Path] = None):
        """Make relative paths absolute against `base` (default: cwd)."""
        root = (base or Path.cwd()).resolve()
        for name in ("db_path", "last_board_path", "error_log_path"):
            p = Path(getattr(self, name)).expanduser()
            if not p.is_absolute():
                p = root / p
            setattr(self, name, str(p))

    def load_credentials(self, env: Optional[Dict[str, str]] = None):
        """Copy required credentials from `env` (default os.environ). Raises ConfigError."""
        source = os.environ if env is None else env
        missing = [k for k in REQUIRED_ENV if not source.get(k)]
        if missing:
            raise ConfigError(
                f"Missing environment variable(s): {', '.join(missing)}. "
                f"Set them in the environment or in a .env file."
            )
        self.credentials = {k: source[k] for k in REQUIRED_ENV}

    @classmethod
    def load(cls, path: Optional[str] = None, env_file: Optional[str] = ".env") -> "Config":
        """Load config from YAML (defaults if absent) and credentials from the environment."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if path and not cfg_path.exists():
            raise ConfigError(f"Config file not found: {cfg_path}")
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
            cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__ and k != "credentials"})
        else:
            cfg = cls()

        if env_file:
            load_dotenv(env_file, override=False)
        cfg.resolve_paths()
        cfg.load_credentials()
        return cfg
