"""
Configuration loader.

Settings come from one JSON document (path taken from
EZNOPRIMES_CONFIG_PATH, default ./config.json). The optional OAuth token is
a secret and is read from the environment, which `load_dotenv()` fills from
a local .env file.

Unlike optional runtime documents, a bad config is fatal: the loader raises
ConfigError and the entrypoint exits.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from jsonschema import Draft7Validator

from shared.logging.logger import get_logger

log = get_logger("core.config_loader")

CONFIG_PATH_ENV = "EZNOPRIMES_CONFIG_PATH"
DEFAULT_CONFIG_PATH = Path("config.json")
TOKEN_ENV = "TWITCH_OAUTH_TOKEN"

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["irc_address", "irc_user", "irc_channel", "output_file"],
    "properties": {
        "debug_log": {"type": "boolean"},
        "debug_input_file": {"type": "string"},
        "irc_address": {"type": "string", "minLength": 1},
        "irc_tls": {"type": "boolean"},
        "irc_user": {"type": "string", "minLength": 1},
        "irc_channel": {"type": "string", "pattern": "^#?[^#\\s]+$"},
        "output_file": {"type": "string", "minLength": 1},
    },
}


class ConfigError(RuntimeError):
    """The configuration is missing or invalid."""


class ConfigNotFoundError(ConfigError):
    pass


@dataclass(frozen=True)
class AppConfig:
    irc_address: str
    irc_user: str
    irc_channel: str
    output_file: str

    irc_tls: bool = False
    debug_log: bool = False
    debug_input_file: str = ""

    # secret, never part of the JSON document
    oauth_token: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload.pop("oauth_token", None)
        return payload


SAMPLE_CONFIG = AppConfig(
    irc_address="irc.chat.twitch.tv:6667",
    irc_user="justinfan12345",
    irc_channel="eznoprimes",
    output_file="nonprimesubcount.txt",
)


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def resolve_config_path(path: Path | str | None = None) -> Path:
    if path:
        return Path(path)
    env_path = os.getenv(CONFIG_PATH_ENV, "").strip()
    return Path(env_path) if env_path else DEFAULT_CONFIG_PATH


def sample_config_json() -> str:
    return json.dumps(SAMPLE_CONFIG.to_document(), indent=2)


def validate_document(payload: Any) -> List[str]:
    validator = Draft7Validator(CONFIG_SCHEMA)
    errors = sorted(validator.iter_errors(payload), key=lambda e: list(e.path))

    problems = []
    for err in errors:
        loc = "/".join(str(p) for p in err.path) or "<root>"
        problems.append(f"{loc}: {err.message}")
    return problems


def _read_document(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigNotFoundError(f"Config file not found at {path}") from None
    except OSError as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse {path}, please check syntax: {e}") from e


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def build_config(payload: Any, *, oauth_token: Optional[str] = None) -> AppConfig:
    problems = validate_document(payload)
    if problems:
        for problem in problems:
            log.error(f"config validation error at {problem}")
        raise ConfigError(f"Invalid config ({len(problems)} problem(s)): {problems[0]}")

    token = (oauth_token or "").strip() or None

    return AppConfig(
        irc_address=payload["irc_address"].strip(),
        irc_user=payload["irc_user"].strip(),
        irc_channel=payload["irc_channel"].lstrip("#").strip(),
        output_file=payload["output_file"],
        irc_tls=payload.get("irc_tls", False),
        debug_log=payload.get("debug_log", False),
        debug_input_file=payload.get("debug_input_file", ""),
        oauth_token=token,
    )


def load_config(path: Path | str | None = None) -> AppConfig:
    load_dotenv()

    cfg_path = resolve_config_path(path)
    payload = _read_document(cfg_path)
    config = build_config(payload, oauth_token=os.getenv(TOKEN_ENV))

    log.info(
        f"Loaded config from {cfg_path} "
        f"(channel=#{config.irc_channel}, output={config.output_file}, "
        f"token={'SET' if config.oauth_token else 'MISSING'})"
    )
    return config
