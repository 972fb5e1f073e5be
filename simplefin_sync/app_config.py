"""
The JSON application config (config.json).

Holds the Sure credentials, the SimpleFIN access URL or setup token and the
account map. Three historical shapes exist on disk:

- CURRENT: ``sure_*`` keys, ``account_map`` values are objects with ``sure_id``
- LEGACY_STRING_MAP: ``sure_*`` keys, ``account_map`` values are ledger ids
- OLDEST_NAMING: ``maybe_*`` keys, ``account_map`` values are ledger ids

detect_schema_version() picks the shape, one pure function per legacy shape
converts it, and everything downstream only ever sees AppConfig.
"""
from __future__ import annotations
import json
from enum import Enum
from pathlib import Path
from typing import Any, Optional
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from .stores.base import write_json_atomic

MIGRATED_ACCOUNT_NAME = "Unknown Account"


class ConfigError(RuntimeError):
    """Raised when config.json is missing, unreadable or of an unknown shape."""
    pass


class AccountConfig(BaseModel):
    sure_id: str
    name: str = ""
    balance_only: bool = False


class AppConfig(BaseModel):
    sure_api_key: str = ""
    sure_base_url: str = ""           # e.g. http://localhost:3000/api/v1
    access_url: str = ""              # permanent SimpleFIN URL
    setup_token: str = ""             # only used while access_url is empty
    account_map: dict[str, AccountConfig] = Field(default_factory=dict)

    def mapping_for(self, source_id: str) -> Optional[AccountConfig]:
        return self.account_map.get(source_id)

    def validate_for_sync(self) -> list[str]:
        errors = []
        if not self.sure_base_url:
            errors.append("sure_base_url is required")
        if not self.sure_api_key:
            errors.append("sure_api_key is required")
        if not self.access_url and not self.setup_token:
            errors.append("access_url or setup_token is required")
        return errors

    def to_json(self) -> dict:
        data = self.model_dump()
        for entry in data["account_map"].values():
            if not entry["balance_only"]:
                del entry["balance_only"]
        data["account_map"] = dict(sorted(data["account_map"].items()))
        return data


class SchemaVersion(str, Enum):
    CURRENT = "current"
    LEGACY_STRING_MAP = "legacy_string_map"
    OLDEST_NAMING = "oldest_naming"


def detect_schema_version(raw: Any) -> SchemaVersion:
    """
    Work out which historical shape a parsed config.json has.

    Raises:
        ConfigError: if the document matches none of them
    """
    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a JSON object, got {type(raw).__name__}")

    account_map = raw.get("account_map") or {}
    if not isinstance(account_map, dict):
        raise ConfigError("account_map must be a JSON object")
    values = list(account_map.values())

    if values and all(isinstance(v, dict) for v in values):
        return SchemaVersion.CURRENT
    if values and not all(isinstance(v, str) for v in values):
        raise ConfigError("account_map mixes ledger id strings and account objects")

    has_maybe_keys = "maybe_api_key" in raw or "maybe_base_url" in raw
    has_sure_keys = "sure_api_key" in raw or "sure_base_url" in raw
    if has_maybe_keys and not has_sure_keys:
        return SchemaVersion.OLDEST_NAMING
    if values:
        return SchemaVersion.LEGACY_STRING_MAP
    return SchemaVersion.CURRENT


def _migrate_string_map(account_map: dict[str, str]) -> dict[str, dict]:
    return {
        source_id: {"sure_id": ledger_id, "name": MIGRATED_ACCOUNT_NAME}
        for source_id, ledger_id in account_map.items()
    }


def migrate_legacy_string_map(raw: dict) -> dict:
    return {
        "sure_api_key": raw.get("sure_api_key", ""),
        "sure_base_url": raw.get("sure_base_url", ""),
        "access_url": raw.get("access_url", ""),
        "setup_token": raw.get("setup_token", ""),
        "account_map": _migrate_string_map(raw.get("account_map") or {}),
    }


def migrate_oldest_naming(raw: dict) -> dict:
    return {
        "sure_api_key": raw.get("maybe_api_key", ""),
        "sure_base_url": raw.get("maybe_base_url", ""),
        "access_url": raw.get("access_url", ""),
        "setup_token": raw.get("setup_token", ""),
        "account_map": _migrate_string_map(raw.get("account_map") or {}),
    }


MIGRATIONS = {
    SchemaVersion.CURRENT: lambda raw: raw,
    SchemaVersion.LEGACY_STRING_MAP: migrate_legacy_string_map,
    SchemaVersion.OLDEST_NAMING: migrate_oldest_naming,
}


def parse_config(raw: Any) -> tuple[AppConfig, SchemaVersion]:
    version = detect_schema_version(raw)
    try:
        config = AppConfig.model_validate(MIGRATIONS[version](raw))
    except ValidationError as e:
        raise ConfigError(f"Invalid config ({version.value} schema): {e}") from e
    return config, version


class ConfigFile:
    """Loads and saves config.json; legacy shapes are rewritten on the next save."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.version: Optional[SchemaVersion] = None

    def load(self) -> AppConfig:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ConfigError(f"Please create a {self.path} file") from e
        except OSError as e:
            raise ConfigError(f"Cannot read {self.path}: {e}") from e
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Failed to parse {self.path}: {e}") from e

        config, self.version = parse_config(raw)
        if self.version is not SchemaVersion.CURRENT:
            logger.info(f"Migrated {self.path} from the {self.version.value} schema")
        return config

    def save(self, config: AppConfig) -> None:
        write_json_atomic(self.path, config.to_json())
        self.version = SchemaVersion.CURRENT
