"""Configuration loading and validation for hm-remote."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from hmremote.core.errors import ConfigError

# 0000ffe1-0000-1000-8000-00805f9b34fb, the HM-series notify/write characteristic.
HM_CHARACTERISTIC_UUID = "0000ffe1-0000-1000-8000-00805f9b34fb"
TRANSPORT_UNIT = 20

_UUID_RE = re.compile(r"^[0-9a-f]{4}$|^[0-9a-f]{8}$|^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class RetrySettings:
    initial_delay_s: float = 0.0
    max_delay_s: float = 1.0
    backoff: float = 2.0
    max_attempts: int = 0

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based); 0 keeps the busy loop."""
        if self.initial_delay_s <= 0:
            return 0.0
        return min(self.initial_delay_s * (self.backoff ** (attempt - 1)), self.max_delay_s)


@dataclass(frozen=True)
class Settings:
    adapter: str | None = None
    characteristic_uuid: str = HM_CHARACTERISTIC_UUID
    write_with_response: bool = False
    write_delay_s: float = 0.01
    lost_timeout_s: float = 30.0
    connect_timeout_s: float = 10.0
    connect_retry: RetrySettings = field(default_factory=RetrySettings)


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "hm-remote/config.yaml"


def _load_schema_validator() -> Any:
    schema_text = resources.files("hmremote.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at root")
    return loaded


def _normalize_uuid(value: str, *, context: str) -> str:
    normalized = value.strip().lower()
    if not _UUID_RE.match(normalized):
        raise ConfigError(f"{context} must be a 16-bit, 32-bit, or 128-bit UUID string")
    return normalized


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ConfigError(f"{context} must be boolean true/false")


def build_settings(doc: dict[str, Any], source: Path | str = "<config>") -> Settings:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    defaults = Settings()
    retry_doc = doc.get("connect_retry", {})
    retry = RetrySettings(
        initial_delay_s=float(retry_doc.get("initial_delay_s", defaults.connect_retry.initial_delay_s)),
        max_delay_s=float(retry_doc.get("max_delay_s", defaults.connect_retry.max_delay_s)),
        backoff=float(retry_doc.get("backoff", defaults.connect_retry.backoff)),
        max_attempts=int(retry_doc.get("max_attempts", defaults.connect_retry.max_attempts)),
    )
    if retry.max_delay_s < retry.initial_delay_s:
        raise ConfigError(
            f"connect_retry.max_delay_s ({retry.max_delay_s}) must be >= "
            f"initial_delay_s ({retry.initial_delay_s}) in {source}"
        )

    return Settings(
        adapter=doc.get("adapter"),
        characteristic_uuid=_normalize_uuid(
            doc.get("characteristic_uuid", defaults.characteristic_uuid),
            context="characteristic_uuid",
        ),
        write_with_response=_normalize_bool(
            doc.get("write_with_response", defaults.write_with_response),
            context="write_with_response",
        ),
        write_delay_s=float(doc.get("write_delay_s", defaults.write_delay_s)),
        lost_timeout_s=float(doc.get("lost_timeout_s", defaults.lost_timeout_s)),
        connect_timeout_s=float(doc.get("connect_timeout_s", defaults.connect_timeout_s)),
        connect_retry=retry,
    )


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from ``path`` or the default location.

    An explicit path must exist; a missing default file yields defaults.
    """
    if path is None:
        path = default_config_path()
        if not path.exists():
            LOGGER.debug("No config file at %s; using defaults", path)
            return Settings()
    doc = _read_yaml(path)
    LOGGER.debug("Loaded config from %s", path)
    return build_settings(doc, path)
