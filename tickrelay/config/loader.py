"""YAML loaders for the config subsystem.

Each helper here consumes one YAML file, validates it via models.py and
returns typed objects to the caller. The relay settings and the secrets live
in separate files so the secrets file can stay gitignored.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

import yaml

from tickrelay.core.errors import ConfigurationError

from .models import AppConfig, RelayConfig, SecretsConfig

_DEFAULT_CONFIG_DIR = Path("config")
SECRETS_PATH_ENV = "TICKRELAY_SECRETS_PATH"


def _read_yaml(path: Path) -> Mapping:
    """Read a YAML file and return a mapping (empty dict if file is blank)."""

    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as fp:
        try:
            data = yaml.safe_load(fp) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"YAML root must be a mapping in {path}")
    return data


def load_relay_config(path: Path | str = _DEFAULT_CONFIG_DIR / "tickrelay.yml") -> RelayConfig:
    """Load tickrelay.yml (feed, connection, filter, batch, delivery, telemetry).

    Only ``feed.symbols`` is mandatory; every other section falls back to the
    defaults declared on :class:`RelayConfig`.
    """

    data = _read_yaml(Path(path))
    if "feed" not in data:
        raise ConfigurationError(f"{path} must contain a `feed:` section")
    return RelayConfig.model_validate(data)


def load_secrets_config(path: Path | str = _DEFAULT_CONFIG_DIR / "secrets.yaml") -> SecretsConfig:
    """Load secrets.yaml (shared webhook secret)."""

    data = _read_yaml(Path(path))
    return SecretsConfig.model_validate(data)


def resolve_secrets_path(config_dir: Path = _DEFAULT_CONFIG_DIR) -> Path:
    """Pick the secrets file: env override, ``secrets.yaml``, then the example."""

    env_path = os.environ.get(SECRETS_PATH_ENV)
    if env_path:
        return Path(env_path)
    candidate = config_dir / "secrets.yaml"
    if candidate.exists():
        return candidate
    return config_dir / "secrets.example.yml"


def load_app_config(
    *,
    relay_path: Path | str = _DEFAULT_CONFIG_DIR / "tickrelay.yml",
    secrets_path: Path | str | None = None,
) -> AppConfig:
    """Load and aggregate all config sections into a single AppConfig.

    A missing secrets file is not fatal: the relay then posts without the
    shared-secret header.
    """

    relay = load_relay_config(relay_path)
    secrets = SecretsConfig()
    if secrets_path is not None and Path(secrets_path).exists():
        secrets = load_secrets_config(secrets_path)
    return AppConfig(relay=relay, secrets=secrets)
