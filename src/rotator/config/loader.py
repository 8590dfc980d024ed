# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/config/loader.py

import logging
import os
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .models import OperatorSettings

log = logging.getLogger("rotator")

ENV_PREFIX = "ROTATOR_"

# Conventional Vault variables honoured without the prefix
_VAULT_ENV = {
    "VAULT_ADDR": "vault_addr",
    "VAULT_TOKEN": "vault_token",
}


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    data = yaml.safe_load(expanded) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping in {path}, got {type(data).__name__}")
    return data


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, str]:
    fields = set(OperatorSettings.model_fields)
    out: Dict[str, str] = {}

    for env_name, field in _VAULT_ENV.items():
        if environ.get(env_name):
            out[field] = environ[env_name]

    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field = key[len(ENV_PREFIX):].lower()
        if field in fields:
            out[field] = value
        else:
            log.debug("Ignoring unknown setting %s", key)
    return out


def load_settings(
    path: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> OperatorSettings:
    """
    Build OperatorSettings.

    Precedence (later wins):
      1. field defaults
      2. YAML file at *path* (``${ENV_VAR}`` placeholders expanded)
      3. ``VAULT_ADDR`` / ``VAULT_TOKEN``
      4. ``ROTATOR_<FIELD>`` variables, e.g. ``ROTATOR_RESYNC_INTERVAL=300``
    """
    environ = os.environ if environ is None else environ
    data: dict = {}

    if path is not None:
        path = Path(path)
        log.debug("Loading settings from %s", path)
        data = _load_yaml(path)

    _deep_merge(data, _env_overrides(environ))
    return OperatorSettings.model_validate(data)
