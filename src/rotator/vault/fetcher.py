# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/vault/fetcher.py
from __future__ import annotations

import json
import logging
import math
from decimal import Decimal
from typing import Any, Mapping

import hvac
import hvac.exceptions
import requests

from ..config.models import SecretSnapshot
from ..errors import SecretNotFoundError, StoreUnavailableError

log = logging.getLogger("rotator")

# KV v2 nests the payload one level down under this key
ENVELOPE_KEY = "data"


def _float_text(v: float) -> str:
    """
    Shortest round-trip digits, switching to exponent form below 1e-4 and
    from 1e6 up: 1.0 -> "1", 2.5 -> "2.5", 1e6 -> "1e+06".
    """
    if math.isnan(v):
        return "NaN"
    if math.isinf(v):
        return "+Inf" if v > 0 else "-Inf"
    if v == 0:
        return "-0" if math.copysign(1.0, v) < 0 else "0"

    sign, digits, exponent = Decimal(repr(v)).normalize().as_tuple()
    ds = "".join(map(str, digits))
    exp = len(ds) + exponent - 1
    neg = "-" if sign else ""

    if exp < -4 or exp >= 6:
        mantissa = ds[0] + ("." + ds[1:] if len(ds) > 1 else "")
        return f"{neg}{mantissa}e{'+' if exp >= 0 else '-'}{abs(exp):02d}"
    if exp >= 0:
        whole, frac = ds[:exp + 1].ljust(exp + 1, "0"), ds[exp + 1:]
    else:
        whole, frac = "0", "0" * (-exp - 1) + ds
    return neg + whole + ("." + frac if frac else "")


def _as_text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (bytes, bytearray)):
        return bytes(v).decode("utf-8", errors="replace")
    if isinstance(v, (dict, list)):
        return json.dumps(v, sort_keys=True, separators=(",", ":"))
    if isinstance(v, float):
        return _float_text(v)
    return str(v)


def to_snapshot(data: Mapping[str, Any]) -> SecretSnapshot:
    """Canonicalize every value to its text form, then to UTF-8 bytes."""
    return {str(k): _as_text(v).encode("utf-8") for k, v in data.items()}


def unwrap(response: Any) -> Mapping[str, Any]:
    """
    Return the snapshot payload of a logical read response.

    KV v2: ``{"data": {"data": {...}, "metadata": {...}}}`` -> inner mapping.
    KV v1: ``{"data": {...}}`` -> ``data`` itself.
    """
    if not response:
        raise SecretNotFoundError("secret store returned no response")

    data = response.get("data") if isinstance(response, Mapping) else None
    if not data:
        raise SecretNotFoundError("secret store returned no data")

    nested = data.get(ENVELOPE_KEY)
    if isinstance(nested, Mapping):
        return nested
    return data


class SecretFetcher:
    """Reads flat key/value snapshots from Vault."""

    def __init__(self, client: hvac.Client) -> None:
        self.client = client

    def fetch(self, path: str) -> SecretSnapshot:
        try:
            response = self.client.read(path)
        except hvac.exceptions.InvalidPath as e:
            raise SecretNotFoundError(f"vault path not found: {path}", details=str(e)) from e
        except hvac.exceptions.VaultError as e:
            raise StoreUnavailableError(f"vault read failed: {path}", details=str(e)) from e
        except requests.exceptions.RequestException as e:
            raise StoreUnavailableError(f"vault unreachable reading {path}", details=str(e)) from e

        try:
            payload = unwrap(response)
        except SecretNotFoundError as e:
            raise SecretNotFoundError(f"vault secret not found or empty: {path}") from e

        snapshot = to_snapshot(payload)
        log.debug(f"fetched {len(snapshot)} keys from {path}")
        return snapshot
