# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/vault/client.py
from __future__ import annotations

import logging
from pathlib import Path

import hvac
import hvac.exceptions
import requests

from ..config.models import OperatorSettings
from ..errors import StoreUnavailableError
from ..utils.retry import RetryError, retry

log = logging.getLogger("rotator")

_AUTH_ERRORS = (hvac.exceptions.VaultError, requests.exceptions.RequestException, OSError)


def _log_retry(attempt: int, exc: Exception) -> None:
    log.warning(f"vault login attempt {attempt} failed: {exc}")


@retry(retries=3, delay=2, retry_on=_AUTH_ERRORS, on_retry=_log_retry)
def _kubernetes_login(client: hvac.Client, settings: OperatorSettings) -> None:
    jwt = Path(settings.vault_jwt_path).read_text().strip()
    client.auth.kubernetes.login(
        role=settings.vault_role,
        jwt=jwt,
        mount_point=settings.vault_auth_mount,
    )


def build_vault_client(settings: OperatorSettings) -> hvac.Client:
    """
    Construct an authenticated Vault client.

    Uses Kubernetes service-account auth when ``vault_role`` is set,
    otherwise the static token (``VAULT_TOKEN``).
    """
    client = hvac.Client(
        url=settings.vault_addr,
        token=settings.vault_token,
        timeout=settings.vault_timeout,
    )

    if settings.vault_role:
        log.info(f"authenticating to {settings.vault_addr} with kubernetes role={settings.vault_role}")
        try:
            _kubernetes_login(client, settings)
        except RetryError as e:
            raise StoreUnavailableError(
                "vault kubernetes login failed", details=str(e.__cause__)
            ) from e
    elif not settings.vault_token:
        log.warning("no vault token or role configured; reads will be unauthenticated")

    return client
