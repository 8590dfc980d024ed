# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/cli/app.py
from __future__ import annotations

import signal
from pathlib import Path
from typing import List, Optional, Tuple

import typer

from rotator.config.loader import load_settings
from rotator.config.models import OperatorSettings
from rotator.controller.manager import ControllerManager
from rotator.controller.reconciler import Reconciler
from rotator.errors import RotatorError
from rotator.fingerprint import secret_checksum
from rotator.k8s.client import load_apis
from rotator.logging.log import init_logging
from rotator.observers.jsonfile import JsonFileObserver
from rotator.observers.logger import LoggerObserver
from rotator.vault.client import build_vault_client
from rotator.vault.fetcher import SecretFetcher


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Mirror Vault secrets into Kubernetes Secrets and roll dependent workloads")

ConfigOpt = typer.Option(None, "--config", "-c", help="Settings YAML file")
VerboseOpt = typer.Option(False, "--verbose", "-v", help="Debug logging on the console")


def parse_ref(ref: str) -> Tuple[str, str]:
    """NAMESPACE/NAME -> (namespace, name)"""
    parts = ref.split("/")
    if len(parts) != 2 or not all(parts):
        raise typer.BadParameter(f"expected NAMESPACE/NAME, got {ref!r}")
    return parts[0], parts[1]


def _settings(config: Optional[Path], verbose: bool, **overrides) -> OperatorSettings:
    settings = load_settings(config)
    updates = {k: v for k, v in overrides.items() if v is not None}
    if verbose:
        updates["verbose"] = True
    return settings.model_copy(update=updates) if updates else settings


def _observers(settings: OperatorSettings, logger) -> List:
    observers: List = [LoggerObserver(logger)] if settings.verbose else []
    if settings.event_log:
        observers.append(JsonFileObserver(settings.event_log))
    return observers


def _build_reconciler(settings: OperatorSettings, logger) -> Tuple[Reconciler, object]:
    apis = load_apis(kube_context=settings.kube_context, in_cluster=settings.in_cluster)
    fetcher = SecretFetcher(build_vault_client(settings))
    return Reconciler(apis, fetcher, settings, observers=_observers(settings, logger)), apis


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def run(
    config: Optional[Path] = ConfigOpt,
    namespace: Optional[str] = typer.Option(None, "--namespace", "-n", help="Watch one namespace only"),
    workers: Optional[int] = typer.Option(None, "--workers", help="Concurrent reconcile workers"),
    verbose: bool = VerboseOpt,
):
    """Run the controller until SIGINT / SIGTERM."""
    settings = _settings(config, verbose, namespace=namespace, workers=workers)
    logger, _, _ = init_logging(
        base_dir=Path(settings.log_dir) if settings.log_dir else None,
        verbose=settings.verbose,
    )

    try:
        reconciler, apis = _build_reconciler(settings, logger)
    except RotatorError as e:
        logger.error(f"startup failed: {e}")
        raise typer.Exit(code=1)

    manager = ControllerManager(reconciler, apis, settings)
    signal.signal(signal.SIGTERM, lambda *_: manager.stop())
    signal.signal(signal.SIGINT, lambda *_: manager.stop())
    manager.run()


@app.command()
def reconcile(
    ref: str = typer.Argument(..., help="NAMESPACE/NAME of the SecretRotation"),
    config: Optional[Path] = ConfigOpt,
    verbose: bool = VerboseOpt,
):
    """Run a single reconcile pass and print the outcome."""
    namespace, name = parse_ref(ref)
    settings = _settings(config, verbose)
    logger, _, _ = init_logging(verbose=settings.verbose)

    try:
        reconciler, _ = _build_reconciler(settings, logger)
        result = reconciler.reconcile(namespace, name)
    except RotatorError as e:
        typer.echo(f"✗ {e}" + (f" ({e.details})" if e.details else ""), err=True)
        raise typer.Exit(code=1)

    if result.checksum is None:
        typer.echo(f"{namespace}/{name}: nothing reconciled, requeue_after={result.requeue_after}")
        return
    typer.echo(
        f"{namespace}/{name}: checksum={result.checksum} changed={result.changed} "
        f"updated={','.join(result.updated_workloads) or '-'} requeue_after={result.requeue_after:.0f}s"
    )


@app.command()
def checksum(
    path: str = typer.Argument(..., help="Vault path, e.g. secret/data/app"),
    config: Optional[Path] = ConfigOpt,
):
    """Fetch a Vault path and print its fingerprint."""
    settings = _settings(config, False)
    try:
        snapshot = SecretFetcher(build_vault_client(settings)).fetch(path)
    except RotatorError as e:
        typer.echo(f"✗ {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(secret_checksum(snapshot))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
