"""CLI entry point for running single reconciliation passes."""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import typer
from rich.console import Console
from rich.table import Table

from elasticache_reconciler.aws.exceptions import ReconcilerError
from elasticache_reconciler.config import ReconcilerConfig
from elasticache_reconciler.provisioner import AWSRedisProvider
from elasticache_reconciler.resources import KIND_REDIS, KIND_REDIS_SNAPSHOT, ReconcileResult
from elasticache_reconciler.snapshot import RedisSnapshotReconciler
from elasticache_reconciler.store import FileObjectStore
from elasticache_reconciler.strategy import FileStrategyResolver, SessionCredentialBroker
from elasticache_reconciler.utils import format_endpoint, setup_logger

app = typer.Typer(
    help="ElastiCache reconciler - converge Redis replication groups and snapshots to their declared state"
)
console = Console()

NamespaceOption = typer.Option("default", "--namespace", "-n", help="Namespace of the resource")
StateDirOption = typer.Option("./state", "--state-dir", "-s", help="Directory holding the resources")
StrategiesOption = typer.Option(
    "./strategies.json", "--strategies", help="JSON file mapping resource type and tier to a strategy"
)
ProfileOption = typer.Option(None, "--profile", "-p", help="AWS profile used to issue provider credentials")
RoleArnOption = typer.Option(None, "--role-arn", help="Role assumed per namespace for provider credentials")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Enable debug logging")


def _build_provider(state_dir: str, strategies: str, profile: Optional[str], role_arn: Optional[str]) -> AWSRedisProvider:
    return AWSRedisProvider(
        store=FileObjectStore(state_dir),
        strategy_resolver=FileStrategyResolver(strategies),
        credential_broker=SessionCredentialBroker(profile=profile, role_arn=role_arn),
        config=ReconcilerConfig.from_env(),
    )


def _print_result(kind: str, namespace: str, name: str, store: FileObjectStore, result: ReconcileResult) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Resource", f"{kind} {namespace}/{name}")

    try:
        obj = store.get(kind, namespace, name)
    except ReconcilerError:
        table.add_row("State", "removed")
    else:
        table.add_row("Phase", obj.status.phase.value)
        table.add_row("Message", obj.status.message)
        endpoint = getattr(obj.status, "endpoint", None)
        if endpoint is not None:
            table.add_row("Endpoint", format_endpoint(endpoint.uri, endpoint.port))

    table.add_row("Re-check", f"in {result.requeue_after:g}s" if result.requeue else "not needed")
    console.print(table)


def _run(step: Callable[[], Any], logger: logging.Logger) -> Any:
    try:
        return step()
    except ReconcilerError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled[/yellow]")
        logger.info("Cancelled")
        raise typer.Exit(130)
    except Exception as e:
        console.print(f"[red]Unexpected error: {e}[/red]")
        logger.exception("Unexpected error")
        raise typer.Exit(1)


@app.command("create-cluster")
def create_cluster(
    name: str = typer.Argument(..., help="Name of the Redis resource"),
    namespace: str = NamespaceOption,
    state_dir: str = StateDirOption,
    strategies: str = StrategiesOption,
    profile: Optional[str] = ProfileOption,
    role_arn: Optional[str] = RoleArnOption,
    verbose: bool = VerboseOption,
):
    """Run one create pass for a Redis resource.

    Examples:
        elasticache-reconciler create-cluster my-cache -n team-a
    """
    logger = setup_logger(verbose)
    provider = _run(lambda: _build_provider(state_dir, strategies, profile, role_arn), logger)
    result = _run(lambda: provider.reconcile_redis(namespace, name), logger)
    _print_result(KIND_REDIS, namespace, name, provider.store, result)


@app.command("delete-cluster")
def delete_cluster(
    name: str = typer.Argument(..., help="Name of the Redis resource"),
    namespace: str = NamespaceOption,
    state_dir: str = StateDirOption,
    strategies: str = StrategiesOption,
    profile: Optional[str] = ProfileOption,
    role_arn: Optional[str] = RoleArnOption,
    verbose: bool = VerboseOption,
):
    """Mark a Redis resource for deletion and run one delete pass.

    The resource file is removed once its replication group is gone.
    """
    logger = setup_logger(verbose)
    provider = _run(lambda: _build_provider(state_dir, strategies, profile, role_arn), logger)

    def delete_pass() -> ReconcileResult:
        redis = provider.store.get(KIND_REDIS, namespace, name)
        if redis.meta.deletion_timestamp is None:
            redis.meta.deletion_timestamp = datetime.now(timezone.utc)
            provider.store.update(redis)
        return provider.reconcile_redis(namespace, name)

    result = _run(delete_pass, logger)
    _print_result(KIND_REDIS, namespace, name, provider.store, result)


@app.command("snapshot")
def snapshot(
    name: str = typer.Argument(..., help="Name of the RedisSnapshot resource"),
    namespace: str = NamespaceOption,
    state_dir: str = StateDirOption,
    strategies: str = StrategiesOption,
    profile: Optional[str] = ProfileOption,
    role_arn: Optional[str] = RoleArnOption,
    verbose: bool = VerboseOption,
):
    """Run one pass for a RedisSnapshot resource."""
    logger = setup_logger(verbose)
    provider = _run(lambda: _build_provider(state_dir, strategies, profile, role_arn), logger)
    reconciler = RedisSnapshotReconciler(provider.store, provider)
    result = _run(lambda: reconciler.reconcile(namespace, name), logger)
    _print_result(KIND_REDIS_SNAPSHOT, namespace, name, provider.store, result)


if __name__ == "__main__":
    app()
