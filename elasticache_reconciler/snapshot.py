"""Reconciler for RedisSnapshot resources."""

import logging
from typing import Optional

from elasticache_reconciler.aws.exceptions import (
    ObjectNotFoundError,
    PersistenceError,
    ReconcilerError,
    UnsupportedStrategyError,
)
from elasticache_reconciler.config import ReconcilerConfig
from elasticache_reconciler.naming import build_timestamped_name_from_object_creation
from elasticache_reconciler.provisioner import AWSRedisProvider
from elasticache_reconciler.resources import (
    KIND_REDIS,
    KIND_REDIS_SNAPSHOT,
    Phase,
    ReconcileResult,
    RedisSnapshot,
    update_snapshot_phase,
)
from elasticache_reconciler.store import ObjectStore

logger = logging.getLogger(__name__)


class RedisSnapshotReconciler:
    """Drives a RedisSnapshot from Pending to Complete.

    Each pass looks up the snapshot by its stable name and creates it only if
    AWS does not know it yet, so repeated passes never request a second
    snapshot. ``Complete`` is terminal. ``Failed`` only describes the latest
    pass: recoverable failures come with a re-check, configuration errors
    are raised and not re-checked.
    """

    def __init__(
        self,
        store: ObjectStore,
        provider: AWSRedisProvider,
        config: Optional[ReconcilerConfig] = None,
    ):
        """Initialize the reconciler.

        Args:
            store: Store holding the Redis and RedisSnapshot resources
            provider: Provider used to resolve cluster config, region and client
            config: Reconciler settings (default: the provider's)
        """
        self.store = store
        self.provider = provider
        self.config = config or provider.config

    def snapshot_name(self, snapshot: RedisSnapshot) -> str:
        return build_timestamped_name_from_object_creation(snapshot.meta, self.config.identifier_length)

    def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """Run one reconciliation pass for a stored RedisSnapshot.

        Args:
            namespace: Namespace of the snapshot request
            name: Name of the snapshot request

        Returns:
            Result telling the scheduler when to look again

        Raises:
            ReconcilerError: If the pass failed; the failure is also written
                to the request's status message where possible
        """
        logger.info(f"Reconciling redis snapshot {namespace}/{name}")

        try:
            snapshot = self.store.get(KIND_REDIS_SNAPSHOT, namespace, name)
        except ObjectNotFoundError:
            logger.info(f"RedisSnapshot {namespace}/{name} not found, nothing to do")
            return ReconcileResult()

        if snapshot.status.phase is Phase.COMPLETE:
            logger.info(f"Snapshot for {name} exists")
            return ReconcileResult()

        recheck = ReconcileResult(requeue_after=self.config.snapshot_recheck_seconds)

        try:
            redis = self.store.get(KIND_REDIS, namespace, snapshot.resource_name)
        except ReconcilerError as e:
            self._record_failure(snapshot, f"failed to get redis cr: {e.message}")
            raise

        if not self.provider.supports_strategy(redis.status.strategy):
            error = UnsupportedStrategyError(redis.status.strategy)
            self._record_failure(snapshot, error.message)
            raise error

        try:
            cluster_config, region = self.provider.get_cluster_config(redis)
            client = self.provider.build_client(redis.meta.namespace, region)

            snapshot_name = self.snapshot_name(snapshot)
            cluster_id = cluster_config.replication_group_id

            found_snapshot = client.find_snapshot(snapshot_name)
            group = client.describe_replication_group(cluster_id)
        except ReconcilerError as e:
            self._record_failure(snapshot, e.message)
            raise

        if group is None or not group.is_available:
            status = group.status.value if group is not None else "not found"
            self._fail(snapshot, f"current replication group status is {status}")
            return recheck

        primary = group.primary_node()
        if primary is None:
            self._fail(snapshot, f"no primary node found in replication group {cluster_id}")
            return recheck

        if found_snapshot is None:
            logger.info(f"Creating elasticache snapshot {snapshot_name} of {primary.cache_cluster_id}")
            # a failed create leaves the phase untouched so the next pass retries it
            client.create_snapshot(primary.cache_cluster_id, snapshot_name)
            update_snapshot_phase(self.store, snapshot, Phase.IN_PROGRESS, "snapshot creation in progress")
            return recheck

        if found_snapshot.is_available:
            update_snapshot_phase(self.store, snapshot, Phase.COMPLETE, "snapshot created")
            return ReconcileResult()

        msg = f"current snapshot status : {found_snapshot.status.value}"
        update_snapshot_phase(self.store, snapshot, Phase.IN_PROGRESS, msg)
        return recheck

    def _fail(self, snapshot: RedisSnapshot, message: str) -> None:
        update_snapshot_phase(self.store, snapshot, Phase.FAILED, message)

    def _record_failure(self, snapshot: RedisSnapshot, message: str) -> None:
        """Write Failed ahead of a re-raise. Write errors are only logged."""
        try:
            self._fail(snapshot, message)
        except PersistenceError as update_error:
            logger.error(f"Failed to record failure on RedisSnapshot {snapshot.meta.namespace}/{snapshot.meta.name}: {update_error}")
