"""AWS Redis provider: drives an ElastiCache replication group from a Redis resource.

Every pass re-derives what to do from the replication group AWS reports,
never from what a previous pass did:

- no group: add the finalizer, request creation, report nothing yet
- group not available: report nothing yet, the next pass looks again
- group available: report its primary endpoint

Deletion mirrors this. The finalizer is only removed after a describe in the
same pass found no matching group, so the Redis resource cannot disappear
while AWS may still hold a cluster for it.
"""

import logging
from typing import Callable, List, Optional, Tuple

from elasticache_reconciler.aws.client import ElastiCacheClient
from elasticache_reconciler.aws.exceptions import (
    ObjectNotFoundError,
    PersistenceError,
    ReconcilerError,
)
from elasticache_reconciler.aws.models import AWSCredentials, ClusterConfig, ReplicationGroup
from elasticache_reconciler.config import REDIS_RESOURCE_TYPE, ReconcilerConfig
from elasticache_reconciler.resources import (
    KIND_REDIS,
    Phase,
    ReconcileResult,
    Redis,
    RedisDeploymentDetails,
    add_finalizer,
    remove_finalizer,
)
from elasticache_reconciler.store import ObjectStore
from elasticache_reconciler.strategy import CredentialBroker, StrategyResolver
from elasticache_reconciler.utils import format_endpoint

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, AWSCredentials], ElastiCacheClient]


def find_replication_group(groups: List[ReplicationGroup], replication_group_id: str) -> Optional[ReplicationGroup]:
    """Return the group whose id matches, if any."""
    for group in groups:
        if group.id == replication_group_id:
            return group
    return None


class AWSRedisProvider:
    """Creates and deletes ElastiCache replication groups for Redis resources."""

    def __init__(
        self,
        store: ObjectStore,
        strategy_resolver: StrategyResolver,
        credential_broker: CredentialBroker,
        config: Optional[ReconcilerConfig] = None,
        client_factory: ClientFactory = ElastiCacheClient,
    ):
        """Initialize the provider.

        Args:
            store: Store holding the Redis resources
            strategy_resolver: Resolves tier strategies
            credential_broker: Issues provider credentials per namespace
            config: Reconciler settings (default: ``ReconcilerConfig()``)
            client_factory: Builds a control-plane client from region and credentials
        """
        self.store = store
        self.strategy_resolver = strategy_resolver
        self.credential_broker = credential_broker
        self.config = config or ReconcilerConfig()
        self.client_factory = client_factory

    @property
    def name(self) -> str:
        return self.config.deployment_strategy

    def supports_strategy(self, strategy: str) -> bool:
        return strategy == self.config.deployment_strategy

    def get_cluster_config(self, redis: Redis) -> Tuple[ClusterConfig, str]:
        """Resolve the cluster config and region for a Redis resource.

        The replication group id defaults to the resource name. The region is
        taken from the resource, then the strategy, then the configured default.

        Returns:
            Tuple of (cluster config, region)

        Raises:
            ConfigurationError: If the tier is unknown or its strategy is malformed
        """
        strategy = self.strategy_resolver.read_strategy(REDIS_RESOURCE_TYPE, redis.tier)
        cluster_config = ClusterConfig.from_strategy(strategy.raw_strategy)

        region = redis.region or strategy.region or self.config.default_region
        return cluster_config.with_replication_group_id(redis.meta.name), region

    def build_client(self, namespace: str, region: str) -> ElastiCacheClient:
        """Issue credentials for ``namespace`` and bind a client to ``region``."""
        credentials = self.credential_broker.reconcile_provider_credentials(namespace)
        return self.client_factory(region, credentials)

    def list_replication_groups(self, client: ElastiCacheClient) -> List[ReplicationGroup]:
        return client.list_replication_groups(
            interval=self.config.poll_interval_seconds,
            timeout=self.config.poll_timeout_seconds,
        )

    def create_redis(self, redis: Redis) -> Optional[RedisDeploymentDetails]:
        """Converge towards an available replication group for ``redis``.

        Args:
            redis: Redis resource

        Returns:
            Deployment details once the group is available, otherwise None.
            None is not an error: the caller should simply look again later.

        Raises:
            ReconcilerError: If a step of the pass fails
        """
        if redis.meta.deletion_timestamp is None and add_finalizer(redis.meta, self.config.finalizer):
            try:
                self.store.update(redis)
            except PersistenceError as e:
                raise PersistenceError(f"failed to add finalizer to {redis.meta.name}: {e.message}", e) from e

        cluster_config, region = self.get_cluster_config(redis)
        client = self.build_client(redis.meta.namespace, region)

        groups = self.list_replication_groups(client)
        found = find_replication_group(groups, cluster_config.replication_group_id)

        if found is not None:
            if not found.is_available:
                logger.info(f"Replication group {found.id} is {found.status.value}, waiting")
                return None
            if found.primary_endpoint is None:
                logger.warning(f"Replication group {found.id} is available but reports no primary endpoint")
                return None
            logger.info(f"Found existing replication group {found.id}")
            return RedisDeploymentDetails(uri=found.primary_endpoint.address, port=found.primary_endpoint.port)

        # defaults are applied only here, on the create path
        client.create_replication_group(cluster_config.with_defaults())
        return None

    def delete_redis(self, redis: Redis) -> None:
        """Converge towards no replication group for ``redis``.

        Removes the finalizer only once the group is confirmed absent.

        Args:
            redis: Redis resource

        Raises:
            ReconcilerError: If a step of the pass fails
        """
        cluster_config, region = self.get_cluster_config(redis)
        client = self.build_client(redis.meta.namespace, region)

        groups = self.list_replication_groups(client)
        found = find_replication_group(groups, cluster_config.replication_group_id)

        if found is None:
            logger.info(f"Replication group {cluster_config.replication_group_id} is gone, removing finalizer")
            remove_finalizer(redis.meta, self.config.finalizer)
            try:
                self.store.update(redis)
            except PersistenceError as e:
                raise PersistenceError(
                    f"failed to update {redis.meta.name} as part of finalizer reconcile: {e.message}", e
                ) from e
            return

        if not found.is_available:
            logger.info(f"Replication group {found.id} is {found.status.value}, not deleting yet")
            return

        client.delete_replication_group(found.id)

    def reconcile_redis(self, namespace: str, name: str) -> ReconcileResult:
        """Run one reconciliation pass for a stored Redis resource.

        Dispatches to ``delete_redis`` when the resource is being deleted,
        otherwise to ``create_redis``, and records the outcome on its status.

        Returns:
            Result telling the scheduler when to look again
        """
        try:
            redis = self.store.get(KIND_REDIS, namespace, name)
        except ObjectNotFoundError:
            logger.info(f"Redis {namespace}/{name} not found, nothing to do")
            return ReconcileResult()

        recheck = ReconcileResult(requeue_after=self.config.cluster_recheck_seconds)

        if redis.meta.deletion_timestamp is not None:
            self.delete_redis(redis)
            if self.config.finalizer in redis.meta.finalizers:
                return recheck
            return ReconcileResult()

        try:
            details = self.create_redis(redis)
        except ReconcilerError as e:
            redis.status.phase = Phase.FAILED
            redis.status.message = e.message
            try:
                self.store.update(redis)
            except PersistenceError as update_error:
                logger.error(f"Failed to record failure on Redis {namespace}/{name}: {update_error}")
            raise

        redis.status.strategy = self.name
        if details is None:
            redis.status.phase = Phase.IN_PROGRESS
            redis.status.message = "creation in progress"
            self.store.update(redis)
            return recheck

        redis.status.phase = Phase.COMPLETE
        redis.status.message = f"creation successful, endpoint {format_endpoint(details.uri, details.port)}"
        redis.status.endpoint = details
        self.store.update(redis)
        return ReconcileResult()

