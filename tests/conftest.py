"""Shared fixtures: in-memory store, static collaborators and a scripted control plane."""

from datetime import datetime, timezone

import pytest

from elasticache_reconciler.aws.models import (
    AWSCredentials,
    Endpoint,
    NodeGroupMember,
    ReplicationGroup,
    ReplicationGroupStatus,
    Snapshot,
    SnapshotStatus,
)
from elasticache_reconciler.config import ReconcilerConfig
from elasticache_reconciler.provisioner import AWSRedisProvider
from elasticache_reconciler.resources import ObjectMeta, Redis, RedisSnapshot
from elasticache_reconciler.store import InMemoryObjectStore
from elasticache_reconciler.strategy import StaticCredentialBroker, StaticStrategyResolver

STRATEGIES = {
    "redis": {
        "development": {"region": "", "createStrategy": {}},
        "production": {
            "region": "us-east-1",
            "createStrategy": {
                "ReplicationGroupId": "prod-cache",
                "CacheNodeType": "cache.m5.large",
                "NumCacheClusters": 3,
            },
        },
    }
}

CREATED_AT = datetime(2024, 1, 1, 12, 30, 0, tzinfo=timezone.utc)


class FakeElastiCacheClient:
    """Control plane double whose state tests script directly.

    ``groups`` and ``snapshots`` hold what AWS would report. Every mutating
    call is recorded so tests can assert how many were issued.
    """

    def __init__(self):
        self.groups = {}
        self.snapshots = {}
        self.created_groups = []
        self.deleted_groups = []
        self.created_snapshots = []
        self.list_calls = 0
        self.describe_calls = 0
        self.find_snapshot_calls = 0
        self.create_group_error = None
        self.delete_group_error = None
        self.create_snapshot_error = None
        self.bound_to = []

    def factory(self, region, credentials):
        self.bound_to.append((region, credentials))
        return self

    def list_replication_groups(self, interval=5, timeout=300):
        self.list_calls += 1
        return list(self.groups.values())

    def describe_replication_group(self, replication_group_id):
        self.describe_calls += 1
        return self.groups.get(replication_group_id)

    def create_replication_group(self, config):
        if self.create_group_error:
            raise self.create_group_error
        self.created_groups.append(config)
        self.groups[config.replication_group_id] = ReplicationGroup(
            id=config.replication_group_id, status=ReplicationGroupStatus.CREATING
        )

    def delete_replication_group(self, replication_group_id):
        if self.delete_group_error:
            raise self.delete_group_error
        self.deleted_groups.append(replication_group_id)
        self.groups[replication_group_id].status = ReplicationGroupStatus.DELETING
        return True

    def find_snapshot(self, snapshot_name):
        self.find_snapshot_calls += 1
        return self.snapshots.get(snapshot_name)

    def create_snapshot(self, cache_cluster_id, snapshot_name):
        if self.create_snapshot_error:
            raise self.create_snapshot_error
        self.created_snapshots.append((cache_cluster_id, snapshot_name))
        self.snapshots[snapshot_name] = Snapshot(name=snapshot_name, status=SnapshotStatus.CREATING)

    @property
    def external_calls(self):
        return (
            self.list_calls
            + self.describe_calls
            + self.find_snapshot_calls
            + len(self.created_groups)
            + len(self.deleted_groups)
            + len(self.created_snapshots)
        )

    def put_group(self, group_id, status, address="10.0.0.5", port=6379, primary=None):
        """Script a replication group as AWS would report it."""
        members = [
            NodeGroupMember(cache_cluster_id=f"{group_id}-001", current_role="primary" if primary is None else "replica"),
            NodeGroupMember(cache_cluster_id=f"{group_id}-002", current_role="replica"),
        ]
        if primary is not None:
            members.append(NodeGroupMember(cache_cluster_id=primary, current_role="primary"))
        self.groups[group_id] = ReplicationGroup(
            id=group_id,
            status=ReplicationGroupStatus(status),
            primary_endpoint=Endpoint(address=address, port=port),
            members=members,
        )


@pytest.fixture
def fake_client():
    return FakeElastiCacheClient()


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def config():
    return ReconcilerConfig(default_region="eu-west-1")


@pytest.fixture
def credentials():
    return AWSCredentials(access_key_id="AKIATEST", secret_access_key="secret")


@pytest.fixture
def strategies():
    return STRATEGIES


@pytest.fixture
def provider(store, fake_client, config, credentials, strategies):
    return AWSRedisProvider(
        store=store,
        strategy_resolver=StaticStrategyResolver(strategies),
        credential_broker=StaticCredentialBroker(credentials),
        config=config,
        client_factory=fake_client.factory,
    )


@pytest.fixture
def make_redis(store):
    """Create and store a Redis resource."""
    def _make(name="foo", namespace="default", tier="development", strategy="", region=None):
        redis = Redis(meta=ObjectMeta(name=name, namespace=namespace, creation_timestamp=CREATED_AT), tier=tier, region=region)
        redis.status.strategy = strategy
        store.add(redis)
        return redis
    return _make


@pytest.fixture
def make_snapshot(store):
    """Create and store a RedisSnapshot resource."""
    def _make(name="bar-snap", resource_name="bar", namespace="default"):
        snapshot = RedisSnapshot(
            meta=ObjectMeta(name=name, namespace=namespace, creation_timestamp=CREATED_AT),
            resource_name=resource_name,
        )
        store.add(snapshot)
        return snapshot
    return _make
