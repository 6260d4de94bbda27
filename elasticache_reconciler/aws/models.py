"""Data models for ElastiCache replication groups, snapshots and cluster config."""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from elasticache_reconciler.aws.exceptions import InvalidStrategyConfigError

logger = logging.getLogger(__name__)

CACHE_ENGINE = "redis"

DEFAULT_CACHE_NODE_TYPE = "cache.t2.micro"
DEFAULT_ENGINE_VERSION = "3.2.10"
DEFAULT_DESCRIPTION = "A Redis replication group"
DEFAULT_NUM_CACHE_CLUSTERS = 2
DEFAULT_SNAPSHOT_RETENTION = 30


class _ApiStatus(str, Enum):
    """String enum mapped from the status vocabulary of the ElastiCache API."""

    @classmethod
    def from_api(cls, value: Optional[str]):
        """Map an API status string onto the enum.

        Unrecognised values map to ``UNKNOWN`` rather than raising, so a new
        status from AWS is never mistaken for ``available``.
        """
        try:
            return cls((value or "").lower())
        except ValueError:
            logger.warning(f"Unrecognised {cls.__name__} '{value}', treating as unknown")
            return cls.UNKNOWN


class ReplicationGroupStatus(_ApiStatus):
    """Replication group lifecycle states."""

    CREATING = "creating"
    AVAILABLE = "available"
    MODIFYING = "modifying"
    DELETING = "deleting"
    CREATE_FAILED = "create-failed"
    SNAPSHOTTING = "snapshotting"
    UNKNOWN = "unknown"


class SnapshotStatus(_ApiStatus):
    """Snapshot lifecycle states."""

    CREATING = "creating"
    AVAILABLE = "available"
    RESTORING = "restoring"
    COPYING = "copying"
    DELETING = "deleting"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Endpoint:
    """Primary endpoint of a replication group."""

    address: str
    port: int


@dataclass(frozen=True)
class NodeGroupMember:
    """A cache cluster taking part in a node group."""

    cache_cluster_id: str
    current_role: str = ""

    @property
    def is_primary(self) -> bool:
        return self.current_role.lower() == "primary"


@dataclass
class ReplicationGroup:
    """Observed state of an ElastiCache replication group."""

    id: str
    status: ReplicationGroupStatus
    primary_endpoint: Optional[Endpoint] = None
    members: List[NodeGroupMember] = field(default_factory=list)

    @classmethod
    def from_api(cls, rg: Dict[str, Any]) -> "ReplicationGroup":
        """Build from a DescribeReplicationGroups entry.

        Only the first node group is read: cluster mode is disabled for
        groups we create, so there is exactly one.
        """
        endpoint = None
        members = []
        node_groups = rg.get("NodeGroups", [])
        if node_groups:
            primary = node_groups[0].get("PrimaryEndpoint") or {}
            if primary.get("Address"):
                endpoint = Endpoint(address=primary["Address"], port=int(primary.get("Port", 0)))
            for member in node_groups[0].get("NodeGroupMembers", []):
                members.append(
                    NodeGroupMember(
                        cache_cluster_id=member.get("CacheClusterId", ""),
                        current_role=member.get("CurrentRole", ""),
                    )
                )

        return cls(
            id=rg.get("ReplicationGroupId", ""),
            status=ReplicationGroupStatus.from_api(rg.get("Status")),
            primary_endpoint=endpoint,
            members=members,
        )

    @property
    def is_available(self) -> bool:
        return self.status is ReplicationGroupStatus.AVAILABLE

    def primary_node(self) -> Optional[NodeGroupMember]:
        """Return the member currently holding the primary role, if any."""
        for member in self.members:
            if member.is_primary:
                return member
        return None


@dataclass
class Snapshot:
    """Observed state of an ElastiCache snapshot."""

    name: str
    status: SnapshotStatus

    @classmethod
    def from_api(cls, snapshot: Dict[str, Any]) -> "Snapshot":
        return cls(
            name=snapshot.get("SnapshotName", ""),
            status=SnapshotStatus.from_api(snapshot.get("SnapshotStatus")),
        )

    @property
    def is_available(self) -> bool:
        return self.status is SnapshotStatus.AVAILABLE


@dataclass(frozen=True)
class AWSCredentials:
    """Short-lived provider credentials issued for one namespace."""

    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: Optional[str] = field(default=None, repr=False)


# Strategy blob key -> ClusterConfig attribute
STRATEGY_FIELDS = {
    "ReplicationGroupId": "replication_group_id",
    "CacheNodeType": "cache_node_type",
    "EngineVersion": "engine_version",
    "ReplicationGroupDescription": "description",
    "NumCacheClusters": "num_cache_clusters",
    "SnapshotRetentionLimit": "snapshot_retention_limit",
}

COUNT_FIELDS = ("num_cache_clusters", "snapshot_retention_limit")


@dataclass(frozen=True)
class ClusterConfig:
    """Resolved configuration of a replication group to create.

    Unset fields stay ``None`` until ``with_defaults`` is applied on the
    create path.
    """

    replication_group_id: Optional[str] = None
    cache_node_type: Optional[str] = None
    engine_version: Optional[str] = None
    description: Optional[str] = None
    num_cache_clusters: Optional[int] = None
    snapshot_retention_limit: Optional[int] = None

    @classmethod
    def from_strategy(cls, blob: Dict[str, Any]) -> "ClusterConfig":
        """Build from a strategy blob keyed by ElastiCache API field names.

        Unknown keys are ignored. Text fields must be strings and counts must
        be whole numbers (or strings holding one).

        Raises:
            InvalidStrategyConfigError: If a known field has the wrong type
        """
        kwargs = {attr: blob[key] for key, attr in STRATEGY_FIELDS.items() if blob.get(key) is not None}
        for key, attr in STRATEGY_FIELDS.items():
            if attr not in kwargs:
                continue
            value = kwargs[attr]
            if attr in COUNT_FIELDS:
                if isinstance(value, bool) or not isinstance(value, (int, str)):
                    raise InvalidStrategyConfigError(f"{key} must be an integer, got {value!r}")
                try:
                    kwargs[attr] = int(value)
                except ValueError as e:
                    raise InvalidStrategyConfigError(f"{key} must be an integer, got {value!r}", e) from e
            elif not isinstance(value, str):
                raise InvalidStrategyConfigError(f"{key} must be a string, got {value!r}")
        return cls(**kwargs)

    def with_replication_group_id(self, default_id: str) -> "ClusterConfig":
        """Default the replication group id when the strategy omits it."""
        if self.replication_group_id:
            return self
        return replace(self, replication_group_id=default_id)

    def with_defaults(self) -> "ClusterConfig":
        """Fill every unset field with its fixed default."""
        return replace(
            self,
            cache_node_type=self.cache_node_type or DEFAULT_CACHE_NODE_TYPE,
            engine_version=self.engine_version or DEFAULT_ENGINE_VERSION,
            description=self.description or DEFAULT_DESCRIPTION,
            num_cache_clusters=(
                self.num_cache_clusters if self.num_cache_clusters is not None else DEFAULT_NUM_CACHE_CLUSTERS
            ),
            snapshot_retention_limit=(
                self.snapshot_retention_limit
                if self.snapshot_retention_limit is not None
                else DEFAULT_SNAPSHOT_RETENTION
            ),
        )

    def to_create_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``create_replication_group``.

        Automatic failover is always on and the engine is fixed.
        """
        return {
            "ReplicationGroupId": self.replication_group_id,
            "ReplicationGroupDescription": self.description,
            "AutomaticFailoverEnabled": True,
            "Engine": CACHE_ENGINE,
            "CacheNodeType": self.cache_node_type,
            "EngineVersion": self.engine_version,
            "NumCacheClusters": self.num_cache_clusters,
            "SnapshotRetentionLimit": self.snapshot_retention_limit,
        }
