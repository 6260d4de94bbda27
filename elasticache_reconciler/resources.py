"""Declarative resources owned by the reconciler and their status helpers."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

KIND_REDIS = "Redis"
KIND_REDIS_SNAPSHOT = "RedisSnapshot"


class Phase(str, Enum):
    """Coarse status of a resource, readable by anything watching it."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETE = "Complete"
    FAILED = "Failed"


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class ObjectMeta:
    """Identity and lifecycle metadata of a stored object."""

    name: str
    namespace: str = "default"
    creation_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    deletion_timestamp: Optional[datetime] = None
    finalizers: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ObjectMeta":
        meta = cls(name=data["name"], namespace=data.get("namespace", "default"))
        created = _parse_time(data.get("creationTimestamp"))
        if created:
            meta.creation_timestamp = created
        meta.deletion_timestamp = _parse_time(data.get("deletionTimestamp"))
        meta.finalizers = list(data.get("finalizers", []))
        return meta

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "namespace": self.namespace,
            "creationTimestamp": _format_time(self.creation_timestamp),
            "finalizers": list(self.finalizers),
        }
        if self.deletion_timestamp:
            data["deletionTimestamp"] = _format_time(self.deletion_timestamp)
        return data


@dataclass
class RedisDeploymentDetails:
    """Connection details of a provisioned cluster."""

    uri: str
    port: int

    def to_dict(self) -> Dict[str, Any]:
        return {"uri": self.uri, "port": self.port}


@dataclass
class RedisStatus:
    strategy: str = ""
    phase: Phase = Phase.PENDING
    message: str = ""
    endpoint: Optional[RedisDeploymentDetails] = None


@dataclass
class Redis:
    """Desired state of one cache cluster."""

    meta: ObjectMeta
    tier: str
    region: Optional[str] = None
    status: RedisStatus = field(default_factory=RedisStatus)

    kind = KIND_REDIS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Redis":
        spec = data.get("spec", {})
        status = data.get("status", {})
        endpoint = status.get("endpoint")
        return cls(
            meta=ObjectMeta.from_dict(data["metadata"]),
            tier=spec.get("tier", ""),
            region=spec.get("region"),
            status=RedisStatus(
                strategy=status.get("strategy", ""),
                phase=Phase(status.get("phase", Phase.PENDING.value)),
                message=status.get("message", ""),
                endpoint=RedisDeploymentDetails(endpoint["uri"], int(endpoint["port"])) if endpoint else None,
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        spec = {"tier": self.tier}
        if self.region:
            spec["region"] = self.region
        status = {
            "strategy": self.status.strategy,
            "phase": self.status.phase.value,
            "message": self.status.message,
        }
        if self.status.endpoint:
            status["endpoint"] = self.status.endpoint.to_dict()
        return {"kind": self.kind, "metadata": self.meta.to_dict(), "spec": spec, "status": status}


@dataclass
class RedisSnapshotStatus:
    phase: Phase = Phase.PENDING
    message: str = ""


@dataclass
class RedisSnapshot:
    """Request for a point-in-time snapshot of a Redis cluster."""

    meta: ObjectMeta
    resource_name: str
    status: RedisSnapshotStatus = field(default_factory=RedisSnapshotStatus)

    kind = KIND_REDIS_SNAPSHOT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RedisSnapshot":
        status = data.get("status", {})
        return cls(
            meta=ObjectMeta.from_dict(data["metadata"]),
            resource_name=data.get("spec", {}).get("resourceName", ""),
            status=RedisSnapshotStatus(
                phase=Phase(status.get("phase", Phase.PENDING.value)),
                message=status.get("message", ""),
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "metadata": self.meta.to_dict(),
            "spec": {"resourceName": self.resource_name},
            "status": {"phase": self.status.phase.value, "message": self.status.message},
        }


RESOURCE_KINDS = {
    KIND_REDIS: Redis,
    KIND_REDIS_SNAPSHOT: RedisSnapshot,
}


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a reconciliation pass, read by the scheduler."""

    requeue_after: Optional[float] = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None


def add_finalizer(meta: ObjectMeta, finalizer: str) -> bool:
    """Add ``finalizer`` to the object. Returns True if it was missing."""
    if finalizer in meta.finalizers:
        return False
    meta.finalizers.append(finalizer)
    return True


def remove_finalizer(meta: ObjectMeta, finalizer: str) -> bool:
    """Remove ``finalizer`` from the object. Returns True if it was present."""
    if finalizer not in meta.finalizers:
        return False
    meta.finalizers.remove(finalizer)
    return True


def update_snapshot_phase(store, snapshot: RedisSnapshot, phase: Phase, message: str) -> None:
    """Persist a new phase and message on a snapshot request.

    Args:
        store: Object store holding the request
        snapshot: Snapshot request to update
        phase: New phase
        message: Human-readable status message

    Raises:
        PersistenceError: If the store rejects the update
    """
    logger.info(f"Snapshot {snapshot.meta.namespace}/{snapshot.meta.name}: {phase.value} ({message})")
    snapshot.status.phase = phase
    snapshot.status.message = message
    store.update(snapshot)
