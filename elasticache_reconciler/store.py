"""Object stores holding the declarative resources."""

import copy
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Tuple, Union

from elasticache_reconciler.aws.exceptions import ObjectNotFoundError, ObjectReadError, PersistenceError
from elasticache_reconciler.resources import RESOURCE_KINDS, Redis, RedisSnapshot

logger = logging.getLogger(__name__)

Resource = Union[Redis, RedisSnapshot]


class ObjectStore(ABC):
    """Get/update access to stored resources.

    Updates are plain read-modify-write: the last write wins.
    """

    @abstractmethod
    def get(self, kind: str, namespace: str, name: str) -> Resource:
        """Fetch a resource.

        Raises:
            ObjectNotFoundError: If no such object exists
            ObjectReadError: If the stored object cannot be decoded
        """
        pass

    @abstractmethod
    def update(self, obj: Resource) -> None:
        """Persist a resource, metadata and status included.

        Raises:
            PersistenceError: If the write fails
        """
        pass


class InMemoryObjectStore(ObjectStore):
    """Store keeping deep copies so callers never share state with it.

    An object whose deletion timestamp is set is dropped on the update that
    removes its last finalizer.
    """

    def __init__(self):
        self._objects: Dict[Tuple[str, str, str], Resource] = {}

    def add(self, obj: Resource) -> None:
        self._objects[(obj.kind, obj.meta.namespace, obj.meta.name)] = copy.deepcopy(obj)

    def get(self, kind: str, namespace: str, name: str) -> Resource:
        try:
            return copy.deepcopy(self._objects[(kind, namespace, name)])
        except KeyError:
            raise ObjectNotFoundError(kind, namespace, name)

    def update(self, obj: Resource) -> None:
        key = (obj.kind, obj.meta.namespace, obj.meta.name)
        if key not in self._objects:
            raise PersistenceError(f"cannot update {obj.kind} {obj.meta.namespace}/{obj.meta.name}: not found")
        if obj.meta.deletion_timestamp and not obj.meta.finalizers:
            logger.info(f"Removing {obj.kind} {obj.meta.namespace}/{obj.meta.name}, no finalizers left")
            del self._objects[key]
            return
        self._objects[key] = copy.deepcopy(obj)

    def __contains__(self, key: Tuple[str, str, str]) -> bool:
        return key in self._objects


class FileObjectStore(ObjectStore):
    """Store backed by a directory of JSON documents.

    Layout: ``<root>/<namespace>/<kind>/<name>.json``.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _path(self, kind: str, namespace: str, name: str) -> Path:
        return self.root / namespace / kind.lower() / f"{name}.json"

    def get(self, kind: str, namespace: str, name: str) -> Resource:
        path = self._path(kind, namespace, name)
        if not path.is_file():
            raise ObjectNotFoundError(kind, namespace, name)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            data.setdefault("metadata", {}).setdefault("name", name)
            data["metadata"].setdefault("namespace", namespace)
            return RESOURCE_KINDS[kind].from_dict(data)
        except OSError as e:
            raise ObjectReadError(kind, namespace, name, str(e), e) from e
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ObjectReadError(kind, namespace, name, f"malformed document ({e})", e) from e

    def update(self, obj: Resource) -> None:
        path = self._path(obj.kind, obj.meta.namespace, obj.meta.name)
        try:
            if obj.meta.deletion_timestamp and not obj.meta.finalizers:
                logger.info(f"Removing {path}, no finalizers left")
                path.unlink(missing_ok=True)
                return
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(obj.to_dict(), indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"failed to write {path}: {e}", e)
