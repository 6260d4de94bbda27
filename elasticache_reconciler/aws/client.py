"""AWS ElastiCache client for managing replication groups and snapshots."""

import logging
import time
from functools import wraps
from typing import Callable, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, ParamValidationError

from elasticache_reconciler.aws.exceptions import (
    AWSAPIError,
    AWSConnectionError,
    AWSCredentialsError,
    AWSInvalidParameterError,
    AWSPermissionError,
)
from elasticache_reconciler.aws.models import (
    AWSCredentials,
    ClusterConfig,
    ReplicationGroup,
    Snapshot,
)
from elasticache_reconciler.polling import poll_immediate

logger = logging.getLogger(__name__)

REPLICATION_GROUP_NOT_FOUND = "ReplicationGroupNotFoundFault"
SNAPSHOT_NOT_FOUND = "SnapshotNotFoundFault"

THROTTLING_CODES = ["Throttling", "ThrottlingException", "RequestLimitExceeded"]
PERMISSION_CODES = ["AccessDenied", "AccessDeniedException", "UnauthorizedOperation"]
INVALID_PARAMETER_CODES = ["InvalidParameterValue", "InvalidParameterCombination"]


def handle_aws_errors(func: Callable) -> Callable:
    """Decorator to handle AWS API errors with retry logic.

    Throttled calls are retried with exponential backoff; every other
    botocore error is converted into a ``ReconcilerError`` subclass.

    Args:
        func: Function to wrap

    Returns:
        Wrapped function with error handling
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        max_retries = 3
        retry_delay = 1  # seconds
        operation = func.__name__.lstrip("_")

        for attempt in range(max_retries):
            try:
                return func(*args, **kwargs)
            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                error_message = e.response.get("Error", {}).get("Message", str(e))

                if error_code in THROTTLING_CODES and attempt < max_retries - 1:
                    wait_time = retry_delay * (2 ** attempt)
                    logger.warning(
                        f"API throttled, retrying in {wait_time}s (attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(wait_time)
                    continue

                if error_code in PERMISSION_CODES:
                    raise AWSPermissionError(operation, e) from e

                if error_code in INVALID_PARAMETER_CODES:
                    raise AWSInvalidParameterError(operation, error_message, e) from e

                raise AWSAPIError(operation, error_code, error_message, e) from e

            except NoCredentialsError as e:
                raise AWSCredentialsError(e) from e

            except ParamValidationError as e:
                raise AWSInvalidParameterError(operation, str(e), e) from e

            except BotoCoreError as e:
                region = "unknown"
                if args and hasattr(args[0], "region"):
                    region = args[0].region
                raise AWSConnectionError(region, e) from e

    return wrapper


class ElastiCacheClient:
    """Control-plane client bound to one region and one credential pair.

    Built fresh for every reconciliation and never shared between objects.
    Only observes replication groups and snapshots, or asks AWS to create and
    delete them; it keeps no state of its own beyond the boto3 client.
    """

    def __init__(self, region: str, credentials: AWSCredentials):
        """Initialize ElastiCache client.

        Args:
            region: AWS region name
            credentials: Provider credentials issued for the owning namespace
        """
        self.region = region

        session = boto3.Session(
            aws_access_key_id=credentials.access_key_id,
            aws_secret_access_key=credentials.secret_access_key,
            aws_session_token=credentials.session_token,
            region_name=region,
        )
        self.client = session.client("elasticache")

        logger.debug(f"Initialized ElastiCache client for region={region}")

    @handle_aws_errors
    def describe_replication_groups(self) -> List[ReplicationGroup]:
        """Describe every replication group in the region.

        Returns:
            List of observed replication groups
        """
        replication_groups = []

        paginator = self.client.get_paginator("describe_replication_groups")
        for page in paginator.paginate():
            for rg in page.get("ReplicationGroups", []):
                replication_groups.append(ReplicationGroup.from_api(rg))

        logger.debug(f"Found {len(replication_groups)} replication groups in {self.region}")
        return replication_groups

    def list_replication_groups(
        self, interval: float = 5, timeout: float = 300, deadline: Optional[float] = None
    ) -> List[ReplicationGroup]:
        """Describe every replication group, polling until the API answers.

        Freshly issued credentials can take a while to be accepted by AWS, so
        any error is treated as "not ready yet" until ``timeout`` expires.

        Args:
            interval: Seconds between attempts
            timeout: Seconds before giving up
            deadline: Optional ``time.monotonic()`` value ending the poll early

        Returns:
            List of observed replication groups

        Raises:
            PollTimeoutError: If no attempt succeeded within ``timeout``
        """
        return poll_immediate(
            self.describe_replication_groups,
            interval=interval,
            timeout=timeout,
            operation="describe_replication_groups",
            deadline=deadline,
        )

    @handle_aws_errors
    def _describe_replication_group(self, replication_group_id: str) -> ReplicationGroup:
        response = self.client.describe_replication_groups(ReplicationGroupId=replication_group_id)
        return ReplicationGroup.from_api(response["ReplicationGroups"][0])

    def describe_replication_group(self, replication_group_id: str) -> Optional[ReplicationGroup]:
        """Describe a single replication group.

        Args:
            replication_group_id: Replication group id

        Returns:
            The replication group, or None if it does not exist
        """
        try:
            return self._describe_replication_group(replication_group_id)
        except AWSAPIError as e:
            if e.error_code == REPLICATION_GROUP_NOT_FOUND:
                return None
            raise

    @handle_aws_errors
    def create_replication_group(self, config: ClusterConfig) -> None:
        """Request creation of a replication group.

        Returns as soon as AWS accepts the request; the group is provisioned
        asynchronously.

        Args:
            config: Cluster config with every field set
        """
        logger.info(f"Creating replication group {config.replication_group_id} in {self.region}")
        self.client.create_replication_group(**config.to_create_kwargs())

    @handle_aws_errors
    def _delete_replication_group(self, replication_group_id: str) -> None:
        self.client.delete_replication_group(
            ReplicationGroupId=replication_group_id,
            RetainPrimaryCluster=False,
        )

    def delete_replication_group(self, replication_group_id: str) -> bool:
        """Request deletion of a replication group, primary cluster included.

        Args:
            replication_group_id: Replication group id

        Returns:
            True if deletion was requested, False if the group was already gone
        """
        logger.info(f"Deleting replication group {replication_group_id} in {self.region}")
        try:
            self._delete_replication_group(replication_group_id)
        except AWSAPIError as e:
            if e.error_code == REPLICATION_GROUP_NOT_FOUND:
                logger.info(f"Replication group {replication_group_id} already deleted")
                return False
            raise
        return True

    @handle_aws_errors
    def _describe_snapshots(self, snapshot_name: str) -> List[Snapshot]:
        snapshots = []
        paginator = self.client.get_paginator("describe_snapshots")
        for page in paginator.paginate(SnapshotName=snapshot_name):
            for snapshot in page.get("Snapshots", []):
                snapshots.append(Snapshot.from_api(snapshot))
        return snapshots

    def find_snapshot(self, snapshot_name: str) -> Optional[Snapshot]:
        """Look up a snapshot by exact name.

        Args:
            snapshot_name: Snapshot name

        Returns:
            The snapshot, or None if it does not exist
        """
        try:
            snapshots = self._describe_snapshots(snapshot_name)
        except AWSAPIError as e:
            if e.error_code == SNAPSHOT_NOT_FOUND:
                return None
            raise

        for snapshot in snapshots:
            if snapshot.name == snapshot_name:
                return snapshot
        return None

    @handle_aws_errors
    def create_snapshot(self, cache_cluster_id: str, snapshot_name: str) -> None:
        """Request a snapshot of a single cache cluster.

        Args:
            cache_cluster_id: Node to snapshot, normally the primary
            snapshot_name: Name of the snapshot to create
        """
        logger.info(f"Creating snapshot {snapshot_name} of {cache_cluster_id} in {self.region}")
        self.client.create_snapshot(CacheClusterId=cache_cluster_id, SnapshotName=snapshot_name)
