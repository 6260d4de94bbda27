"""Unit tests for ElastiCacheClient."""

import pytest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError, ParamValidationError

from elasticache_reconciler.aws.client import ElastiCacheClient
from elasticache_reconciler.aws.exceptions import (
    AWSAPIError,
    AWSConnectionError,
    AWSCredentialsError,
    AWSInvalidParameterError,
    AWSPermissionError,
    PollTimeoutError,
)
from elasticache_reconciler.aws.models import (
    AWSCredentials,
    ClusterConfig,
    Endpoint,
    ReplicationGroupStatus,
    SnapshotStatus,
)

CREDENTIALS = AWSCredentials(access_key_id="AKIATEST", secret_access_key="secret", session_token="token")


def client_error(code, message="error", operation="DescribeReplicationGroups"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def rg_data(group_id="foo", status="available"):
    return {
        "ReplicationGroupId": group_id,
        "Status": status,
        "NodeGroups": [{
            "NodeGroupId": "0001",
            "PrimaryEndpoint": {"Address": "10.0.0.5", "Port": 6379},
            "NodeGroupMembers": [
                {"CacheClusterId": f"{group_id}-001", "CurrentRole": "primary"},
                {"CacheClusterId": f"{group_id}-002", "CurrentRole": "replica"},
            ],
        }],
    }


@pytest.fixture
def mock_client():
    with patch('elasticache_reconciler.aws.client.boto3.Session') as mock_session:
        client = MagicMock()
        mock_session.return_value.client.return_value = client
        client.session_class = mock_session
        yield client


@pytest.fixture
def ec_client(mock_client):
    return ElastiCacheClient(region="eu-west-1", credentials=CREDENTIALS)


class TestInit:
    """Test client construction."""

    def test_session_bound_to_region_and_credentials(self, mock_client, ec_client):
        mock_client.session_class.assert_called_once_with(
            aws_access_key_id="AKIATEST",
            aws_secret_access_key="secret",
            aws_session_token="token",
            region_name="eu-west-1",
        )
        mock_client.session_class.return_value.client.assert_called_once_with("elasticache")
        assert ec_client.region == "eu-west-1"


class TestDescribeReplicationGroups:
    """Test describe_replication_groups() and list_replication_groups()."""

    def test_parses_all_pages(self, mock_client, ec_client):
        mock_client.get_paginator.return_value.paginate.return_value = [
            {"ReplicationGroups": [rg_data("foo")]},
            {"ReplicationGroups": [rg_data("bar", "creating")]},
        ]

        groups = ec_client.describe_replication_groups()

        mock_client.get_paginator.assert_called_with("describe_replication_groups")
        assert [g.id for g in groups] == ["foo", "bar"]
        assert groups[0].status is ReplicationGroupStatus.AVAILABLE
        assert groups[0].primary_endpoint == Endpoint(address="10.0.0.5", port=6379)
        assert groups[0].primary_node().cache_cluster_id == "foo-001"
        assert groups[1].status is ReplicationGroupStatus.CREATING

    def test_unknown_status_is_not_available(self, mock_client, ec_client):
        mock_client.get_paginator.return_value.paginate.return_value = [
            {"ReplicationGroups": [rg_data("foo", "rebalancing")]},
        ]

        group = ec_client.describe_replication_groups()[0]

        assert group.status is ReplicationGroupStatus.UNKNOWN
        assert not group.is_available

    @patch('elasticache_reconciler.polling.time.sleep')
    def test_list_polls_through_unregistered_credentials(self, mock_sleep, mock_client, ec_client):
        mock_client.get_paginator.return_value.paginate.side_effect = [
            client_error("InvalidClientTokenId", "The security token included in the request is invalid"),
            [{"ReplicationGroups": [rg_data("foo")]}],
        ]

        groups = ec_client.list_replication_groups(interval=5, timeout=300)

        assert [g.id for g in groups] == ["foo"]
        mock_sleep.assert_called_once_with(5)

    @patch('elasticache_reconciler.polling.time.sleep')
    @patch('elasticache_reconciler.polling.time.monotonic', return_value=1000.0)
    def test_list_stops_at_caller_deadline(self, mock_monotonic, mock_sleep, mock_client, ec_client):
        mock_client.get_paginator.return_value.paginate.side_effect = client_error("InvalidClientTokenId")

        with pytest.raises(PollTimeoutError) as exc_info:
            ec_client.list_replication_groups(interval=5, timeout=300, deadline=1000.0)

        assert exc_info.value.timeout == 0
        mock_sleep.assert_not_called()

    def test_list_gives_up(self, mock_client, ec_client):
        mock_client.get_paginator.return_value.paginate.side_effect = client_error("InvalidClientTokenId")

        with pytest.raises(PollTimeoutError) as exc_info:
            ec_client.list_replication_groups(interval=5, timeout=0)

        assert isinstance(exc_info.value.original_error, AWSAPIError)

    def test_describe_single_group(self, mock_client, ec_client):
        mock_client.describe_replication_groups.return_value = {"ReplicationGroups": [rg_data("foo", "modifying")]}

        group = ec_client.describe_replication_group("foo")

        mock_client.describe_replication_groups.assert_called_once_with(ReplicationGroupId="foo")
        assert group.status is ReplicationGroupStatus.MODIFYING

    def test_describe_single_group_not_found(self, mock_client, ec_client):
        mock_client.describe_replication_groups.side_effect = client_error("ReplicationGroupNotFoundFault")

        assert ec_client.describe_replication_group("foo") is None


class TestCreateAndDeleteReplicationGroup:
    """Test create_replication_group() and delete_replication_group()."""

    def test_create_fixes_engine_and_failover(self, mock_client, ec_client):
        config = ClusterConfig(replication_group_id="foo").with_defaults()

        ec_client.create_replication_group(config)

        mock_client.create_replication_group.assert_called_once_with(
            ReplicationGroupId="foo",
            ReplicationGroupDescription="A Redis replication group",
            AutomaticFailoverEnabled=True,
            Engine="redis",
            CacheNodeType="cache.t2.micro",
            EngineVersion="3.2.10",
            NumCacheClusters=2,
            SnapshotRetentionLimit=30,
        )

    def test_create_already_exists_is_an_error(self, mock_client, ec_client):
        mock_client.create_replication_group.side_effect = client_error(
            "ReplicationGroupAlreadyExistsFault", operation="CreateReplicationGroup"
        )

        with pytest.raises(AWSAPIError) as exc_info:
            ec_client.create_replication_group(ClusterConfig(replication_group_id="foo").with_defaults())

        assert exc_info.value.error_code == "ReplicationGroupAlreadyExistsFault"

    def test_delete_drops_primary_cluster(self, mock_client, ec_client):
        assert ec_client.delete_replication_group("foo") is True

        mock_client.delete_replication_group.assert_called_once_with(
            ReplicationGroupId="foo",
            RetainPrimaryCluster=False,
        )

    def test_delete_not_found_is_success(self, mock_client, ec_client):
        mock_client.delete_replication_group.side_effect = client_error(
            "ReplicationGroupNotFoundFault", "Replication group foo not found", "DeleteReplicationGroup"
        )

        assert ec_client.delete_replication_group("foo") is False

    def test_delete_classifies_by_code_not_message(self, mock_client, ec_client):
        mock_client.delete_replication_group.side_effect = client_error(
            "InvalidReplicationGroupState", "Replication group foo not found in a deletable state"
        )

        with pytest.raises(AWSAPIError) as exc_info:
            ec_client.delete_replication_group("foo")

        assert exc_info.value.error_code == "InvalidReplicationGroupState"


class TestSnapshots:
    """Test find_snapshot() and create_snapshot()."""

    def test_find_by_exact_name(self, mock_client, ec_client):
        mock_client.get_paginator.return_value.paginate.return_value = [
            {"Snapshots": [
                {"SnapshotName": "snap-1", "SnapshotStatus": "creating"},
                {"SnapshotName": "snap-10", "SnapshotStatus": "available"},
            ]},
        ]

        snapshot = ec_client.find_snapshot("snap-1")

        mock_client.get_paginator.assert_called_with("describe_snapshots")
        mock_client.get_paginator.return_value.paginate.assert_called_with(SnapshotName="snap-1")
        assert snapshot.name == "snap-1"
        assert snapshot.status is SnapshotStatus.CREATING

    def test_find_missing_snapshot(self, mock_client, ec_client):
        mock_client.get_paginator.return_value.paginate.return_value = [{"Snapshots": []}]

        assert ec_client.find_snapshot("snap-1") is None

    def test_find_snapshot_not_found_fault(self, mock_client, ec_client):
        mock_client.get_paginator.return_value.paginate.side_effect = client_error("SnapshotNotFoundFault")

        assert ec_client.find_snapshot("snap-1") is None

    def test_create_snapshot(self, mock_client, ec_client):
        ec_client.create_snapshot("foo-001", "snap-1")

        mock_client.create_snapshot.assert_called_once_with(CacheClusterId="foo-001", SnapshotName="snap-1")


class TestHandleAwsErrors:
    """Test error classification and throttling retry."""

    @patch('elasticache_reconciler.aws.client.time.sleep')
    def test_throttling_is_retried(self, mock_sleep, mock_client, ec_client):
        mock_client.create_snapshot.side_effect = [client_error("Throttling"), None]

        ec_client.create_snapshot("foo-001", "snap-1")

        assert mock_client.create_snapshot.call_count == 2
        mock_sleep.assert_called_once_with(1)

    @patch('elasticache_reconciler.aws.client.time.sleep')
    def test_throttling_gives_up(self, mock_sleep, mock_client, ec_client):
        mock_client.create_snapshot.side_effect = client_error("Throttling")

        with pytest.raises(AWSAPIError) as exc_info:
            ec_client.create_snapshot("foo-001", "snap-1")

        assert exc_info.value.error_code == "Throttling"
        assert mock_client.create_snapshot.call_count == 3

    def test_access_denied(self, mock_client, ec_client):
        mock_client.create_snapshot.side_effect = client_error("AccessDenied")

        with pytest.raises(AWSPermissionError) as exc_info:
            ec_client.create_snapshot("foo-001", "snap-1")

        assert "create_snapshot" in str(exc_info.value)

    def test_invalid_parameter(self, mock_client, ec_client):
        mock_client.create_replication_group.side_effect = client_error(
            "InvalidParameterValue", "Invalid cache node type"
        )

        with pytest.raises(AWSInvalidParameterError):
            ec_client.create_replication_group(ClusterConfig(replication_group_id="foo").with_defaults())

    def test_request_validation_is_invalid_parameter(self, mock_client, ec_client):
        mock_client.create_replication_group.side_effect = ParamValidationError(
            report="Invalid type for parameter CacheNodeType, value: 5"
        )

        with pytest.raises(AWSInvalidParameterError) as exc_info:
            ec_client.create_replication_group(ClusterConfig(replication_group_id="foo").with_defaults())

        assert "CacheNodeType" in str(exc_info.value)
        assert "unable to reach" not in str(exc_info.value)

    def test_missing_credentials(self, mock_client, ec_client):
        mock_client.create_snapshot.side_effect = NoCredentialsError()

        with pytest.raises(AWSCredentialsError):
            ec_client.create_snapshot("foo-001", "snap-1")

    def test_connection_error_names_region(self, mock_client, ec_client):
        mock_client.create_snapshot.side_effect = EndpointConnectionError(
            endpoint_url="https://elasticache.eu-west-1.amazonaws.com"
        )

        with pytest.raises(AWSConnectionError) as exc_info:
            ec_client.create_snapshot("foo-001", "snap-1")

        assert "eu-west-1" in str(exc_info.value)
