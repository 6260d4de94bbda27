"""Strategy resolution and provider credential issuance."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from elasticache_reconciler.aws.exceptions import (
    CredentialIssueError,
    InvalidStrategyConfigError,
    StrategyNotFoundError,
)
from elasticache_reconciler.aws.models import AWSCredentials

logger = logging.getLogger(__name__)


@dataclass
class StrategyConfig:
    """Deployment strategy of one resource type and tier.

    ``region`` is empty when the strategy does not pin one; callers fall
    back to the configured default region.
    """

    region: str = ""
    raw_strategy: Dict[str, Any] = field(default_factory=dict)


class StrategyResolver(ABC):
    """Looks up the deployment strategy for a resource type and tier."""

    @abstractmethod
    def read_strategy(self, resource_type: str, tier: str) -> StrategyConfig:
        """Resolve a strategy.

        Raises:
            StrategyNotFoundError: If the type or tier is unknown
            InvalidStrategyConfigError: If the strategy blob is malformed
        """
        pass


class StaticStrategyResolver(StrategyResolver):
    """Resolver over an in-memory mapping.

    Expected shape::

        {"redis": {"development": {"region": "eu-west-1", "createStrategy": {...}}}}

    ``createStrategy`` may be an object or a JSON-encoded string.
    """

    def __init__(self, strategies: Dict[str, Dict[str, Dict[str, Any]]]):
        self.strategies = strategies

    def read_strategy(self, resource_type: str, tier: str) -> StrategyConfig:
        entry = self.strategies.get(resource_type, {}).get(tier)
        if entry is None:
            raise StrategyNotFoundError(resource_type, tier)

        raw = entry.get("createStrategy", {})
        if isinstance(raw, str):
            try:
                raw = json.loads(raw) if raw.strip() else {}
            except ValueError as e:
                raise InvalidStrategyConfigError(f"createStrategy is not valid JSON: {e}", e)
        if not isinstance(raw, dict):
            raise InvalidStrategyConfigError("createStrategy must be a JSON object")

        logger.debug(f"Resolved {resource_type} strategy for tier {tier}")
        return StrategyConfig(region=entry.get("region", "") or "", raw_strategy=raw)


class FileStrategyResolver(StaticStrategyResolver):
    """Resolver reading the strategy mapping from a JSON file on every lookup."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        super().__init__({})

    def read_strategy(self, resource_type: str, tier: str) -> StrategyConfig:
        try:
            self.strategies = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise InvalidStrategyConfigError(f"cannot read strategies from {self.path}: {e}", e)
        return super().read_strategy(resource_type, tier)


class CredentialBroker(ABC):
    """Issues provider credentials for a namespace."""

    @abstractmethod
    def reconcile_provider_credentials(self, namespace: str) -> AWSCredentials:
        """Return credentials the provider may use for ``namespace``.

        Raises:
            CredentialIssueError: If issuance is rejected
        """
        pass


class StaticCredentialBroker(CredentialBroker):
    """Broker handing out one fixed credential pair."""

    def __init__(self, credentials: AWSCredentials):
        self.credentials = credentials

    def reconcile_provider_credentials(self, namespace: str) -> AWSCredentials:
        return self.credentials


class SessionCredentialBroker(CredentialBroker):
    """Broker deriving credentials from a boto3 session.

    With ``role_arn`` set, a short-lived session is assumed per namespace;
    otherwise the session's own credentials are frozen and returned.
    """

    def __init__(self, profile: Optional[str] = None, role_arn: Optional[str] = None, duration_seconds: int = 3600):
        self.profile = profile
        self.role_arn = role_arn
        self.duration_seconds = duration_seconds

    def reconcile_provider_credentials(self, namespace: str) -> AWSCredentials:
        try:
            session = boto3.Session(profile_name=self.profile)
            if self.role_arn:
                response = session.client("sts").assume_role(
                    RoleArn=self.role_arn,
                    RoleSessionName=f"elasticache-reconciler-{namespace}"[:64],
                    DurationSeconds=self.duration_seconds,
                )
                creds = response["Credentials"]
                logger.info(f"Issued provider credentials for namespace {namespace}")
                return AWSCredentials(
                    access_key_id=creds["AccessKeyId"],
                    secret_access_key=creds["SecretAccessKey"],
                    session_token=creds.get("SessionToken"),
                )

            session_creds = session.get_credentials()
        except (BotoCoreError, ClientError) as e:
            raise CredentialIssueError(namespace, e) from e

        if session_creds is None:
            raise CredentialIssueError(namespace)
        frozen = session_creds.get_frozen_credentials()
        return AWSCredentials(
            access_key_id=frozen.access_key,
            secret_access_key=frozen.secret_key,
            session_token=frozen.token,
        )
