"""Reconciler configuration loaded from the environment."""

import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from elasticache_reconciler.aws.exceptions import ConfigurationError

ENV_PREFIX = "ELASTICACHE_RECONCILER_"

DEFAULT_REGION = "eu-west-1"
DEFAULT_POLL_INTERVAL_SECONDS = 5
DEFAULT_POLL_TIMEOUT_SECONDS = 300
DEFAULT_SNAPSHOT_RECHECK_SECONDS = 60
DEFAULT_CLUSTER_RECHECK_SECONDS = 60

AWS_DEPLOYMENT_STRATEGY = "aws"
REDIS_RESOURCE_TYPE = "redis"
DEFAULT_FINALIZER = "finalizers.cloud-resources-operator.integreatly.org"
DEFAULT_IDENTIFIER_LENGTH = 40
# timestamp suffix, separator and one character of the base name
MIN_IDENTIFIER_LENGTH = 16

VALID_REGION_PATTERN = r"^[a-z]{2}(-[a-z]+)+-\d$"


@dataclass(frozen=True)
class ReconcilerConfig:
    """Settings shared by the cluster provisioner and the snapshot reconciler.

    Passed explicitly to each component so tests can use any region or poll
    bound without touching process-wide state.
    """

    default_region: str = DEFAULT_REGION
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    poll_timeout_seconds: float = DEFAULT_POLL_TIMEOUT_SECONDS
    snapshot_recheck_seconds: int = DEFAULT_SNAPSHOT_RECHECK_SECONDS
    cluster_recheck_seconds: int = DEFAULT_CLUSTER_RECHECK_SECONDS
    deployment_strategy: str = AWS_DEPLOYMENT_STRATEGY
    finalizer: str = DEFAULT_FINALIZER
    identifier_length: int = DEFAULT_IDENTIFIER_LENGTH

    def __post_init__(self) -> None:
        if not re.match(VALID_REGION_PATTERN, self.default_region):
            raise ConfigurationError(f"Invalid default region '{self.default_region}'")
        if self.poll_interval_seconds <= 0:
            raise ConfigurationError("Poll interval must be positive")
        if self.poll_timeout_seconds < self.poll_interval_seconds:
            raise ConfigurationError("Poll timeout must not be shorter than the poll interval")
        if self.snapshot_recheck_seconds <= 0:
            raise ConfigurationError("Snapshot re-check delay must be positive")
        if self.cluster_recheck_seconds <= 0:
            raise ConfigurationError("Cluster re-check delay must be positive")
        if self.identifier_length < MIN_IDENTIFIER_LENGTH:
            raise ConfigurationError(f"Identifier length must be at least {MIN_IDENTIFIER_LENGTH}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ReconcilerConfig":
        """Load configuration from ``ELASTICACHE_RECONCILER_*`` variables.

        Args:
            environ: Environment mapping (default: ``os.environ``)

        Returns:
            Validated configuration

        Raises:
            ConfigurationError: If a value is malformed or out of bounds
        """
        env = os.environ if environ is None else environ

        def number(key: str, default: float) -> float:
            raw = env.get(ENV_PREFIX + key)
            if raw is None or raw == "":
                return default
            try:
                return float(raw)
            except ValueError:
                raise ConfigurationError(f"{ENV_PREFIX + key} must be a number, got '{raw}'")

        return cls(
            default_region=env.get(ENV_PREFIX + "DEFAULT_REGION") or DEFAULT_REGION,
            poll_interval_seconds=number("POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS),
            poll_timeout_seconds=number("POLL_TIMEOUT_SECONDS", DEFAULT_POLL_TIMEOUT_SECONDS),
            snapshot_recheck_seconds=int(number("SNAPSHOT_RECHECK_SECONDS", DEFAULT_SNAPSHOT_RECHECK_SECONDS)),
            cluster_recheck_seconds=int(number("CLUSTER_RECHECK_SECONDS", DEFAULT_CLUSTER_RECHECK_SECONDS)),
        )
