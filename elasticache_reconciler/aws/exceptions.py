"""Custom exceptions for the ElastiCache reconciler."""

from typing import Optional


class ReconcilerError(Exception):
    """Base exception for reconciliation errors."""

    def __init__(
        self,
        message: str,
        suggestion: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        """Initialize reconciler error.

        Args:
            message: Error message
            suggestion: Suggested solution
            original_error: Original exception for debugging
        """
        self.message = message
        self.suggestion = suggestion
        self.original_error = original_error
        super().__init__(self.message)

    def __str__(self) -> str:
        """Format error message."""
        msg = self.message
        if self.suggestion:
            msg += f"\nSuggestion: {self.suggestion}"
        return msg


class AWSPermissionError(ReconcilerError):
    """Exception raised when AWS permissions are insufficient."""

    def __init__(
        self,
        operation: str,
        original_error: Optional[Exception] = None
    ):
        """Initialize permission error.

        Args:
            operation: AWS operation that failed
            original_error: Original exception
        """
        message = f"Permission denied: provider credentials are not allowed to call {operation}"
        suggestion = "Check the IAM policy grants elasticache:* to the provider user"
        super().__init__(message, suggestion, original_error)


class AWSInvalidParameterError(ReconcilerError):
    """Exception raised when AWS API parameters are invalid."""

    def __init__(
        self,
        operation: str,
        error_message: str,
        original_error: Optional[Exception] = None
    ):
        """Initialize invalid parameter error.

        Args:
            operation: AWS operation that failed
            error_message: AWS error message describing the parameter
            original_error: Original exception
        """
        message = f"Invalid parameter for {operation}: {error_message}"
        suggestion = "Check the create strategy for the resource tier"
        super().__init__(message, suggestion, original_error)


class AWSAPIError(ReconcilerError):
    """Exception raised for general AWS API errors.

    The AWS classification code is kept on ``error_code`` so callers can
    tell expected conditions (e.g. a group that is already gone) from real
    failures without parsing the message.
    """

    def __init__(
        self,
        operation: str,
        error_code: str,
        error_message: str,
        original_error: Optional[Exception] = None
    ):
        """Initialize API error.

        Args:
            operation: AWS operation that failed
            error_code: AWS error code
            error_message: AWS error message
            original_error: Original exception
        """
        self.operation = operation
        self.error_code = error_code
        message = f"AWS API error: {operation} failed ({error_code}): {error_message}"
        suggestion = "Check the AWS service status or retry later"
        super().__init__(message, suggestion, original_error)


class AWSCredentialsError(ReconcilerError):
    """Exception raised when AWS credentials are missing or invalid."""

    def __init__(self, original_error: Optional[Exception] = None):
        """Initialize credentials error.

        Args:
            original_error: Original exception
        """
        message = "AWS credentials error: no valid credentials were found"
        suggestion = (
            "Check the credential broker output or the environment variables "
            "(AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY)"
        )
        super().__init__(message, suggestion, original_error)


class AWSConnectionError(ReconcilerError):
    """Exception raised when connection to AWS fails."""

    def __init__(
        self,
        region: str,
        original_error: Optional[Exception] = None
    ):
        """Initialize connection error.

        Args:
            region: AWS region
            original_error: Original exception
        """
        message = f"AWS connection error: unable to reach {region}"
        suggestion = "Check network connectivity and that the region name is correct"
        super().__init__(message, suggestion, original_error)


class PollTimeoutError(ReconcilerError):
    """Exception raised when a bounded poll gives up."""

    def __init__(
        self,
        operation: str,
        timeout: float,
        original_error: Optional[Exception] = None
    ):
        self.operation = operation
        self.timeout = timeout
        message = f"Timed out after {timeout:g}s waiting for {operation}"
        suggestion = "The reconciliation will be retried on the next pass"
        super().__init__(message, suggestion, original_error)


class ConfigurationError(ReconcilerError):
    """Exception raised for invalid reconciler or strategy configuration."""


class StrategyNotFoundError(ConfigurationError):
    """Exception raised when no strategy exists for a resource type and tier."""

    def __init__(self, resource_type: str, tier: str):
        self.resource_type = resource_type
        self.tier = tier
        message = f"No {resource_type} strategy found for tier '{tier}'"
        suggestion = "Add the tier to the strategies file"
        super().__init__(message, suggestion)


class InvalidStrategyConfigError(ConfigurationError):
    """Exception raised when a strategy config blob cannot be decoded."""

    def __init__(self, reason: str, original_error: Optional[Exception] = None):
        message = f"Invalid aws redis cluster configuration: {reason}"
        super().__init__(message, None, original_error)


class UnsupportedStrategyError(ConfigurationError):
    """Exception raised when a resource uses a deployment strategy we do not manage."""

    def __init__(self, strategy: str):
        self.strategy = strategy
        message = f"Unsupported deployment strategy '{strategy}'"
        suggestion = "Only resources provisioned with the aws strategy can be snapshotted"
        super().__init__(message, suggestion)


class CredentialIssueError(ReconcilerError):
    """Exception raised when the credential broker rejects an issuance."""

    def __init__(self, tenant: str, original_error: Optional[Exception] = None):
        self.tenant = tenant
        message = f"Failed to reconcile provider credentials for namespace '{tenant}'"
        super().__init__(message, None, original_error)


class ObjectNotFoundError(ReconcilerError):
    """Exception raised when the object store has no object under a key."""

    def __init__(self, kind: str, namespace: str, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        message = f"{kind} {namespace}/{name} not found"
        super().__init__(message)


class PersistenceError(ReconcilerError):
    """Exception raised when an object update cannot be persisted."""

    def __init__(self, reason: str, original_error: Optional[Exception] = None):
        super().__init__(reason, None, original_error)


class ObjectReadError(ReconcilerError):
    """Exception raised when a stored object exists but cannot be decoded."""

    def __init__(self, kind: str, namespace: str, name: str, reason: str, original_error: Optional[Exception] = None):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        message = f"failed to read {kind} {namespace}/{name}: {reason}"
        suggestion = "Fix or remove the stored object file"
        super().__init__(message, suggestion, original_error)
