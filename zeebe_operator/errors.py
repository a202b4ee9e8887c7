"""
Domain errors.

Everything below ``RetryableError`` is handed to kopf as a TemporaryError and
retried with backoff; nothing forces a write to get past one.
"""


class OperatorError(Exception):
    """Base exception for the operator."""


class RetryableError(OperatorError):
    """A failure that a later reconcile of the same key may resolve."""


class CloudClientError(RetryableError):
    """Raised when a call to the Camunda Cloud console API fails."""


class CloudTimeoutError(CloudClientError):
    """Raised when a console API call exceeds the configured timeout."""


class ClusterNotFoundError(CloudClientError):
    """Raised when no remote cluster matches a lookup by name."""


class InvalidClusterParametersError(CloudClientError):
    """Raised when plan/channel/generation/region names cannot be resolved to ids."""


class RecordStoreError(RetryableError):
    """Raised when reading or writing a ZeebeCluster record fails."""


class ConflictError(RecordStoreError):
    """Optimistic-concurrency rejection (stale resourceVersion)."""


class RecordGoneError(RecordStoreError):
    """The record disappeared between read and write."""
