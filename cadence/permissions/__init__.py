"""Human approval of protected operations."""

from cadence.permissions.broker import PermissionBroker, canonical_args, split_endpoint

__all__ = ["PermissionBroker", "canonical_args", "split_endpoint"]
