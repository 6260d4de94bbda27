"""Stable identifiers for AWS resources created on behalf of stored objects."""

import re

from elasticache_reconciler.resources import ObjectMeta

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def sanitize_identifier(value: str) -> str:
    """Reduce ``value`` to an ElastiCache-safe identifier.

    Lowercase letters, digits and single hyphens only, starting with a letter
    and never ending with a hyphen.
    """
    value = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    if not value or not value[0].isalpha():
        value = f"r-{value}".rstrip("-")
    return value


def build_timestamped_name_from_object_creation(meta: ObjectMeta, length: int) -> str:
    """Build a name from the object's identity and creation time.

    The creation timestamp never changes for a stored object, so every
    reconciliation of the same object computes the same name.

    Args:
        meta: Metadata of the object the name belongs to
        length: Maximum identifier length

    Returns:
        Identifier of at most ``length`` characters

    Raises:
        ValueError: If ``length`` leaves no room for the base name
    """
    timestamp = meta.creation_timestamp.strftime(TIMESTAMP_FORMAT)
    if length < len(timestamp) + 2:
        raise ValueError(f"identifier length {length} is too short for a timestamped name")
    base = sanitize_identifier(f"{meta.namespace}-{meta.name}")
    base = base[: length - len(timestamp) - 1].rstrip("-")
    return f"{base}-{timestamp}"
