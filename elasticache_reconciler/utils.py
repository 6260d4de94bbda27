"""Utility functions for the ElastiCache reconciler."""

import logging


def format_endpoint(address: str, port: int) -> str:
    """Format an endpoint as ``address:port``.

    Args:
        address: Host name or IP address
        port: TCP port

    Returns:
        Formatted endpoint
    """
    return f"{address}:{port}"


def setup_logger(verbose: bool = False) -> logging.Logger:
    """Setup logger with appropriate level.

    Args:
        verbose: Enable DEBUG level logging

    Returns:
        Configured logger
    """
    logger = logging.getLogger("elasticache_reconciler")

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # Create console handler (stderr)
    handler = logging.StreamHandler()
    handler.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)

    return logger
