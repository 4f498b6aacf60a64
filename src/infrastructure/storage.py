"""Object storage client.

Handlers reach the client through ``request.app.state.storage``; it is a
plain boto3 S3 client plus the bucket uploads go to.
"""

from dataclasses import dataclass
from typing import Any

import boto3
from loguru import logger

from src.core.config import StorageConfig


@dataclass(frozen=True, slots=True)
class Storage:
    """An S3 client paired with the configured bucket."""

    client: Any
    bucket: str


def create_storage(config: StorageConfig) -> Storage:
    """Build the storage client.

    Credentials are resolved by boto3's usual chain (environment, shared
    config, instance role); nothing is contacted until the first call.

    Args:
        config: Storage settings.

    Returns:
        Storage: The client and bucket.
    """
    client = boto3.client(
        "s3",
        region_name=config.region_name,
        endpoint_url=config.endpoint_url,
    )
    logger.bind(context="Storage").info(
        "Created storage client for bucket {}", config.bucket
    )
    return Storage(client=client, bucket=config.bucket)
