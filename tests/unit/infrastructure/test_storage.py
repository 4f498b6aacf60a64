"""Unit tests for the object storage client."""

import pytest
from pytest_mock import MockerFixture

from src.core.config import StorageConfig
from src.infrastructure.storage import Storage, create_storage


@pytest.mark.unit
class TestCreateStorage:
    """Test storage client construction."""

    def test_builds_s3_client(self, mocker: MockerFixture) -> None:
        client = mocker.patch("src.infrastructure.storage.boto3.client")
        config = StorageConfig(
            region_name="eu-central-1",
            bucket="civitas-files",
            endpoint_url="http://localhost:9000",
        )

        storage = create_storage(config)

        client.assert_called_once_with(
            "s3", region_name="eu-central-1", endpoint_url="http://localhost:9000"
        )
        assert storage == Storage(client=client.return_value, bucket="civitas-files")

    def test_storage_is_immutable(self, mocker: MockerFixture) -> None:
        storage = Storage(client=mocker.MagicMock(), bucket="a")

        with pytest.raises(AttributeError):
            storage.bucket = "b"  # type: ignore[misc]
