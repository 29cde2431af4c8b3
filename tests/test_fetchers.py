"""Unit tests for the SSM and S3 reference fetchers."""

import io
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from smoker.core.errors import (
    ExternalFetchError,
    ERR_S3_INVALID_URL,
    ERR_S3_READ,
    ERR_SSM_PARAMETER,
)
from smoker.resolution.fetchers import S3DocumentFetcher, SSMParameterFetcher


def client_error(code, operation):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def aws_client_manager():
    """Client manager returning one mock client per service."""
    clients = {"ssm": Mock(), "s3": Mock()}
    manager = Mock()
    manager.get_client.side_effect = lambda service, region=None: clients[service]
    manager.clients = clients
    return manager


class TestSSMParameterFetcher:
    """Test cases for SSMParameterFetcher."""

    @pytest.mark.asyncio
    async def test_fetch_parameter(self, aws_client_manager):
        """Test reading a decrypted parameter."""
        ssm = aws_client_manager.clients["ssm"]
        ssm.get_parameter.return_value = {"Parameter": {"Value": "secret"}}

        fetcher = SSMParameterFetcher(aws_client_manager)

        assert await fetcher.fetch_parameter("/app/secret") == "secret"
        ssm.get_parameter.assert_called_once_with(Name="/app/secret", WithDecryption=True)

    @pytest.mark.asyncio
    async def test_values_cached(self, aws_client_manager):
        """Test that repeated reads hit the cache until cleared."""
        ssm = aws_client_manager.clients["ssm"]
        ssm.get_parameter.return_value = {"Parameter": {"Value": "v"}}
        fetcher = SSMParameterFetcher(aws_client_manager)

        await fetcher.fetch_parameter("/a")
        await fetcher.fetch_parameter("/a")
        assert ssm.get_parameter.call_count == 1

        fetcher.clear_cache()
        await fetcher.fetch_parameter("/a")
        assert ssm.get_parameter.call_count == 2

    @pytest.mark.asyncio
    async def test_parameter_not_found(self, aws_client_manager):
        """Test the error for a missing parameter."""
        ssm = aws_client_manager.clients["ssm"]
        ssm.get_parameter.side_effect = client_error("ParameterNotFound", "GetParameter")

        with pytest.raises(ExternalFetchError) as exc_info:
            await SSMParameterFetcher(aws_client_manager).fetch_parameter("/missing")

        assert str(exc_info.value) == "SSM parameter not found: /missing"
        assert exc_info.value.code == ERR_SSM_PARAMETER

    @pytest.mark.asyncio
    async def test_access_denied(self, aws_client_manager):
        """Test that other AWS errors are wrapped."""
        ssm = aws_client_manager.clients["ssm"]
        ssm.get_parameter.side_effect = client_error("AccessDeniedException", "GetParameter")

        with pytest.raises(ExternalFetchError) as exc_info:
            await SSMParameterFetcher(aws_client_manager).fetch_parameter("/denied")

        assert "Failed to read SSM parameter /denied" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, ClientError)

    @pytest.mark.asyncio
    async def test_missing_value(self, aws_client_manager):
        """Test a response without a value."""
        aws_client_manager.clients["ssm"].get_parameter.return_value = {"Parameter": {}}

        with pytest.raises(ExternalFetchError, match="has no value"):
            await SSMParameterFetcher(aws_client_manager).fetch_parameter("/empty")


class TestS3DocumentFetcher:
    """Test cases for S3DocumentFetcher."""

    @pytest.mark.asyncio
    async def test_fetch_json_document(self, aws_client_manager):
        """Test reading and parsing a JSON object."""
        s3 = aws_client_manager.clients["s3"]
        s3.get_object.return_value = {"Body": io.BytesIO(b'{"port": 8080}')}

        document = await S3DocumentFetcher(aws_client_manager).fetch_json_document(
            "s3://bucket/path/cfg.json"
        )

        assert document == {"port": 8080}
        s3.get_object.assert_called_once_with(Bucket="bucket", Key="path/cfg.json")

    @pytest.mark.asyncio
    async def test_invalid_url(self, aws_client_manager):
        """Test that malformed URLs are rejected before calling S3."""
        with pytest.raises(ExternalFetchError) as exc_info:
            await S3DocumentFetcher(aws_client_manager).fetch_json_document("s3://bucket")

        assert exc_info.value.code == ERR_S3_INVALID_URL
        aws_client_manager.clients["s3"].get_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_json(self, aws_client_manager):
        """Test that unparseable content is an error."""
        aws_client_manager.clients["s3"].get_object.return_value = {"Body": io.BytesIO(b"{")}

        with pytest.raises(ExternalFetchError) as exc_info:
            await S3DocumentFetcher(aws_client_manager).fetch_json_document("s3://b/cfg.json")

        assert exc_info.value.code == ERR_S3_READ
        assert "Error parsing JSON" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_no_such_key(self, aws_client_manager):
        """Test that S3 errors are wrapped."""
        aws_client_manager.clients["s3"].get_object.side_effect = client_error(
            "NoSuchKey", "GetObject"
        )

        with pytest.raises(ExternalFetchError) as exc_info:
            await S3DocumentFetcher(aws_client_manager).fetch_text("s3://b/cfg.json")

        assert exc_info.value.reference == "s3://b/cfg.json"
