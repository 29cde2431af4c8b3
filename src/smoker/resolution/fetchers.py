"""Fetchers that dereference external configuration references.

The resolver only depends on the two protocols defined here. The default
implementations read from AWS SSM Parameter Store and S3 through boto3,
running the blocking SDK calls in a worker thread.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from smoker.core.aws_client import AWSClientManager
from smoker.core.errors import (
    ExternalFetchError,
    ERR_S3_INVALID_URL,
    ERR_S3_READ,
    ERR_SSM_PARAMETER,
)
from smoker.resolution.references import parse_s3_url


logger = logging.getLogger(__name__)


class ParameterFetcher(Protocol):
    """Reads a raw parameter value by path."""

    async def fetch_parameter(self, path: str) -> str:
        ...


class DocumentFetcher(Protocol):
    """Reads and parses a JSON document by URL."""

    async def fetch_json_document(self, url: str) -> Any:
        ...


class SSMParameterFetcher:
    """Parameter fetcher backed by AWS SSM Parameter Store.

    Values are cached per fetcher instance; call clear_cache() to force
    fresh reads.
    """

    def __init__(self, aws_client_manager: Optional[AWSClientManager] = None,
                 region_name: Optional[str] = None,
                 with_decryption: bool = True) -> None:
        """Initialize SSM parameter fetcher.

        Args:
            aws_client_manager: Client manager to obtain the SSM client from
            region_name: Optional region override
            with_decryption: Decrypt SecureString parameters
        """
        self.aws_client_manager = aws_client_manager or AWSClientManager(region_name=region_name)
        self.region_name = region_name
        self.with_decryption = with_decryption
        self._cache: Dict[str, str] = {}

    async def fetch_parameter(self, path: str) -> str:
        """Fetch a parameter value.

        Args:
            path: Parameter name, e.g. '/app/database/url'

        Returns:
            The parameter value

        Raises:
            ExternalFetchError: When the parameter cannot be read
        """
        if path in self._cache:
            return self._cache[path]

        ssm_client = self.aws_client_manager.get_client("ssm", self.region_name)
        try:
            response = await asyncio.to_thread(
                ssm_client.get_parameter,
                Name=path,
                WithDecryption=self.with_decryption,
            )
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            if error_code == "ParameterNotFound":
                raise ExternalFetchError(
                    f"SSM parameter not found: {path}",
                    reference=path,
                    code=ERR_SSM_PARAMETER,
                ) from e
            raise ExternalFetchError(
                f"Failed to read SSM parameter {path}: {e}",
                reference=path,
                code=ERR_SSM_PARAMETER,
            ) from e
        except BotoCoreError as e:
            raise ExternalFetchError(
                f"Failed to read SSM parameter {path}: {e}",
                reference=path,
                code=ERR_SSM_PARAMETER,
            ) from e

        value = response.get("Parameter", {}).get("Value")
        if value is None:
            raise ExternalFetchError(
                f"SSM parameter {path} has no value",
                reference=path,
                code=ERR_SSM_PARAMETER,
            )

        self._cache[path] = value
        logger.debug(f"Fetched SSM parameter {path}")
        return value

    def clear_cache(self) -> None:
        """Forget all cached parameter values."""
        self._cache.clear()


class S3DocumentFetcher:
    """Document fetcher backed by S3 objects containing JSON."""

    def __init__(self, aws_client_manager: Optional[AWSClientManager] = None,
                 region_name: Optional[str] = None) -> None:
        """Initialize S3 document fetcher.

        Args:
            aws_client_manager: Client manager to obtain the S3 client from
            region_name: Optional region override
        """
        self.aws_client_manager = aws_client_manager or AWSClientManager(region_name=region_name)
        self.region_name = region_name

    async def fetch_text(self, url: str) -> str:
        """Fetch an S3 object as UTF-8 text.

        Raises:
            ExternalFetchError: When the URL is malformed or the read fails
        """
        location = parse_s3_url(url)
        if location is None:
            raise ExternalFetchError(
                f"Invalid S3 URL format: {url}", reference=url, code=ERR_S3_INVALID_URL
            )

        s3_client = self.aws_client_manager.get_client("s3", self.region_name)
        try:
            response = await asyncio.to_thread(
                s3_client.get_object, Bucket=location.bucket, Key=location.key
            )
            body = response.get("Body")
            if body is None:
                raise ExternalFetchError(
                    f"Empty response body for S3 object: {location.bucket}/{location.key}",
                    reference=url,
                    code=ERR_S3_READ,
                )
            content = await asyncio.to_thread(body.read)
        except (ClientError, BotoCoreError) as e:
            raise ExternalFetchError(
                f"Failed to read S3 object {url}: {e}", reference=url, code=ERR_S3_READ
            ) from e

        if isinstance(content, bytes):
            return content.decode("utf-8")
        return str(content)

    async def fetch_json_document(self, url: str) -> Any:
        """Fetch and parse a JSON document.

        Args:
            url: s3://bucket/key.json URL

        Returns:
            Parsed JSON value

        Raises:
            ExternalFetchError: When the object cannot be read or parsed
        """
        content = await self.fetch_text(url)
        try:
            return json.loads(content)
        except ValueError as e:
            raise ExternalFetchError(
                f"Error parsing JSON from S3 ({url}): {e}", reference=url, code=ERR_S3_READ
            ) from e
