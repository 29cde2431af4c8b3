"""Shared plumbing for the AWS service clients.

Each AWS client builds its boto3 client from its own configuration
(region, endpoint and optional explicit credentials) through an
AWSClientManager, and runs the blocking SDK calls in a worker thread.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from smoker.clients.base import BaseServiceClient
from smoker.core.aws_client import AWSClientManager, DEFAULT_REGION
from smoker.core.errors import ServiceClientError, ERR_AWS_CALL


logger = logging.getLogger(__name__)


class AwsServiceClient(BaseServiceClient):
    """Base class for clients wrapping a single boto3 service client.

    Recognized configuration keys: region, endpoint, accessKeyId,
    secretAccessKey, sessionToken and profile.
    """

    service_name = ""
    component = "aws"

    def __init__(self, client_id: str, config: Optional[Dict[str, Any]] = None,
                 aws_client_manager: Optional[AWSClientManager] = None) -> None:
        super().__init__(client_id, config)
        self._aws_client_manager = aws_client_manager
        self._client = None

    @property
    def region(self) -> str:
        return self.get_config("region", DEFAULT_REGION)

    def _create_boto_client(self):
        manager = self._aws_client_manager or AWSClientManager(
            profile_name=self.get_config("profile"),
            region_name=self.region,
        )
        return manager.get_client(
            self.service_name,
            region_name=self.region,
            endpoint_url=self.get_config("endpoint") or None,
            aws_access_key_id=self.get_config("accessKeyId") or None,
            aws_secret_access_key=self.get_config("secretAccessKey") or None,
            aws_session_token=self.get_config("sessionToken") or None,
        )

    async def _initialize_client(self) -> None:
        self._validate_config()
        self._client = self._create_boto_client()

    def _validate_config(self) -> None:
        """Check required configuration; overridden by subclasses."""

    async def _call(self, operation: str, description: str, **kwargs) -> Dict[str, Any]:
        """Invoke a boto3 operation off the event loop.

        Args:
            operation: boto3 method name, e.g. 'put_record'
            description: Human readable action used in error messages
            **kwargs: Operation parameters

        Returns:
            The boto3 response

        Raises:
            ServiceClientError: When the call fails
        """
        self.ensure_initialized()
        method: Callable[..., Dict[str, Any]] = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, **kwargs)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            error_message = e.response["Error"].get("Message", str(e))
            raise ServiceClientError(
                f"Failed to {description}: {error_message}",
                code=ERR_AWS_CALL,
                domain="aws",
                details={
                    "component": self.component,
                    "operation": operation,
                    "aws_error_code": error_code,
                },
                retryable=error_code in ("ThrottlingException", "RequestTimeout",
                                         "ProvisionedThroughputExceededException"),
            ) from e
        except BotoCoreError as e:
            raise ServiceClientError(
                f"Failed to {description}: {e}",
                code=ERR_AWS_CALL,
                domain="aws",
                details={"component": self.component, "operation": operation},
            ) from e

    async def cleanup_client(self) -> None:
        self._client = None
