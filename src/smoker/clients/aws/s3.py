"""S3 bucket client."""

import asyncio
import json
from typing import Any, List, Optional

from smoker.clients.aws.base import AwsServiceClient
from smoker.core.errors import ServiceClientError, ValidationError, ERR_S3_READ
from smoker.core.polling import wait_for


class S3Client(AwsServiceClient):
    """Reads and writes objects in one S3 bucket.

    Configuration:
        bucket: (required) Bucket name
        region, endpoint, accessKeyId, secretAccessKey: see AwsServiceClient
    """

    service_name = "s3"
    component = "s3"

    def __init__(self, client_id: str = "S3Client", config=None, aws_client_manager=None) -> None:
        super().__init__(client_id, config, aws_client_manager)
        self.bucket = ""

    def _validate_config(self) -> None:
        self.bucket = self.require_config("bucket", "S3 client")

    @staticmethod
    def _require_key(key: str, action: str) -> None:
        if not key:
            raise ValidationError(f"S3 {action} requires an object key")

    async def read(self, key: str) -> str:
        """Read an object as UTF-8 text."""
        self._require_key(key, "read")
        response = await self._call(
            "get_object", f"read s3://{self.bucket}/{key}", Bucket=self.bucket, Key=key
        )
        body = response.get("Body")
        if body is None:
            raise ServiceClientError(
                f"Empty response body for S3 object: {self.bucket}/{key}",
                code=ERR_S3_READ,
                domain="aws",
                details={"component": "s3", "bucket": self.bucket, "key": key},
            )
        content = await asyncio.to_thread(body.read)
        return content.decode("utf-8") if isinstance(content, bytes) else str(content)

    async def read_json(self, key: str) -> Any:
        """Read an object and parse it as JSON."""
        content = await self.read(key)
        try:
            return json.loads(content)
        except ValueError as e:
            raise ServiceClientError(
                f"Error parsing JSON from s3://{self.bucket}/{key}: {e}",
                code=ERR_S3_READ,
                domain="aws",
                details={"component": "s3", "bucket": self.bucket, "key": key},
                retryable=False,
            ) from e

    async def write(self, key: str, content: str) -> None:
        """Write text content to an object."""
        self._require_key(key, "write")
        await self._call(
            "put_object",
            f"write s3://{self.bucket}/{key}",
            Bucket=self.bucket,
            Key=key,
            Body=content.encode("utf-8"),
        )

    async def write_json(self, key: str, data: Any) -> None:
        """Serialize data as JSON and write it to an object."""
        self._require_key(key, "write")
        await self._call(
            "put_object",
            f"write s3://{self.bucket}/{key}",
            Bucket=self.bucket,
            Key=key,
            Body=json.dumps(data, indent=2).encode("utf-8"),
            ContentType="application/json",
        )

    async def delete(self, key: str) -> None:
        """Delete an object."""
        self._require_key(key, "delete")
        await self._call(
            "delete_object", f"delete s3://{self.bucket}/{key}", Bucket=self.bucket, Key=key
        )

    async def list_keys(self, prefix: str = "") -> List[str]:
        """List object keys under a prefix (first page only)."""
        response = await self._call(
            "list_objects_v2", f"list s3://{self.bucket}/{prefix}", Bucket=self.bucket, Prefix=prefix
        )
        return [item["Key"] for item in response.get("Contents", []) if "Key" in item]

    async def wait_for_object(self, key: str, timeout_seconds: float = 30) -> Optional[str]:
        """Wait until an object exists.

        Returns:
            The key once the object is listed, None on timeout
        """
        self._require_key(key, "wait")
        self.ensure_initialized()

        async def poll() -> List[str]:
            return await self.list_keys(key)

        found = await wait_for(
            poll,
            lambda keys: key in keys,
            timeout_seconds,
            self.get_poll_interval(),
        )
        return key if found is not None else None
