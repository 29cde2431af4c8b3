"""boto3 session and client cache.

The reference fetchers and the AWS service clients obtain their boto3
clients here. One session is kept per manager (optionally bound to a named
profile) and one client per service, region, endpoint and credential set.
"""

import hashlib
import logging
from typing import Dict, Optional, Tuple
import boto3
from botocore.exceptions import (
    NoCredentialsError,
    ClientError,
    ProfileNotFound,
)

from smoker.core.errors import ConfigurationError, ERR_AWS_CREDENTIALS


logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"

ClientKey = Tuple[str, str, Optional[str], Optional[str]]


def _credentials_fingerprint(*parts: Optional[str]) -> Optional[str]:
    if not any(parts):
        return None
    return hashlib.sha256("\0".join(part or "" for part in parts).encode("utf-8")).hexdigest()


class AWSClientManager:
    """Hands out cached boto3 clients built from a lazily created session."""

    def __init__(self, profile_name: Optional[str] = None,
                 region_name: Optional[str] = None) -> None:
        """
        Args:
            profile_name: Named AWS profile; the default credential chain
                is used when omitted
            region_name: Region for clients that do not ask for one
        """
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[ClientKey, object] = {}
        self._profile_name = profile_name
        self._region_name = region_name

    def _get_session(self) -> boto3.Session:
        if self._session is None:
            if self._profile_name:
                self._session = boto3.Session(profile_name=self._profile_name)
            else:
                self._session = boto3.Session()
            logger.debug(f"Opened boto3 session (profile: {self._profile_name or 'default'})")
        return self._session

    def validate_credentials(self) -> str:
        """Ask STS who the current credentials belong to.

        Returns:
            The AWS account ID

        Raises:
            ConfigurationError: When credentials are missing, expired or the
                profile does not exist
        """
        try:
            sts_client = self._get_session().client(
                "sts", region_name=self.get_current_region()
            )
            identity = sts_client.get_caller_identity()
        except NoCredentialsError as e:
            raise ConfigurationError(
                "No AWS credentials found",
                code=ERR_AWS_CREDENTIALS,
            ) from e
        except ProfileNotFound as e:
            raise ConfigurationError(
                f"AWS profile not found: {self._profile_name}",
                code=ERR_AWS_CREDENTIALS,
                details={"profile": self._profile_name},
            ) from e
        except ClientError as e:
            if e.response["Error"]["Code"] in ("InvalidUserID.NotFound",
                                               "InvalidClientTokenId",
                                               "ExpiredToken"):
                raise ConfigurationError(
                    "AWS credentials are invalid or expired",
                    code=ERR_AWS_CREDENTIALS,
                    details={"aws_error": e.response["Error"]["Code"]},
                ) from e
            raise
        return identity["Account"]

    def get_client(self, service_name: str, region_name: Optional[str] = None,
                   endpoint_url: Optional[str] = None,
                   aws_access_key_id: Optional[str] = None,
                   aws_secret_access_key: Optional[str] = None,
                   aws_session_token: Optional[str] = None):
        """Return the cached client for a service, creating it on first use.

        Args:
            service_name: boto3 service name, e.g. 'ssm' or 's3'
            region_name: Region; defaults to get_current_region()
            endpoint_url: Custom endpoint such as a LocalStack URL
            aws_access_key_id: Explicit access key, used together with
                aws_secret_access_key
            aws_secret_access_key: Explicit secret key
            aws_session_token: Explicit session token
        """
        region = region_name or self.get_current_region()
        key: ClientKey = (
            service_name,
            region,
            endpoint_url,
            _credentials_fingerprint(aws_access_key_id, aws_secret_access_key, aws_session_token),
        )

        client = self._clients.get(key)
        if client is None:
            kwargs = {"region_name": region}
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            if aws_access_key_id and aws_secret_access_key:
                kwargs["aws_access_key_id"] = aws_access_key_id
                kwargs["aws_secret_access_key"] = aws_secret_access_key
                if aws_session_token:
                    kwargs["aws_session_token"] = aws_session_token
            client = self._get_session().client(service_name, **kwargs)
            self._clients[key] = client
            logger.debug(f"Created {service_name} client for {region}")

        return client

    def get_current_region(self) -> str:
        """Explicit region, else the session's region, else us-east-1."""
        if self._region_name:
            return self._region_name
        return self._get_session().region_name or DEFAULT_REGION

    def clear_cache(self) -> None:
        self._clients.clear()
