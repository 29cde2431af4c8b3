"""SSM Parameter Store client."""

from smoker.clients.aws.base import AwsServiceClient
from smoker.core.errors import ServiceClientError, ValidationError, ERR_SSM_PARAMETER


class SsmClient(AwsServiceClient):
    """Reads, writes and deletes SSM parameters.

    Configuration:
        kmsKeyId: Optional KMS key used for SecureString writes
        region, endpoint, accessKeyId, secretAccessKey: see AwsServiceClient
    """

    service_name = "ssm"
    component = "ssm"

    def __init__(self, client_id: str = "SsmClient", config=None, aws_client_manager=None) -> None:
        super().__init__(client_id, config, aws_client_manager)

    async def read(self, name: str, with_decryption: bool = False) -> str:
        """Read a parameter value.

        Args:
            name: Parameter name
            with_decryption: Decrypt SecureString values
        """
        if not name:
            raise ValidationError("SSM read requires a parameter name")
        response = await self._call(
            "get_parameter", f"read SSM parameter {name}",
            Name=name, WithDecryption=with_decryption,
        )
        value = response.get("Parameter", {}).get("Value")
        if value is None:
            raise ServiceClientError(
                f"SSM parameter {name} has no value",
                code=ERR_SSM_PARAMETER,
                domain="aws",
                details={"component": "ssm", "name": name},
                retryable=False,
            )
        return value

    async def write(self, name: str, value: str, type: str = "String",
                    overwrite: bool = True) -> None:
        """Create or update a parameter.

        Args:
            name: Parameter name
            value: Parameter value
            type: String, StringList or SecureString
            overwrite: Replace an existing value
        """
        if not name:
            raise ValidationError("SSM write requires a parameter name")
        params = {"Name": name, "Value": value, "Type": type, "Overwrite": overwrite}
        kms_key_id = self.get_config("kmsKeyId")
        if type == "SecureString" and kms_key_id:
            params["KeyId"] = kms_key_id
        await self._call("put_parameter", f"write SSM parameter {name}", **params)

    async def delete(self, name: str) -> None:
        """Delete a parameter."""
        if not name:
            raise ValidationError("SSM delete requires a parameter name")
        await self._call("delete_parameter", f"delete SSM parameter {name}", Name=name)
