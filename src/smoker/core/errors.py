"""Error taxonomy for the smoker harness.

Every error raised by the configuration and client subsystems derives from
SmokerError, which carries a stable machine-readable code and the logical
domain the failure belongs to.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# Configuration domain
ERR_CONFIG_PARSE = "ERR_CONFIG_PARSE"
ERR_CONFIG_MISSING = "ERR_CONFIG_MISSING"
ERR_RESOLUTION_DEPTH = "ERR_RESOLUTION_DEPTH"
ERR_CIRCULAR_REFERENCE = "ERR_CIRCULAR_REFERENCE"

# AWS domain
ERR_S3_INVALID_URL = "ERR_S3_INVALID_URL"
ERR_S3_READ = "ERR_S3_READ"
ERR_SSM_PARAMETER = "ERR_SSM_PARAMETER"
ERR_AWS_CALL = "ERR_AWS_CALL"
ERR_AWS_CREDENTIALS = "ERR_AWS_CREDENTIALS"

# Messaging domain
ERR_KAFKA = "ERR_KAFKA"
ERR_MQTT = "ERR_MQTT"

# HTTP domain
ERR_HTTP = "ERR_HTTP"

# Client domain
ERR_VALIDATION = "ERR_VALIDATION"
ERR_UNKNOWN_CLIENT_TYPE = "ERR_UNKNOWN_CLIENT_TYPE"
ERR_NOT_INITIALIZED = "ERR_NOT_INITIALIZED"
ERR_CLIENT_LIFECYCLE = "ERR_CLIENT_LIFECYCLE"


class SmokerError(Exception):
    """Base exception for the smoker harness."""

    def __init__(
        self,
        message: str,
        code: str,
        domain: str,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.domain = domain
        self.details = details or {}
        self.retryable = retryable
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view of the error, safe for logs and reports."""
        cause = self.__cause__
        return {
            "name": type(self).__name__,
            "code": self.code,
            "domain": self.domain,
            "message": self.message,
            "retryable": self.retryable,
            "details": dict(self.details),
            "cause": (
                {"name": type(cause).__name__, "message": str(cause)}
                if cause is not None
                else None
            ),
            "timestamp": self.timestamp,
        }


class ConfigurationError(SmokerError):
    """Raised when configuration is invalid or cannot be loaded."""

    def __init__(self, message: str, code: str = ERR_CONFIG_PARSE,
                 details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code=code, domain="config", details=details)


class ValidationError(SmokerError):
    """Raised when a required client configuration field is missing."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code=ERR_VALIDATION, domain="validation", details=details)


class ResolutionDepthExceeded(SmokerError):
    """Raised when reference resolution nests deeper than allowed."""

    def __init__(self, max_depth: int) -> None:
        super().__init__(
            f"Maximum parameter resolution depth ({max_depth}) exceeded. "
            "Possible circular reference detected.",
            code=ERR_RESOLUTION_DEPTH,
            domain="config",
            details={"max_depth": max_depth},
        )
        self.max_depth = max_depth


class CircularReferenceDetected(SmokerError):
    """Raised when a reference reappears in its own resolution chain."""

    def __init__(self, chain: List[str]) -> None:
        super().__init__(
            f"Circular reference detected: {' -> '.join(chain)}",
            code=ERR_CIRCULAR_REFERENCE,
            domain="config",
            details={"chain": list(chain)},
        )
        self.chain = list(chain)


class ExternalFetchError(SmokerError):
    """Raised when an external reference cannot be fetched or parsed."""

    def __init__(self, message: str, reference: str, code: str = ERR_SSM_PARAMETER) -> None:
        super().__init__(
            message,
            code=code,
            domain="aws",
            details={"reference": reference},
            retryable=True,
        )
        self.reference = reference


class UnknownClientType(SmokerError):
    """Raised when the factory has no constructor for a client type."""

    def __init__(self, client_type: str) -> None:
        super().__init__(
            f"Unknown client type: {client_type}",
            code=ERR_UNKNOWN_CLIENT_TYPE,
            domain="client",
            details={"client_type": client_type},
        )
        self.client_type = client_type


class ClientNotInitializedError(SmokerError):
    """Raised when a client operation is attempted before init()."""

    def __init__(self, client_name: str) -> None:
        super().__init__(
            f"{client_name} is not initialized. Call init() first.",
            code=ERR_NOT_INITIALIZED,
            domain="client",
            details={"client": client_name},
        )


class ServiceClientError(SmokerError):
    """Raised when a wire call made by a concrete client fails."""

    def __init__(self, message: str, code: str, domain: str,
                 details: Optional[Dict[str, Any]] = None,
                 retryable: bool = True) -> None:
        super().__init__(message, code=code, domain=domain, details=details,
                         retryable=retryable)
