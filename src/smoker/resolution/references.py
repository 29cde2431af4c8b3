"""Recognition of external references embedded in configuration values.

Two grammars are recognized:

    ssm://<parameter-path>        AWS SSM Parameter Store reference
    s3://<bucket>/<key>.json      S3 JSON document reference (extension is
                                  matched case-insensitively)

Every other value is a literal.
"""

import re
from typing import Any, NamedTuple, Optional


PARAMETER_PREFIX = "ssm://"
DOCUMENT_PREFIX = "s3://"
DOCUMENT_SUFFIX = ".json"

_S3_URL_PATTERN = re.compile(r"^s3://([^/]+)/(.+)$")


class S3Location(NamedTuple):
    """Bucket and key parsed from an s3:// URL."""

    bucket: str
    key: str


def is_parameter_reference(value: Any) -> bool:
    """Check whether a value is an SSM parameter reference."""
    return isinstance(value, str) and value.startswith(PARAMETER_PREFIX)


def parse_parameter_reference(value: Any) -> Optional[str]:
    """Extract the parameter path from an SSM reference.

    Returns:
        The path after ``ssm://``, or None for anything else
    """
    if not is_parameter_reference(value):
        return None
    return value[len(PARAMETER_PREFIX):]


def is_document_reference(value: Any) -> bool:
    """Check whether a value is an S3 JSON document reference."""
    return (
        isinstance(value, str)
        and value.startswith(DOCUMENT_PREFIX)
        and value.lower().endswith(DOCUMENT_SUFFIX)
    )


def is_reference(value: Any) -> bool:
    """Check whether a value uses either reference grammar."""
    return is_parameter_reference(value) or is_document_reference(value)


def parse_s3_url(url: Any) -> Optional[S3Location]:
    """Split an s3://bucket/key URL into its parts.

    Returns:
        S3Location, or None when the URL is malformed
    """
    if not isinstance(url, str):
        return None
    match = _S3_URL_PATTERN.match(url)
    if not match:
        return None
    return S3Location(bucket=match.group(1), key=match.group(2))
