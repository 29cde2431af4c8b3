"""Recursive resolution of external references in configuration trees.

The resolver walks a configuration value depth first and replaces every
``ssm://`` and ``s3://...json`` reference with the content it points to.
References may point at further references; resolution continues until a
literal is reached, bounded by a maximum depth and guarded against cycles.

Failure policy differs per reference kind. A parameter that cannot be
fetched fails the whole resolution. A JSON document that cannot be fetched
or parsed is logged and left in place as the unresolved reference string.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from smoker.core.errors import (
    CircularReferenceDetected,
    ExternalFetchError,
    ResolutionDepthExceeded,
    SmokerError,
    ERR_SSM_PARAMETER,
)
from smoker.resolution.fetchers import (
    DocumentFetcher,
    ParameterFetcher,
    S3DocumentFetcher,
    SSMParameterFetcher,
)
from smoker.resolution.references import (
    is_document_reference,
    is_parameter_reference,
    is_reference,
    parse_parameter_reference,
)


logger = logging.getLogger(__name__)

# Maximum recursion depth across nested values and chained references
MAX_DEPTH = 10


@dataclass
class ResolutionContext:
    """Bookkeeping for one top-level resolve() call."""

    max_depth: int = MAX_DEPTH
    depth: int = 0
    chain: List[str] = field(default_factory=list)

    def enter(self) -> None:
        if self.depth >= self.max_depth:
            raise ResolutionDepthExceeded(self.max_depth)
        self.depth += 1

    def leave(self) -> None:
        self.depth -= 1

    def push(self, reference: str) -> None:
        if reference in self.chain:
            raise CircularReferenceDetected(self.chain + [reference])
        self.chain.append(reference)

    def pop(self) -> None:
        self.chain.pop()


class ParameterResolver:
    """Resolves SSM parameter and S3 JSON references in configuration values.

    The resolver holds no state between calls: each resolve() creates a
    fresh ResolutionContext that is passed down the recursion, so
    independent resolutions never observe each other's bookkeeping.
    """

    def __init__(self, parameter_fetcher: Optional[ParameterFetcher] = None,
                 document_fetcher: Optional[DocumentFetcher] = None,
                 max_depth: int = MAX_DEPTH) -> None:
        """Initialize the resolver.

        Args:
            parameter_fetcher: Source of ``ssm://`` values (default: AWS SSM)
            document_fetcher: Source of ``s3://`` JSON documents (default: AWS S3)
            max_depth: Maximum resolution depth
        """
        self.parameter_fetcher = parameter_fetcher or SSMParameterFetcher()
        self.document_fetcher = document_fetcher or S3DocumentFetcher()
        self.max_depth = max_depth

    async def resolve(self, value: Any) -> Any:
        """Resolve every reference inside a configuration value.

        Args:
            value: Configuration value (scalar, sequence or mapping)

        Returns:
            A new value with references replaced; the input is not modified

        Raises:
            ResolutionDepthExceeded: When nesting exceeds the maximum depth
            CircularReferenceDetected: When a reference refers back to itself
            ExternalFetchError: When a parameter cannot be fetched
        """
        context = ResolutionContext(max_depth=self.max_depth)
        return await self._resolve(value, context)

    async def resolve_config(self, config: Mapping) -> Dict[str, Any]:
        """Resolve every reference inside a configuration mapping."""
        return await self.resolve(config)

    async def _resolve(self, value: Any, context: ResolutionContext) -> Any:
        context.enter()
        try:
            if isinstance(value, str):
                if is_parameter_reference(value):
                    path = parse_parameter_reference(value)
                    if path:
                        return await self._resolve_parameter(value, path, context)
                if is_document_reference(value):
                    return await self._resolve_document(value, context)
                return value

            if isinstance(value, Mapping):
                resolved = {}
                for key, item in value.items():
                    resolved[key] = await self._resolve(item, context)
                return resolved

            if isinstance(value, (list, tuple)):
                return [await self._resolve(item, context) for item in value]

            return value
        finally:
            context.leave()

    async def _resolve_parameter(self, reference: str, path: str,
                                 context: ResolutionContext) -> Any:
        context.push(reference)
        try:
            try:
                parameter_value = await self.parameter_fetcher.fetch_parameter(path)
            except SmokerError:
                raise
            except Exception as e:
                raise ExternalFetchError(
                    f"Failed to fetch parameter {reference}: {e}",
                    reference=reference,
                    code=ERR_SSM_PARAMETER,
                ) from e

            if is_reference(parameter_value):
                return await self._resolve(parameter_value, context)
            return parameter_value
        finally:
            context.pop()

    async def _resolve_document(self, reference: str, context: ResolutionContext) -> Any:
        context.push(reference)
        try:
            try:
                document = await self.document_fetcher.fetch_json_document(reference)
            except Exception as e:
                logger.warning(f"Error resolving S3 JSON reference {reference}: {e}")
                return reference

            return await self._resolve(document, context)
        finally:
            context.pop()
