"""Configuration sources and the builder that merges them.

Sources are loaded in the order they were added and deep-merged, later
sources overriding earlier ones. The merged tree is then passed through the
ParameterResolver before a Configuration is created.
"""

import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from smoker.core.config import Configuration, deep_merge, load_config_file
from smoker.core.errors import ConfigurationError, SmokerError
from smoker.resolution.fetchers import DocumentFetcher, S3DocumentFetcher
from smoker.resolution.references import DOCUMENT_PREFIX
from smoker.resolution.resolver import ParameterResolver


logger = logging.getLogger(__name__)


class ConfigurationSource(ABC):
    """A place configuration can be loaded from."""

    @abstractmethod
    async def load(self) -> Dict[str, Any]:
        """Load configuration from this source."""

    def describe(self) -> str:
        return type(self).__name__


class FileConfigurationSource(ConfigurationSource):
    """Configuration from a local YAML or JSON file."""

    def __init__(self, file_path: Union[str, Path]) -> None:
        self.file_path = Path(file_path)

    async def load(self) -> Dict[str, Any]:
        """Load the file.

        Returns:
            Parsed configuration, or an empty dictionary when the file is missing

        Raises:
            ConfigurationError: When the file exists but cannot be parsed
        """
        if not self.file_path.exists():
            logger.warning(f"Configuration file not found: {self.file_path}")
            return {}
        return load_config_file(self.file_path)

    def describe(self) -> str:
        return f"file {self.file_path}"


class ObjectConfigurationSource(ConfigurationSource):
    """Configuration from an in-memory mapping."""

    def __init__(self, config: Mapping) -> None:
        self.config = config

    async def load(self) -> Dict[str, Any]:
        return copy.deepcopy(dict(self.config))

    def describe(self) -> str:
        return "object"


class S3ConfigurationSource(ConfigurationSource):
    """Configuration from a JSON document stored in S3."""

    def __init__(self, s3_url: str, document_fetcher: Optional[DocumentFetcher] = None,
                 region_name: Optional[str] = None) -> None:
        self.s3_url = s3_url
        self.document_fetcher = document_fetcher or S3DocumentFetcher(region_name=region_name)

    async def load(self) -> Dict[str, Any]:
        """Load the document.

        Returns:
            Parsed configuration, or an empty dictionary when the document
            cannot be read or is not a JSON object
        """
        try:
            document = await self.document_fetcher.fetch_json_document(self.s3_url)
        except SmokerError as e:
            logger.error(f"Error loading configuration from S3 {self.s3_url}: {e}")
            return {}

        if not isinstance(document, dict):
            logger.error(f"Configuration document {self.s3_url} is not a JSON object")
            return {}
        return document

    def describe(self) -> str:
        return f"s3 {self.s3_url}"


class ConfigurationBuilder:
    """Fluent builder producing a resolved Configuration.

    Example:
        config = await (
            ConfigurationBuilder(resolver)
            .add_file("config/defaults.yaml")
            .add_file("s3://bucket/env.json")
            .add_object({"clients": {"rest": {"baseUrl": "http://localhost"}}})
            .build()
        )
    """

    def __init__(self, resolver: Optional[ParameterResolver] = None,
                 document_fetcher: Optional[DocumentFetcher] = None,
                 resolve_references: bool = True,
                 apply_environment: bool = True) -> None:
        """Initialize the builder.

        Args:
            resolver: Resolver applied to the merged configuration
            document_fetcher: Fetcher used by S3 sources added via add_file
            resolve_references: Whether to resolve references after merging
            apply_environment: Whether environment overrides are applied
        """
        self._resolver = resolver
        self._document_fetcher = document_fetcher
        self._resolve_references = resolve_references
        self._apply_environment = apply_environment
        self._sources: List[ConfigurationSource] = []

    @property
    def sources(self) -> List[ConfigurationSource]:
        return list(self._sources)

    def add_source(self, source: ConfigurationSource) -> "ConfigurationBuilder":
        self._sources.append(source)
        return self

    def add_file(self, path: str) -> "ConfigurationBuilder":
        """Add a local file, or an S3 document when the path is an s3:// URL."""
        if path.startswith(DOCUMENT_PREFIX):
            return self.add_source(S3ConfigurationSource(path, self._get_document_fetcher()))
        return self.add_source(FileConfigurationSource(Path(path).resolve()))

    def add_object(self, config: Mapping) -> "ConfigurationBuilder":
        return self.add_source(ObjectConfigurationSource(config))

    def _get_document_fetcher(self) -> DocumentFetcher:
        if self._document_fetcher is None:
            if self._resolver is not None:
                self._document_fetcher = self._resolver.document_fetcher
            else:
                self._document_fetcher = S3DocumentFetcher()
        return self._document_fetcher

    async def load_merged(self) -> Dict[str, Any]:
        """Load every source in order and deep-merge the results.

        A source that fails to load is logged and skipped.
        """
        merged: Dict[str, Any] = {}
        for source in self._sources:
            try:
                loaded = await source.load()
            except ConfigurationError as e:
                logger.error(f"Error loading configuration from {source.describe()}: {e}")
                continue
            if loaded:
                merged = deep_merge(merged, loaded)
        return merged

    async def build(self) -> Configuration:
        """Build the configuration.

        Returns:
            Configuration holding the merged and resolved values

        Raises:
            ResolutionDepthExceeded: When reference nesting is too deep
            CircularReferenceDetected: When references form a cycle
            ExternalFetchError: When a parameter cannot be fetched
        """
        merged = await self.load_merged()

        if self._resolve_references:
            if self._resolver is None:
                self._resolver = ParameterResolver(document_fetcher=self._get_document_fetcher())
            merged = await self._resolver.resolve_config(merged)

        logger.info(f"Configuration built from {len(self._sources)} source(s)")
        return Configuration(merged, apply_environment=self._apply_environment)
