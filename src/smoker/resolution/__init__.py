"""Configuration sources and ssm:// / s3:// reference resolution."""

from smoker.resolution.resolver import MAX_DEPTH, ParameterResolver
from smoker.resolution.sources import ConfigurationBuilder

__all__ = ["MAX_DEPTH", "ConfigurationBuilder", "ParameterResolver"]
