#!/usr/bin/env python3
"""smoker-config - build, resolve and inspect a smoke test configuration.

Loads configuration sources in order, resolves ssm:// and s3:// references,
registers the ``clients`` section and prints the result with credentials
masked.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

import yaml

from smoker.clients.factory import ClientFactory
from smoker.clients.registry import create_registry_from_config
from smoker.core.config import DEFAULT_CONFIG_PATHS, Configuration
from smoker.core.errors import SmokerError
from smoker.resolution.sources import ConfigurationBuilder


logger = logging.getLogger(__name__)

DEFAULT_LOG_LEVEL = "WARNING"


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="smoker-config",
        description="Build and inspect a smoke test configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                  # Auto-detect smoker.yaml
  %(prog)s base.yaml s3://bucket/env.json   # Merge sources in order
  %(prog)s config.yaml --no-resolve         # Keep ssm:// and s3:// references
  %(prog)s config.yaml --validate-only      # Check every client type is known
        """,
    )

    parser.add_argument(
        "sources",
        nargs="*",
        help="Configuration files or s3:// URLs, later ones take precedence "
             "(default: auto-detect smoker.yaml)",
    )

    parser.add_argument("--profile", help="AWS profile name to use for credentials")

    parser.add_argument(
        "--region", help="AWS region to use (overrides configuration file)"
    )

    parser.add_argument(
        "--no-resolve",
        action="store_true",
        help="Do not resolve ssm:// and s3:// references",
    )

    parser.add_argument(
        "--format",
        choices=("yaml", "json"),
        default="yaml",
        help="Output format (default: yaml)",
    )

    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Only check that every configured client type can be built",
    )

    parser.add_argument(
        "--log-level",
        help="Logging level (default: logging.level from configuration, else WARNING)",
    )

    return parser.parse_args(argv)


def auto_detect_config() -> Optional[str]:
    """Auto-detect a configuration file in the current directory.

    Returns:
        Path to configuration file if found, None otherwise
    """
    for candidate in DEFAULT_CONFIG_PATHS:
        if os.path.exists(candidate):
            return candidate
    return None


def configure_logging(level: Optional[str]) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or DEFAULT_LOG_LEVEL).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def build_configuration(sources: List[str], resolve: bool) -> Configuration:
    builder = ConfigurationBuilder(resolve_references=resolve)
    logger.debug(f"Building configuration from {', '.join(sources)}")
    for source in sources:
        builder.add_file(source)
    return await builder.build()


def validate_clients(configuration: Configuration) -> List[str]:
    """Check that every configured client type has a constructor.

    Returns:
        Problems found, empty when all client types are supported
    """
    registry = create_registry_from_config(configuration.get_client_configs())
    factory = ClientFactory(registry)

    problems = []
    for key in registry.keys():
        client_type = key.split(":", 1)[0]
        if not factory.supports(client_type):
            problems.append(f"{key}: unknown client type '{client_type}'")
    return problems


def render(data: Dict[str, Any], output_format: str) -> str:
    if output_format == "json":
        return json.dumps(data, indent=2, default=str)
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    args = parse_arguments(argv)
    configure_logging(args.log_level or os.environ.get("SMOKER_LOG_LEVEL"))

    sources = args.sources
    if not sources:
        detected = auto_detect_config()
        if not detected:
            print("❌ No configuration file found.")
            print("   Please create smoker.yaml or specify a configuration source.")
            print("   Use --help for more information.")
            return 1
        sources = [detected]

    # Command line overrides go through the same environment overrides the
    # configuration already honours
    if args.region:
        os.environ["AWS_REGION"] = args.region
    if args.profile:
        os.environ["AWS_PROFILE"] = args.profile

    try:
        configuration = asyncio.run(build_configuration(sources, not args.no_resolve))
    except SmokerError as e:
        print(f"❌ Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n\n👋 Operation cancelled by user.")
        return 130

    if not args.log_level:
        logging.getLogger().setLevel(
            getattr(logging, configuration.get_log_level(), logging.INFO)
        )

    registry = create_registry_from_config(configuration.get_client_configs())

    if args.validate_only:
        problems = validate_clients(configuration)
        for problem in problems:
            print(f"❌ {problem}")
        if problems:
            return 1
        print(f"✅ {len(registry)} client configuration(s) valid")
        return 0

    print(render(configuration.redacted(), args.format))
    print("Registered clients:")
    for key in registry.keys():
        print(f"  • {key}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
