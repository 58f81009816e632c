"""
Command-line entry point.

Usage:
    n8n-credential-injector [--transport {api,cli,direct}] [--user-id ID]
                            [--provider NAME] [--log-level LEVEL] [--env-file PATH]

Exit status is 0 whenever the batch runs to completion, including partial
failure and an empty queue, and 1 when the run is aborted.
"""

import argparse
from typing import List, Optional

from dotenv import load_dotenv

from . import __version__
from .config import AppConfig
from .constants import ExitCode, LogLevel, TransportType
from .db.db_config import DatabaseManager
from .exceptions import BaseError, ConfigurationError
from .processing.batch_processor import BatchProcessor
from .processing.batch_result import BatchResult
from .repositories.credential_repository import CredentialRepository
from .transports.base import InjectionTransport
from .transports.transport_factory import create_transport
from .utils.logger import configure_logging

JOB_NAME = "n8n-credential-injector"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=JOB_NAME,
        description="Inject pending OAuth credentials into n8n",
    )
    parser.add_argument(
        "--transport",
        choices=[t.value for t in TransportType],
        help="Injection mechanism (default: INJECTION_TRANSPORT or cli)",
    )
    parser.add_argument("--user-id", help="Only process credentials of this user")
    parser.add_argument("--provider", help="Only process credentials of this provider")
    parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        type=str.upper,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument("--env-file", help="Path to a .env file (default: search upwards)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_config(args: argparse.Namespace) -> AppConfig:
    """
    Build the configuration from the environment and apply command-line overrides.

    Raises:
        ConfigurationError: If an environment value cannot be parsed
    """
    try:
        config = AppConfig.from_env()
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}", cause=e) from e

    injection_overrides = {}
    if args.transport:
        injection_overrides["transport"] = TransportType(args.transport)
    if args.user_id:
        injection_overrides["user_id"] = args.user_id
    if args.provider:
        injection_overrides["provider"] = args.provider

    updates = {}
    if injection_overrides:
        updates["injection"] = config.injection.model_copy(update=injection_overrides)
    if args.log_level:
        updates["logging"] = config.logging.model_copy(update={"level": args.log_level})

    return config.model_copy(update=updates) if updates else config


def run(
    config: AppConfig,
    db_manager: Optional[DatabaseManager] = None,
    transport: Optional[InjectionTransport] = None,
) -> BatchResult:
    """
    Run one batch with the given configuration.

    Args:
        config: Validated application configuration
        db_manager: Source store manager; built from config when omitted
        transport: Injection transport; built from config when omitted

    Returns:
        BatchResult of the run
    """
    owns_db = db_manager is None
    if db_manager is None:
        db_manager = DatabaseManager(
            config.source_db.get_connection_string(), echo=config.source_db.echo
        )
    if transport is None:
        transport = create_transport(config)

    session = db_manager.get_session()
    try:
        with transport:
            processor = BatchProcessor(CredentialRepository(session), transport, config.injection)
            return processor.run()
    finally:
        session.close()
        if owns_db:
            db_manager.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv(args.env_file)

    # Console logging for configuration errors, replaced once the config is loaded
    configure_logging(JOB_NAME, args.log_level)

    try:
        config = load_config(args)
        config.validate_required()
    except ConfigurationError:
        return int(ExitCode.FATAL)

    logger = configure_logging(JOB_NAME, config.logging.level, config.logging.format)

    logger.info("N8N Credential Injector started", extra=config.describe())

    try:
        result = run(config)
    except BaseError:
        return int(ExitCode.FATAL)
    except Exception as e:
        logger.exception(f"Credential injection batch failed: {e}")
        return int(ExitCode.FATAL)

    return int(result.exit_code)
