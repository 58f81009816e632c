"""
Factory selecting the injection transport named in the configuration.
"""

from typing import Callable, Dict

from ..config import AppConfig
from ..constants import TransportType
from ..exceptions import ConfigurationError
from .api_transport import ApiTransport
from .base import InjectionTransport
from .cli_transport import CliTransport
from .direct_transport import DirectInsertTransport


def _create_api_transport(config: AppConfig) -> InjectionTransport:
    return ApiTransport(config.n8n)


def _create_cli_transport(config: AppConfig) -> InjectionTransport:
    return CliTransport(config.n8n, config.n8n_db, config.cli)


def _create_direct_transport(config: AppConfig) -> InjectionTransport:
    return DirectInsertTransport(config.n8n, config.n8n_db)


_TRANSPORT_BUILDERS: Dict[TransportType, Callable[[AppConfig], InjectionTransport]] = {
    TransportType.API: _create_api_transport,
    TransportType.CLI: _create_cli_transport,
    TransportType.DIRECT: _create_direct_transport,
}


def create_transport(config: AppConfig) -> InjectionTransport:
    """
    Build the transport selected by config.injection.transport.

    Raises:
        ConfigurationError: If no transport is registered for the type
    """
    transport_type = config.injection.transport
    builder = _TRANSPORT_BUILDERS.get(transport_type)
    if builder is None:
        raise ConfigurationError(f"Unknown injection transport: {transport_type}")
    return builder(config)
