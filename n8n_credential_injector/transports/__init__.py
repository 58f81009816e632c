"""
Injection transports.

Each transport delivers a credential payload to n8n by a different route:
- ApiTransport: REST login + credential create
- CliTransport: `n8n import:credentials` with a temporary file
- DirectInsertTransport: encrypted insert into n8n's database

Usage:
    transport = create_transport(config)
    with transport:
        transport.prepare()
        result = transport.inject(payload, record)
"""

from .api_transport import ApiTransport
from .base import InjectionResult, InjectionTransport
from .cli_transport import CliOutputClassifier, CliTransport, build_import_document
from .direct_transport import DirectInsertTransport
from .transport_factory import create_transport

__all__ = [
    "ApiTransport",
    "CliOutputClassifier",
    "CliTransport",
    "DirectInsertTransport",
    "InjectionResult",
    "InjectionTransport",
    "build_import_document",
    "create_transport",
]
