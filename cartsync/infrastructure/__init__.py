"""Infrastructure layer module.

Contains the platform transport, operation descriptors, error
classification, auxiliary storage and configuration.
"""

from cartsync.infrastructure.config import Settings, settings
from cartsync.infrastructure.custom_objects import (
    AuxiliaryStorage,
    CustomObjectStorage,
    StorageOutcome,
)
from cartsync.infrastructure.errors import ClassifiedResult, classify
from cartsync.infrastructure.log_config import configure_logging
from cartsync.infrastructure.transport import (
    GraphQLTransport,
    ProtocolError,
    ProtocolRejection,
    Transport,
    TransportFailure,
    TransportResult,
)

__all__ = [
    "AuxiliaryStorage",
    "ClassifiedResult",
    "CustomObjectStorage",
    "GraphQLTransport",
    "ProtocolError",
    "ProtocolRejection",
    "Settings",
    "StorageOutcome",
    "Transport",
    "TransportFailure",
    "TransportResult",
    "classify",
    "configure_logging",
    "settings",
]
