"""
Client side of the WebRTC-HTTP Egress Protocol (WHEP).

Typical use::

    client = WhepClient.create("https://example.com/whep")
    await client.connect()
    ...
    await client.disconnect()
"""

from __future__ import annotations

from .client import SessionState, WhepClient
from .config import IceServerConfig, PeerConnectionConfig, fetch_pc_config
from .engine import AiortcEngine, MediaKind, NegotiationEngine, SessionDescription
from .errors import (
    ConfigError,
    EngineCloseError,
    EngineError,
    EngineSetupError,
    InvalidServerURL,
    InvalidSessionState,
    MissingLocationHeader,
    OfferCreationError,
    ProtocolViolation,
    RemoteDescriptionRejected,
    ResourceCleanupFailed,
    TransportError,
    UnexpectedStatus,
    WhepError,
)

__version__ = "0.1.0"

__all__ = [
    "AiortcEngine",
    "ConfigError",
    "EngineCloseError",
    "EngineError",
    "EngineSetupError",
    "IceServerConfig",
    "InvalidServerURL",
    "InvalidSessionState",
    "MediaKind",
    "MissingLocationHeader",
    "NegotiationEngine",
    "OfferCreationError",
    "PeerConnectionConfig",
    "ProtocolViolation",
    "RemoteDescriptionRejected",
    "ResourceCleanupFailed",
    "SessionDescription",
    "SessionState",
    "TransportError",
    "UnexpectedStatus",
    "WhepClient",
    "fetch_pc_config",
]
