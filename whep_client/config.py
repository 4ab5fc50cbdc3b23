"""
Peer connection configuration.

Broadcasters usually publish the ICE servers a viewer should use as a small JSON
document (``/api/pc-config``)::

    {"iceServers": [{"urls": "turn:...", "username": "...", "credential": "..."}],
     "iceTransportPolicy": "relay"}
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

import requests
from aiortc import RTCConfiguration, RTCIceServer

from .errors import ConfigError

logger = logging.getLogger(__name__)

ENV_URL_VAR = "WHEP_URL"
ENV_PC_CONFIG_URL_VAR = "WHEP_PC_CONFIG_URL"


@dataclass
class IceServerConfig:
    urls: List[str]
    username: Optional[str] = None
    credential: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "IceServerConfig":
        if not isinstance(data, dict):
            raise ConfigError(f"ICE server entry must be an object: {data!r}")
        urls = data.get("urls")
        if isinstance(urls, str):
            urls = [urls]
        if not isinstance(urls, list) or not urls or not all(isinstance(url, str) for url in urls):
            raise ConfigError(f"ICE server entry without usable urls: {data!r}")
        return cls(urls=list(urls), username=data.get("username"), credential=data.get("credential"))


@dataclass
class PeerConnectionConfig:
    ice_servers: List[IceServerConfig] = field(default_factory=list)
    ice_transport_policy: str = "all"

    @classmethod
    def from_dict(cls, data: dict) -> "PeerConnectionConfig":
        if not isinstance(data, dict):
            raise ConfigError("Peer connection config must be a JSON object")
        servers = data.get("iceServers") or []
        if not isinstance(servers, list):
            raise ConfigError("iceServers must be a list")
        return cls(
            ice_servers=[IceServerConfig.from_dict(server) for server in servers],
            ice_transport_policy=data.get("iceTransportPolicy") or "all",
        )

    @classmethod
    def from_stun_urls(cls, urls: List[str]) -> "PeerConnectionConfig":
        return cls(ice_servers=[IceServerConfig(urls=[url]) for url in urls])

    def to_rtc_configuration(self) -> RTCConfiguration:
        if self.ice_transport_policy != "all":
            # aiortc always gathers every candidate type
            logger.warning("ICE transport policy %r is not supported, using 'all'", self.ice_transport_policy)
        return RTCConfiguration(
            iceServers=[
                RTCIceServer(urls=server.urls, username=server.username, credential=server.credential)
                for server in self.ice_servers
            ]
        )


def fetch_pc_config(url: str, timeout: float = 10.0) -> PeerConnectionConfig:
    """Download and parse the broadcaster's peer connection config."""

    logger.debug("Fetching peer connection config from %s", url)
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except requests.RequestException as exc:
        raise ConfigError(f"Couldn't get peer connection config from {url}: {exc}") from exc
    except ValueError as exc:
        raise ConfigError(f"Peer connection config at {url} is not valid JSON") from exc
    return PeerConnectionConfig.from_dict(data)


def default_server_url() -> Optional[str]:
    return os.environ.get(ENV_URL_VAR)


def default_pc_config_url() -> Optional[str]:
    return os.environ.get(ENV_PC_CONFIG_URL_VAR)
