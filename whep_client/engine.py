"""
Negotiation engine adapters.

The WHEP client only needs a handful of capabilities from a WebRTC stack:
attach receive-only transceivers, produce an offer, wait for ICE gathering,
apply the answer and release everything.  ``NegotiationEngine`` describes that
contract and ``AiortcEngine`` implements it on top of ``aiortc``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from aiortc import RTCConfiguration, RTCPeerConnection, RTCSessionDescription

from .errors import (
    EngineCloseError,
    EngineError,
    EngineSetupError,
    OfferCreationError,
    RemoteDescriptionRejected,
)

logger = logging.getLogger(__name__)


class MediaKind(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"


@dataclass(frozen=True)
class SessionDescription:
    """SDP payload plus its type tag ("offer" or "answer")."""

    sdp: str
    type: str


class NegotiationEngine(Protocol):
    @property
    def local_description(self) -> Optional[SessionDescription]: ...

    async def add_receive_only_track(self, kind: MediaKind) -> None: ...

    async def create_offer(self) -> SessionDescription: ...

    async def wait_for_gathering_complete(self) -> None: ...

    async def set_remote_answer(self, description: SessionDescription) -> None: ...

    async def close(self) -> None: ...


class AiortcEngine:
    """
    ``NegotiationEngine`` backed by an ``aiortc.RTCPeerConnection``.

    aiortc registers its default audio/video codecs and RTCP feedback on every
    peer connection, so a bare ``RTCPeerConnection`` is already a fully
    configured engine.  Callers that want track or state callbacks can reach the
    underlying connection through ``peer_connection``.
    """

    def __init__(self, pc: RTCPeerConnection):
        self._pc = pc
        self._gathering_complete = asyncio.Event()
        self._gathering_awaited = False

        @pc.on("icegatheringstatechange")
        def on_icegatheringstatechange():
            logger.debug("ICE gathering state is %s", pc.iceGatheringState)
            if pc.iceGatheringState == "complete":
                self._gathering_complete.set()

    @classmethod
    def create(cls, configuration: Optional[RTCConfiguration] = None) -> "AiortcEngine":
        return cls(RTCPeerConnection(configuration=configuration))

    @property
    def peer_connection(self) -> RTCPeerConnection:
        return self._pc

    @property
    def local_description(self) -> Optional[SessionDescription]:
        description = self._pc.localDescription
        if description is None:
            return None
        return SessionDescription(sdp=description.sdp, type=description.type)

    async def add_receive_only_track(self, kind: MediaKind) -> None:
        try:
            self._pc.addTransceiver(MediaKind(kind).value, direction="recvonly")
        except Exception as exc:
            raise EngineSetupError(f"Failed to add recvonly {kind} transceiver: {exc}") from exc

    async def create_offer(self) -> SessionDescription:
        if not self._pc.getTransceivers():
            raise OfferCreationError("No transceivers attached before offer creation")
        try:
            offer = await self._pc.createOffer()
            # aiortc gathers candidates while applying the local description
            await self._pc.setLocalDescription(offer)
        except Exception as exc:
            raise OfferCreationError(f"Failed to create offer: {exc}") from exc
        return self.local_description

    async def wait_for_gathering_complete(self) -> None:
        if self._gathering_awaited:
            raise EngineError("ICE gathering completion was already awaited")
        self._gathering_awaited = True
        if self._pc.iceGatheringState == "complete":
            self._gathering_complete.set()
        await self._gathering_complete.wait()

    async def set_remote_answer(self, description: SessionDescription) -> None:
        try:
            await self._pc.setRemoteDescription(
                RTCSessionDescription(sdp=description.sdp, type=description.type)
            )
        except Exception as exc:
            raise RemoteDescriptionRejected(f"Remote answer rejected: {exc}") from exc

    async def close(self) -> None:
        try:
            await self._pc.close()
        except Exception as exc:
            raise EngineCloseError(f"Failed to close peer connection: {exc}") from exc


__all__ = ["AiortcEngine", "MediaKind", "NegotiationEngine", "SessionDescription"]
