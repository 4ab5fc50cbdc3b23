"""
WHEP session controller.

A ``WhepClient`` turns a WHEP endpoint into a receive-only WebRTC session with
exactly two HTTP requests: a POST carrying the complete (non-trickle) offer and,
later, a DELETE against the resource URL the server returned in ``Location``.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Optional

import aiohttp
from aiortc import RTCConfiguration
from yarl import URL

from .engine import AiortcEngine, MediaKind, NegotiationEngine, SessionDescription
from .errors import (
    EngineError,
    EngineSetupError,
    InvalidServerURL,
    InvalidSessionState,
    MissingLocationHeader,
    ProtocolViolation,
    RemoteDescriptionRejected,
    ResourceCleanupFailed,
    TransportError,
    UnexpectedStatus,
)

logger = logging.getLogger(__name__)

SDP_CONTENT_TYPE = "application/sdp"


class SessionState(str, Enum):
    IDLE = "idle"
    NEGOTIATING = "negotiating"
    CONNECTED = "connected"
    CLOSED = "closed"


def parse_server_url(url) -> URL:
    """Return ``url`` as an absolute http(s) ``URL`` or raise ``InvalidServerURL``."""

    try:
        parsed = URL(url)
    except (TypeError, ValueError) as exc:
        raise InvalidServerURL(url) from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise InvalidServerURL(url)
    return parsed


class WhepClient:
    """
    Drives one WHEP session: ``IDLE -> NEGOTIATING -> CONNECTED -> CLOSED``.

    The client is single use.  Whatever happens during ``connect`` or
    ``disconnect``, the engine is closed and the client ends up ``CLOSED``; a new
    attempt needs a new client and a fresh engine.  Calls must not overlap.

    ``session`` is an optional ``aiohttp.ClientSession`` borrowed for the HTTP
    exchanges; without it a short-lived session is opened per request.
    """

    def __init__(
        self,
        server_url: str,
        engine: NegotiationEngine,
        *,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._server_url = parse_server_url(server_url)
        self._engine = engine
        self._session = session
        self._state = SessionState.IDLE
        self._resource_url: Optional[str] = None

    @classmethod
    def create(
        cls,
        server_url: str,
        configuration: Optional[RTCConfiguration] = None,
        **kwargs,
    ) -> "WhepClient":
        """Build a client that owns a new aiortc peer connection."""

        parse_server_url(server_url)
        return cls(server_url, AiortcEngine.create(configuration), **kwargs)

    @property
    def server_url(self) -> str:
        return str(self._server_url)

    @property
    def resource_url(self) -> Optional[str]:
        return self._resource_url

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def engine(self) -> NegotiationEngine:
        return self._engine

    async def __aenter__(self) -> "WhepClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._state is SessionState.CONNECTED:
            await self.disconnect()

    async def connect(self, timeout: Optional[float] = None) -> None:
        """
        Negotiate the session with the WHEP endpoint.

        On any failure, timeout or cancellation the engine is closed and the
        client moves to ``CLOSED`` without a resource URL.  ``timeout`` bounds the
        whole attempt, gathering included.
        """

        if self._state is not SessionState.IDLE:
            raise InvalidSessionState(f"Cannot connect while {self._state.value}")

        self._set_state(SessionState.NEGOTIATING)
        try:
            resource_url = await asyncio.wait_for(self._negotiate(), timeout)
        except asyncio.TimeoutError as exc:
            await self._abort()
            raise TransportError(f"Timed out connecting to {self.server_url}") from exc
        except BaseException:
            await self._abort()
            raise

        self._resource_url = resource_url
        self._set_state(SessionState.CONNECTED)
        logger.info("WHEP session established, resource at %s", resource_url)

    async def disconnect(self, timeout: Optional[float] = None) -> None:
        """
        Close the engine, then DELETE the server resource.

        The client is ``CLOSED`` afterwards even when the DELETE fails, in which
        case ``ResourceCleanupFailed`` is raised.  If only the engine failed to
        close, its ``EngineCloseError`` is raised once the DELETE is done.
        """

        if self._state is not SessionState.CONNECTED:
            raise InvalidSessionState(f"Cannot disconnect while {self._state.value}")

        resource_url = self._resource_url
        close_error = None
        try:
            try:
                await self._engine.close()
            except EngineError as exc:
                logger.warning("Engine close failed, removing server resource anyway: %s", exc)
                close_error = exc

            try:
                status = await asyncio.wait_for(self._delete_resource(resource_url), timeout)
            except (TransportError, asyncio.TimeoutError) as exc:
                raise ResourceCleanupFailed(resource_url, close_error=close_error) from exc
            if status != 200:
                raise ResourceCleanupFailed(resource_url, status, close_error) from close_error
        finally:
            self._resource_url = None
            self._set_state(SessionState.CLOSED)

        if close_error is not None:
            raise close_error
        logger.info("WHEP resource %s removed", resource_url)

    async def _negotiate(self) -> str:
        for kind in (MediaKind.AUDIO, MediaKind.VIDEO):
            try:
                await self._engine.add_receive_only_track(kind)
            except EngineSetupError:
                raise
            except EngineError as exc:
                raise EngineSetupError(str(exc)) from exc

        await self._engine.create_offer()

        # Non-trickle: the offer only leaves once it carries every candidate.
        await self._engine.wait_for_gathering_complete()
        offer = self._engine.local_description

        status, location, body = await self._post_offer(offer.sdp)
        if status != 201:
            raise UnexpectedStatus(status, body.decode("utf-8", errors="replace"))
        if not location:
            raise MissingLocationHeader()
        try:
            resource_url = self._server_url.join(URL(location))
        except (TypeError, ValueError) as exc:
            raise ProtocolViolation(f"Invalid Location header: {location!r}") from exc

        try:
            answer = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RemoteDescriptionRejected("Answer is not valid UTF-8") from exc
        await self._engine.set_remote_answer(SessionDescription(sdp=answer, type="answer"))
        return str(resource_url)

    async def _abort(self) -> None:
        try:
            await self._engine.close()
        except EngineError:
            logger.warning("Engine close failed after aborted connect", exc_info=True)
        self._resource_url = None
        self._set_state(SessionState.CLOSED)

    @asynccontextmanager
    async def _http(self):
        if self._session is not None:
            yield self._session
        else:
            async with aiohttp.ClientSession() as session:
                yield session

    async def _post_offer(self, sdp: str):
        logger.debug("POST %s (%d bytes of SDP)", self.server_url, len(sdp))
        try:
            async with self._http() as session:
                async with session.post(
                    self.server_url, data=sdp, headers={"Content-Type": SDP_CONTENT_TYPE}
                ) as response:
                    body = await response.read()
                    logger.debug("POST %s -> %s", self.server_url, response.status)
                    return response.status, response.headers.get("Location"), body
        except aiohttp.ClientError as exc:
            raise TransportError(f"Offer request to {self.server_url} failed: {exc}") from exc

    async def _delete_resource(self, resource_url: str) -> int:
        try:
            async with self._http() as session:
                async with session.delete(resource_url) as response:
                    logger.debug("DELETE %s -> %s", resource_url, response.status)
                    return response.status
        except aiohttp.ClientError as exc:
            raise TransportError(f"Delete request to {resource_url} failed: {exc}") from exc

    def _set_state(self, state: SessionState) -> None:
        if state is not self._state:
            logger.info("WHEP session %s -> %s", self._state.value, state.value)
            self._state = state


__all__ = ["SDP_CONTENT_TYPE", "SessionState", "WhepClient", "parse_server_url"]
