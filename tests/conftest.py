"""Shared fixtures: WHEP endpoints (scripted and aiortc backed) and a recording fake engine."""

from __future__ import annotations

import asyncio
import itertools

import pytest
import pytest_asyncio
from aiohttp import test_utils, web
from aiortc import RTCPeerConnection, RTCSessionDescription

from whep_client.engine import SessionDescription
from whep_client.errors import EngineCloseError, EngineSetupError, OfferCreationError, RemoteDescriptionRejected

OFFER_SDP = "v=0\r\no=- 1 1 IN IP4 0.0.0.0\r\ns=-\r\nt=0 0\r\nm=audio 9 UDP/TLS/RTP/SAVPF 111\r\nm=video 9 UDP/TLS/RTP/SAVPF 96\r\n"
CANDIDATE_LINE = "a=candidate:1 1 udp 2130706431 192.0.2.10 50000 typ host\r\n"
ANSWER_SDP = "v=0\r\no=- 2 2 IN IP4 0.0.0.0\r\ns=-\r\nt=0 0\r\nm=audio 9 UDP/TLS/RTP/SAVPF 111\r\nm=video 9 UDP/TLS/RTP/SAVPF 96\r\n"


class FakeEngine:
    """In-memory engine that records every call into a shared event list."""

    def __init__(self, events):
        self.events = events
        self.calls = []
        self.close_count = 0
        self.remote_answer = None
        self.fail_add_track = False
        self.fail_offer = False
        self.fail_answer = False
        self.fail_close = False
        self.gathering_hangs = False
        self._local = None

    @property
    def local_description(self):
        return self._local

    async def add_receive_only_track(self, kind):
        self.calls.append(("add_receive_only_track", kind.value))
        if self.fail_add_track:
            raise EngineSetupError("engine already finalized")

    async def create_offer(self):
        self.calls.append(("create_offer",))
        if self.fail_offer:
            raise OfferCreationError("no codecs")
        self._local = SessionDescription(sdp=OFFER_SDP, type="offer")
        return self._local

    async def wait_for_gathering_complete(self):
        self.calls.append(("wait_for_gathering_complete",))
        if self.gathering_hangs:
            await asyncio.Event().wait()
        self._local = SessionDescription(sdp=self._local.sdp + CANDIDATE_LINE, type="offer")
        self.events.append("gathering-complete")

    async def set_remote_answer(self, description):
        self.calls.append(("set_remote_answer",))
        if self.fail_answer:
            raise RemoteDescriptionRejected("malformed answer")
        self.remote_answer = description

    async def close(self):
        self.calls.append(("close",))
        self.close_count += 1
        self.events.append("engine-close")
        if self.fail_close:
            raise EngineCloseError("close failed")


class WhepEndpoint:
    """Scripted responses and the requests a ``whep_server`` has seen."""

    def __init__(self, events):
        self.events = events
        self.post_status = 201
        self.location = "/whep/resource/1"
        self.answer = ANSWER_SDP
        self.delete_status = 200
        self.posts = []
        self.deletes = []
        self.url = None
        self.nested_url = None


@pytest.fixture
def events():
    return []


@pytest.fixture
def engine(events):
    return FakeEngine(events)


@pytest_asyncio.fixture
async def whep_server(events):
    endpoint = WhepEndpoint(events)

    async def offer(request):
        endpoint.events.append("POST")
        endpoint.posts.append(
            {"content_type": request.headers.get("Content-Type"), "body": await request.text()}
        )
        headers = {}
        if endpoint.location is not None:
            headers["Location"] = endpoint.location
        if isinstance(endpoint.answer, bytes):
            return web.Response(status=endpoint.post_status, body=endpoint.answer, headers=headers)
        return web.Response(status=endpoint.post_status, text=endpoint.answer, headers=headers)

    async def delete(request):
        endpoint.events.append("DELETE")
        endpoint.deletes.append(request.path)
        return web.Response(status=endpoint.delete_status)

    app = web.Application()
    app.router.add_post("/whep", offer)
    app.router.add_post("/api/whep", offer)
    app.router.add_delete("/whep/resource/{id}", delete)

    server = test_utils.TestServer(app)
    await server.start_server()
    endpoint.url = str(server.make_url("/whep"))
    endpoint.nested_url = str(server.make_url("/api/whep"))
    yield endpoint
    await server.close()


@pytest_asyncio.fixture
async def aiortc_whep_server():
    peers = {}
    deleted = []
    ids = itertools.count(1)

    async def offer(request):
        if request.content_type != "application/sdp":
            return web.Response(status=415, text="Expected application/sdp")

        pc = RTCPeerConnection()
        await pc.setRemoteDescription(RTCSessionDescription(sdp=await request.text(), type="offer"))

        gathering_complete = asyncio.Event()

        @pc.on("icegatheringstatechange")
        def on_icegatheringstatechange():
            if pc.iceGatheringState == "complete":
                gathering_complete.set()

        answer = await pc.createAnswer()
        await pc.setLocalDescription(answer)
        if pc.iceGatheringState != "complete":
            await asyncio.wait_for(gathering_complete.wait(), timeout=10.0)

        resource_id = str(next(ids))
        peers[resource_id] = pc
        return web.Response(
            status=201,
            text=pc.localDescription.sdp,
            content_type="application/sdp",
            headers={"Location": f"/whep/resource/{resource_id}"},
        )

    async def delete(request):
        deleted.append(request.match_info["id"])
        pc = peers.pop(request.match_info["id"], None)
        if pc is None:
            return web.Response(status=404)
        await pc.close()
        return web.Response(status=200)

    app = web.Application()
    app.router.add_post("/whep", offer)
    app.router.add_delete("/whep/resource/{id}", delete)

    server = test_utils.TestServer(app)
    await server.start_server()
    server.peers = peers
    server.deleted = deleted
    yield server
    for pc in peers.values():
        await pc.close()
    await server.close()

