"""
Command line viewer: pull a stream from a WHEP endpoint for a while.

    whep-client https://example.com/whep --duration 30 --record out.mp4
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from aiortc.contrib.media import MediaBlackhole, MediaRecorder

from .client import WhepClient
from .config import PeerConnectionConfig, default_pc_config_url, default_server_url, fetch_pc_config
from .errors import WhepError
from .utils import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="whep-client",
        description="Receive audio/video from a WHEP endpoint",
    )
    parser.add_argument(
        "url", nargs="?", default=default_server_url(),
        help="WHEP endpoint URL (default: $WHEP_URL)",
    )
    parser.add_argument(
        "--pc-config-url", default=default_pc_config_url(),
        help="URL of a JSON peer connection config with ICE servers (default: $WHEP_PC_CONFIG_URL)",
    )
    parser.add_argument(
        "--stun", action="append", default=[],
        help="STUN/TURN server URL, may be repeated; ignored with --pc-config-url",
    )
    parser.add_argument(
        "--duration", type=float, default=30.0,
        help="Seconds to keep the session open",
    )
    parser.add_argument(
        "--record", metavar="PATH",
        help="Write received media to PATH instead of discarding it",
    )
    parser.add_argument(
        "--timeout", type=float, default=None,
        help="Give up connecting/disconnecting after this many seconds",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def load_config(args) -> PeerConnectionConfig:
    if args.pc_config_url:
        return fetch_pc_config(args.pc_config_url)
    return PeerConnectionConfig.from_stun_urls(args.stun)


async def run_viewer(args, config: PeerConnectionConfig) -> None:
    client = WhepClient.create(args.url, config.to_rtc_configuration())
    pc = client.engine.peer_connection
    sink = MediaRecorder(args.record) if args.record else MediaBlackhole()

    @pc.on("track")
    def on_track(track):
        logger.info("Received %s track", track.kind)
        sink.addTrack(track)

        @track.on("ended")
        def on_ended():
            logger.info("%s track ended", track.kind)

    @pc.on("connectionstatechange")
    def on_connectionstatechange():
        logger.info("Connection state is %s", pc.connectionState)

    @pc.on("iceconnectionstatechange")
    def on_iceconnectionstatechange():
        logger.info("ICE connection state is %s", pc.iceConnectionState)

    await client.connect(timeout=args.timeout)
    try:
        await sink.start()
        logger.info("Keeping the session open for %s seconds", args.duration)
        await asyncio.sleep(args.duration)
    finally:
        try:
            await sink.stop()
        finally:
            await client.disconnect(timeout=args.timeout)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.url:
        parser.error("a WHEP endpoint URL is required (argument or $WHEP_URL)")

    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    try:
        config = load_config(args)
        asyncio.run(run_viewer(args, config))
    except KeyboardInterrupt:
        logger.info("Client stopped by user.")
        return 130
    except WhepError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
