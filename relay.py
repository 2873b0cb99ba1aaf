#!/usr/bin/env python3
"""Voice chat relay for Minecraft proximity chat.

WebSocket side: presence (join/leave), participant lists and targeted
WebRTC signaling between players. HTTP side: POST /minecraft-data stores
the latest world snapshot and pushes it to every connected client.
"""
import argparse, asyncio, logging, os
from dataclasses import dataclass
from typing import Optional

import websockets
from aiohttp import web
from websockets.exceptions import ConnectionClosed

import protocol
from connection import Connection, DEFAULT_OUTBOX_SIZE
from presence import PresenceBroadcaster
from registry import ConnectionRegistry
from signaling import SignalingRouter
from snapshot import SnapshotPublisher

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(levelname)s %(message)s'


@dataclass
class RelayConfig:
    host: str = '0.0.0.0'
    port: int = 3000
    http_port: int = 3001
    static_dir: Optional[str] = None
    outbox_size: int = DEFAULT_OUTBOX_SIZE
    log_level: str = 'INFO'


class Relay:
    def __init__(self, config: Optional[RelayConfig] = None):
        self.config = config or RelayConfig()
        self.registry = ConnectionRegistry()
        self.presence = PresenceBroadcaster(self.registry)
        self.router = SignalingRouter(self.registry)
        self.snapshots = SnapshotPublisher(self.registry)

    # ============ CORE ENTRY POINTS ============

    def open(self, conn):
        # Attach and replay in one step so a concurrent update can't reach
        # conn twice or slip in ahead of the replay.
        with self.registry.lock:
            self.registry.attach(conn)
            self.snapshots.on_new_connection(conn)

    def close(self, conn):
        self.registry.detach(conn)
        self.presence.on_leave(conn, explicit=False)

    def dispatch(self, conn, raw):
        """Handle one inbound frame. Never raises; failures are only logged."""
        if isinstance(raw, bytes):
            try:
                raw = raw.decode('utf-8')
            except UnicodeDecodeError:
                logger.error('Error processing message from %r: binary frame is not UTF-8', conn)
                return
        try:
            msg = protocol.parse_message(raw)
        except protocol.MalformedMessage as e:
            logger.error('Error processing message from %r: %s', conn, e)
            return

        kind = msg['type']
        try:
            if kind == protocol.JOIN:
                handle = msg.get('gamertag')
                if not isinstance(handle, str) or not handle:
                    logger.warning('Dropping join without gamertag from %r', conn)
                    return
                self.presence.on_join(conn, handle)
            elif kind == protocol.LEAVE:
                self.presence.on_leave(conn, explicit=True)
            elif kind in protocol.SIGNAL_TYPES:
                self.router.route(msg, raw)
            elif kind == protocol.HEARTBEAT:
                pass
            elif kind == protocol.REQUEST_PARTICIPANTS:
                self.presence.on_participants_request(conn)
            else:
                logger.debug('Ignoring %r message from %r', kind, conn)
        except Exception:
            logger.exception('Error processing %s from %r', kind, conn)

    # ============ WEBSOCKET ============

    async def handle(self, ws):
        """Handle one WebSocket connection."""
        conn = Connection(ws, self.config.outbox_size)
        conn.start()
        self.open(conn)
        logger.info('Client connected %r from %s', conn, conn.remote)
        try:
            async for raw in ws:
                self.dispatch(conn, raw)
        except ConnectionClosed:
            pass
        finally:
            self.close(conn)
            await conn.close()
            logger.info('Client closed %r', conn)

    # ============ HTTP ============

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post('/minecraft-data', self.ingest)
        if self.config.static_dir:
            app.router.add_get('/', self.serve_index)
            app.router.add_static('/static/', self.config.static_dir)
        return app

    async def ingest(self, request: web.Request) -> web.Response:
        try:
            blob = await request.json()
        except (ValueError, RecursionError):
            logger.warning('Rejected Minecraft data from %s: body is not JSON', request.remote)
            return web.json_response({'success': False}, status=400)
        if not isinstance(blob, (dict, list)):
            logger.warning('Rejected Minecraft data from %s: expected an object or array, got %s',
                           request.remote, type(blob).__name__)
            return web.json_response({'success': False}, status=400)
        sent = self.snapshots.update(blob)
        logger.info('Minecraft data received, pushed to %d client(s)', sent)
        return web.json_response({'success': True})

    async def serve_index(self, request: web.Request) -> web.StreamResponse:
        index = os.path.join(self.config.static_dir, 'index.html')
        if not os.path.isfile(index):
            raise web.HTTPNotFound()
        return web.FileResponse(index)

    async def serve(self):
        """Run the WebSocket relay and the HTTP app until cancelled."""
        cfg = self.config
        runner = web.AppRunner(self.create_app())
        await runner.setup()
        try:
            await web.TCPSite(runner, cfg.host, cfg.http_port).start()
            async with websockets.serve(self.handle, cfg.host, cfg.port):
                logger.info('WebSocket: ws://%s:%d', cfg.host, cfg.port)
                logger.info('Minecraft endpoint: POST http://%s:%d/minecraft-data', cfg.host, cfg.http_port)
                await asyncio.Future()  # run forever
        finally:
            await runner.cleanup()


def parse_args(argv=None) -> RelayConfig:
    p = argparse.ArgumentParser(description='Minecraft voice chat relay')
    p.add_argument('--host', default=os.getenv('RELAY_HOST', '0.0.0.0'))
    p.add_argument('--port', type=int, default=int(os.getenv('RELAY_PORT', '3000')),
                   help='WebSocket port')
    p.add_argument('--http-port', type=int, default=int(os.getenv('RELAY_HTTP_PORT', '3001')),
                   help='port for POST /minecraft-data and static files')
    p.add_argument('--static-dir', default=os.getenv('RELAY_STATIC_DIR') or None,
                   help='serve files from this directory over HTTP')
    p.add_argument('--outbox-size', type=int,
                   default=int(os.getenv('RELAY_OUTBOX_SIZE', str(DEFAULT_OUTBOX_SIZE))),
                   help='frames buffered per client before dropping')
    p.add_argument('--log-level', default=os.getenv('RELAY_LOG_LEVEL', 'INFO'))
    args = p.parse_args(argv)
    return RelayConfig(
        host=args.host,
        port=args.port,
        http_port=args.http_port,
        static_dir=args.static_dir,
        outbox_size=args.outbox_size,
        log_level=args.log_level.upper(),
    )


def main(argv=None):
    config = parse_args(argv)
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)
    try:
        asyncio.run(Relay(config).serve())
    except KeyboardInterrupt:
        pass


if __name__ == '__main__':
    main()
