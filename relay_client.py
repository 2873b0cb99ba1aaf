"""Headless relay client, no browser needed.

Speaks the same JSON protocol as the voice chat page.

Usage:
    client = RelayClient('alice')
    await client.connect('ws://localhost:3000')
    await client.join()
    msg = await client.receive(timeout=5)   # {'type': 'participants-list', ...}
    await client.offer('bob', sdp)
    await client.close()
"""
import asyncio, json, logging
import websockets
from websockets.exceptions import ConnectionClosed

import protocol

logger = logging.getLogger(__name__)


class RelayClient:
    def __init__(self, gamertag: str):
        self.gamertag = gamertag
        self.ws = None
        self._msg_queue: asyncio.Queue = asyncio.Queue()
        self._reader = None
        self._heartbeat = None

    async def connect(self, url: str):
        self.ws = await websockets.connect(url)
        self._reader = asyncio.ensure_future(self._read_loop())

    async def _read_loop(self):
        try:
            async for raw in self.ws:
                try:
                    msg = json.loads(raw)
                except ValueError as e:
                    logger.warning('[%s] unparsable frame from relay: %s', self.gamertag, e)
                    continue
                await self._msg_queue.put(msg)
        except ConnectionClosed:
            pass

    async def _send(self, msg: dict):
        await self.ws.send(protocol.encode(msg))

    # ============ PUBLIC API ============

    async def join(self):
        await self._send({'type': protocol.JOIN, 'gamertag': self.gamertag})

    async def leave(self):
        await self._send({'type': protocol.LEAVE})

    async def request_participants(self):
        await self._send({'type': protocol.REQUEST_PARTICIPANTS})

    async def heartbeat(self):
        await self._send({'type': protocol.HEARTBEAT})

    async def signal(self, kind: str, to: str, **fields):
        """Send a signaling message; extra fields ride along untouched."""
        await self._send({'type': kind, 'from': self.gamertag, 'to': to, **fields})

    async def offer(self, to: str, sdp: str):
        await self.signal(protocol.OFFER, to, sdp=sdp)

    async def answer(self, to: str, sdp: str):
        await self.signal(protocol.ANSWER, to, sdp=sdp)

    async def ice_candidate(self, to: str, candidate: dict):
        await self.signal(protocol.ICE_CANDIDATE, to, candidate=candidate)

    def start_heartbeat(self, interval: float = 30.0):
        async def beat():
            try:
                while True:
                    await asyncio.sleep(interval)
                    await self.heartbeat()
            except ConnectionClosed:
                pass
        if self._heartbeat is None:
            self._heartbeat = asyncio.ensure_future(beat())

    async def receive(self, timeout: float = None) -> dict:
        """Receive next message. Blocks until one arrives."""
        if timeout is not None:
            return await asyncio.wait_for(self._msg_queue.get(), timeout)
        return await self._msg_queue.get()

    async def receive_type(self, kind: str, timeout: float = 5.0) -> dict:
        """Receive messages until one of the given type arrives; others are dropped."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            msg = await self.receive(timeout=max(deadline - loop.time(), 0.001))
            if msg.get('type') == kind:
                return msg

    def has_messages(self) -> bool:
        return not self._msg_queue.empty()

    @property
    def connected(self) -> bool:
        return self.ws is not None and self._reader is not None and not self._reader.done()

    async def close(self):
        for task in (self._heartbeat, self._reader):
            if task is not None:
                task.cancel()
        if self.ws is not None:
            await self.ws.close()
        for task in (self._heartbeat, self._reader):
            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._heartbeat = self._reader = None
