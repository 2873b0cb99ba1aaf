"""One live WebSocket as seen by the relay core.

Each connection owns a bounded outbox drained by its own writer task, so a
slow client backs up only its own queue and never the fan-out loop.
"""
import asyncio, itertools, logging
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

logger = logging.getLogger(__name__)

_ids = itertools.count(1)

DEFAULT_OUTBOX_SIZE = 256


class Connection:
    def __init__(self, ws, outbox_size: int = DEFAULT_OUTBOX_SIZE):
        self.id = next(_ids)
        self.ws = ws
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_size)
        self._writer = None
        self._closed = False

    def __repr__(self):
        return f'<Connection #{self.id}>'

    @property
    def remote(self) -> str:
        addr = getattr(self.ws, 'remote_address', None)
        if not addr:
            return '?'
        return f'{addr[0]}:{addr[1]}'

    @property
    def is_open(self) -> bool:
        return not self._closed and self.ws.state is State.OPEN

    def start(self):
        """Spawn the writer task. Must be called from the event loop."""
        if self._writer is None:
            self._writer = asyncio.ensure_future(self._pump())

    def deliver(self, text: str) -> bool:
        """Queue one frame. Never blocks; returns False if it was not accepted."""
        if not self.is_open:
            return False
        try:
            self._outbox.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning('Outbox full for %r (%s), dropping frame', self, self.remote)
            return False
        return True

    async def _pump(self):
        while True:
            text = await self._outbox.get()
            try:
                await self.ws.send(text)
            except ConnectionClosed:
                self._closed = True
                return

    async def close(self):
        """Mark closed and stop the writer. Unsent frames are discarded."""
        self._closed = True
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None

