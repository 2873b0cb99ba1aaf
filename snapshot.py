"""Cache of the latest Minecraft data blob, replayed to every new connection."""
import logging
import protocol
from presence import fanout

logger = logging.getLogger(__name__)


class SnapshotPublisher:
    def __init__(self, registry):
        self.registry = registry
        self._blob = None

    @property
    def current(self):
        return self._blob

    def update(self, blob) -> int:
        """Store blob and push it to every live connection, joined or not."""
        with self.registry.lock:
            self._blob = blob
            targets = self.registry.live()
        return fanout(targets, protocol.snapshot_update(blob))

    def on_new_connection(self, conn) -> bool:
        """Replay the cached blob to conn. Call before anything else is sent to it."""
        with self.registry.lock:
            blob = self._blob
        if blob is None:
            return False
        return conn.deliver(protocol.encode(protocol.snapshot_update(blob)))
