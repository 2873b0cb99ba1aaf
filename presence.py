"""Presence: join / leave notifications and participant lists."""
import logging
import protocol

logger = logging.getLogger(__name__)


def fanout(targets, msg: dict) -> int:
    """Best-effort send of msg to every target. Returns how many accepted it."""
    text = protocol.encode(msg)
    sent = 0
    for conn in targets:
        if conn.deliver(text):
            sent += 1
        else:
            logger.debug('Skipping %r for %s: not ready', conn, msg['type'])
    return sent


class PresenceBroadcaster:
    def __init__(self, registry):
        self.registry = registry

    def on_join(self, conn, handle: str):
        with self.registry.lock:
            self.registry.put(conn, handle)
            others = [c for c in self.registry.registered() if c is not conn]
            roster = self.registry.snapshot()
        logger.info('%s joined (%r)', handle, conn)

        # Others hear about the joiner before the joiner gets the roster.
        fanout(others, protocol.join_notice(handle))
        conn.deliver(protocol.encode(protocol.participants_list(roster)))

    def on_leave(self, conn, explicit: bool = True):
        """Unregister conn and tell the remaining participants.

        explicit is True for a 'leave' message and False when the transport
        closed. Only the explicit path excludes the sender by identity; after
        a close the sender is already gone.
        """
        with self.registry.lock:
            p = self.registry.remove(conn)
            if p is None:
                return None
            targets = self.registry.registered()
        if explicit:
            targets = [c for c in targets if c is not conn]
            logger.info('%s left', p.handle)
        else:
            logger.info('%s disconnected', p.handle)
        fanout(targets, protocol.leave_notice(p.handle))
        return p

    def on_participants_request(self, conn):
        roster = self.registry.snapshot()
        conn.deliver(protocol.encode(protocol.participants_list(roster)))
