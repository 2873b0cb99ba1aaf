"""Connection registry: live connections plus the connection -> participant map.

Connections are keyed by their integer id. The registry never owns the
transport; it only holds references until the transport reports close.
"""
import threading
from dataclasses import dataclass
from typing import Optional


@dataclass
class Participant:
    handle: str
    connection: object


class ConnectionRegistry:
    def __init__(self):
        # Held by compound operations (join, snapshot update) while they copy
        # the targets they fan out to. Sends happen after release.
        self.lock = threading.RLock()
        self._live: dict = {}          # conn id -> Connection
        self._participants: dict = {}  # conn id -> Participant

    # ---- arena of live connections ----

    def attach(self, conn):
        with self.lock:
            self._live[conn.id] = conn

    def detach(self, conn):
        with self.lock:
            self._live.pop(conn.id, None)

    def live(self) -> list:
        with self.lock:
            return list(self._live.values())

    # ---- participants ----

    def put(self, conn, handle: str) -> Participant:
        """Bind conn to handle, replacing any previous binding for conn."""
        with self.lock:
            p = Participant(handle, conn)
            self._participants[conn.id] = p
            return p

    def remove(self, conn) -> Optional[Participant]:
        with self.lock:
            return self._participants.pop(conn.id, None)

    def find_by_handle(self, handle: str):
        """First connection registered under handle. Handles are not unique."""
        with self.lock:
            for p in self._participants.values():
                if p.handle == handle:
                    return p.connection
            return None

    def handle_of(self, conn) -> Optional[str]:
        with self.lock:
            p = self._participants.get(conn.id)
            return p.handle if p else None

    def snapshot(self) -> list:
        with self.lock:
            return [p.handle for p in self._participants.values()]

    def registered(self) -> list:
        with self.lock:
            return [p.connection for p in self._participants.values()]

    def __len__(self):
        with self.lock:
            return len(self._participants)

    def __contains__(self, conn):
        with self.lock:
            return conn.id in self._participants
