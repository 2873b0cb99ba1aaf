"""Targeted relay of WebRTC signaling (offer / answer / ice-candidate).

Only 'type', 'from' and 'to' are read. The frame is forwarded as the raw
text it arrived in, so negotiation fields reach the peer untouched.
"""
import logging

logger = logging.getLogger(__name__)


class SignalingRouter:
    def __init__(self, registry):
        self.registry = registry

    def route(self, msg: dict, raw: str) -> bool:
        kind, src, dst = msg.get('type'), msg.get('from'), msg.get('to')
        if not src or not dst:
            logger.warning("Dropping %s without 'to' or 'from'", kind)
            return False

        target = self.registry.find_by_handle(dst)
        if target is None or not target.deliver(raw):
            logger.warning('Dropping %s from %s: recipient %s not found', kind, src, dst)
            return False

        logger.info('%s %s -> %s', kind, src, dst)
        return True
