"""Headless WebRTC peer that negotiates through the relay.

The relay never reads the SDP; this module is the other half of the
handshake, the part a browser normally plays. Candidates are gathered up
front and shipped inside the SDP, trickled candidates from browsers are
added as they arrive.

Usage:
    client = RelayClient('alice')
    await client.connect('ws://localhost:3000')
    await client.join()
    peer = VoicePeer(client)
    await peer.call('bob')
    await peer.run()              # answers offers, applies answers/candidates
"""
import asyncio, contextlib, logging
from typing import Optional
from aiortc import RTCConfiguration, RTCIceServer, RTCPeerConnection, RTCSessionDescription
from aiortc.sdp import candidate_from_sdp

import protocol

logger = logging.getLogger(__name__)

DEFAULT_STUN = 'stun:stun.l.google.com:19302'


class VoicePeer:
    def __init__(self, client, ice_servers=None):
        self.client = client
        self.ice_servers = [DEFAULT_STUN] if ice_servers is None else list(ice_servers)
        self.pcs: dict = {}  # remote gamertag -> RTCPeerConnection
        self.channels: dict = {}  # remote gamertag -> data channel
        self.connected = asyncio.Event()

    def _create_pc(self, remote: str) -> RTCPeerConnection:
        config = RTCConfiguration(iceServers=[RTCIceServer(urls=[u]) for u in self.ice_servers])
        pc = RTCPeerConnection(config)
        self.pcs[remote] = pc

        @pc.on('datachannel')
        def on_dc(channel):
            self._setup_dc(remote, channel)

        @pc.on('connectionstatechange')
        def on_state():
            logger.info('[%s] connection to %s: %s', self.client.gamertag, remote, pc.connectionState)
        return pc

    def _setup_dc(self, remote: str, channel):
        self.channels[remote] = channel

        @channel.on('open')
        def on_open():
            self.connected.set()

        if getattr(channel, 'readyState', None) == 'open':
            self.connected.set()

    async def _local_sdp(self, pc: RTCPeerConnection, timeout: float = 5.0) -> str:
        """Local SDP once candidate gathering has finished, or after timeout."""
        if pc.iceGatheringState != 'complete':
            gathered = asyncio.Event()

            def on_gathering():
                if pc.iceGatheringState == 'complete':
                    gathered.set()

            pc.on('icegatheringstatechange', on_gathering)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(gathered.wait(), timeout)
        return pc.localDescription.sdp

    # ============ HANDSHAKE ============

    async def call(self, remote: str) -> str:
        """Open a data channel to remote and send the offer. Returns the SDP."""
        pc = self._create_pc(remote)
        self._setup_dc(remote, pc.createDataChannel('voice', ordered=True))
        offer = await pc.createOffer()
        await pc.setLocalDescription(offer)
        sdp = await self._local_sdp(pc)
        await self.client.offer(remote, sdp)
        return sdp

    async def on_offer(self, msg: dict):
        remote = msg['from']
        pc = self.pcs.get(remote) or self._create_pc(remote)
        await pc.setRemoteDescription(RTCSessionDescription(sdp=msg['sdp'], type='offer'))
        answer = await pc.createAnswer()
        await pc.setLocalDescription(answer)
        await self.client.answer(remote, await self._local_sdp(pc))

    async def on_answer(self, msg: dict):
        pc = self.pcs.get(msg['from'])
        if pc is None:
            logger.warning('[%s] answer from %s without a pending call', self.client.gamertag, msg['from'])
            return
        await pc.setRemoteDescription(RTCSessionDescription(sdp=msg['sdp'], type='answer'))

    async def on_ice_candidate(self, msg: dict):
        pc = self.pcs.get(msg['from'])
        cand = msg.get('candidate') or {}
        if pc is None or not cand.get('candidate'):
            return
        line = cand['candidate']
        if line.startswith('candidate:'):
            line = line[len('candidate:'):]
        candidate = candidate_from_sdp(line)
        candidate.sdpMid = cand.get('sdpMid')
        candidate.sdpMLineIndex = cand.get('sdpMLineIndex')
        await pc.addIceCandidate(candidate)

    async def handle(self, msg: dict) -> bool:
        """Apply one relayed message. Returns False for non-signaling messages."""
        kind = msg.get('type')
        if kind == protocol.OFFER:
            await self.on_offer(msg)
        elif kind == protocol.ANSWER:
            await self.on_answer(msg)
        elif kind == protocol.ICE_CANDIDATE:
            await self.on_ice_candidate(msg)
        else:
            return False
        return True

    async def run(self, timeout: Optional[float] = None):
        """Feed relayed messages into the peer connections until timeout."""
        try:
            while True:
                await self.handle(await self.client.receive(timeout=timeout))
        except asyncio.TimeoutError:
            pass

    def send(self, remote: str, text: str) -> bool:
        channel = self.channels.get(remote)
        if channel is None or channel.readyState != 'open':
            return False
        channel.send(text)
        return True

    async def close(self):
        for pc in self.pcs.values():
            await pc.close()
        self.pcs.clear()
        self.channels.clear()
