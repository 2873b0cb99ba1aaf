import asyncio
import pytest

pytest.importorskip('aiortc')

from voice_peer import VoicePeer


class FakeClient:
    """Captures what a VoicePeer would send through the relay."""

    def __init__(self, gamertag):
        self.gamertag = gamertag
        self.sent = []

    async def offer(self, to, sdp):
        self.sent.append({'type': 'offer', 'from': self.gamertag, 'to': to, 'sdp': sdp})

    async def answer(self, to, sdp):
        self.sent.append({'type': 'answer', 'from': self.gamertag, 'to': to, 'sdp': sdp})


@pytest.mark.asyncio
async def test_offer_answer_exchange():
    alice_client, bob_client = FakeClient('alice'), FakeClient('bob')
    alice = VoicePeer(alice_client, ice_servers=[])
    bob = VoicePeer(bob_client, ice_servers=[])
    try:
        sdp = await alice.call('bob')
        assert sdp.startswith('v=0')
        offer = alice_client.sent[-1]
        assert offer['type'] == 'offer' and offer['to'] == 'bob'

        assert await bob.handle(offer) is True
        answer = bob_client.sent[-1]
        assert answer['type'] == 'answer' and answer['to'] == 'alice'
        assert answer['sdp'].startswith('v=0')

        assert await alice.handle(answer) is True
        assert alice.pcs['bob'].remoteDescription.type == 'answer'
    finally:
        await alice.close()
        await bob.close()


@pytest.mark.asyncio
async def test_stray_messages_are_ignored(caplog):
    peer = VoicePeer(FakeClient('alice'), ice_servers=[])
    assert await peer.handle({'type': 'participants-list', 'list': []}) is False
    assert await peer.handle({'type': 'answer', 'from': 'bob', 'sdp': 'v=0'}) is True
    assert 'without a pending call' in caplog.text
    assert await peer.handle({'type': 'ice-candidate', 'from': 'bob', 'candidate': {}}) is True
    assert peer.send('bob', 'hello') is False
    await peer.close()


class ScriptedClient(FakeClient):
    def __init__(self, gamertag, inbox):
        super().__init__(gamertag)
        self.inbox = list(inbox)

    async def receive(self, timeout=None):
        if not self.inbox:
            raise asyncio.TimeoutError
        return self.inbox.pop(0)


@pytest.mark.asyncio
async def test_run_answers_incoming_offer():
    alice_client = FakeClient('alice')
    alice = VoicePeer(alice_client, ice_servers=[])
    await alice.call('bob')

    bob_client = ScriptedClient('bob', [{'type': 'join', 'gamertag': 'carol'}, alice_client.sent[-1]])
    bob = VoicePeer(bob_client, ice_servers=[])
    try:
        await bob.run(timeout=1)
        assert [m['type'] for m in bob_client.sent] == ['answer']
        assert 'alice' in bob.pcs
    finally:
        await alice.close()
        await bob.close()
