from conftest import FakeConnection


def test_no_replay_before_first_update(publisher):
    conn = FakeConnection()
    assert publisher.current is None
    assert publisher.on_new_connection(conn) is False
    assert conn.sent == []


def test_update_reaches_every_live_connection_once(publisher, registry):
    joined, lurker, gone = FakeConnection(), FakeConnection(), FakeConnection(is_open=False)
    for c in (joined, lurker, gone):
        registry.attach(c)
    registry.put(joined, 'alice')

    blob = {'players': [{'name': 'alice', 'x': 1.5, 'y': 64, 'z': -3}]}
    assert publisher.update(blob) == 2

    for c in (joined, lurker):
        assert c.messages == [{'type': 'minecraft-update', 'data': blob}]
    assert gone.sent == []


def test_new_connection_gets_latest_blob(publisher, registry):
    publisher.update({'tick': 1})
    publisher.update({'tick': 2})

    late = FakeConnection()
    assert publisher.on_new_connection(late) is True
    assert late.messages == [{'type': 'minecraft-update', 'data': {'tick': 2}}]
    assert publisher.current == {'tick': 2}


def test_detached_connection_misses_update(publisher, registry):
    conn = FakeConnection()
    registry.attach(conn)
    registry.detach(conn)
    publisher.update({'tick': 3})
    assert conn.sent == []


def test_empty_blob_is_still_a_snapshot(publisher):
    publisher.update({})
    conn = FakeConnection()
    assert publisher.on_new_connection(conn) is True
    assert conn.messages == [{'type': 'minecraft-update', 'data': {}}]
