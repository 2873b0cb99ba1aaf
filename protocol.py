"""Wire format of the relay: JSON objects with a 'type' field."""
import json

JOIN = 'join'
LEAVE = 'leave'
OFFER = 'offer'
ANSWER = 'answer'
ICE_CANDIDATE = 'ice-candidate'
HEARTBEAT = 'heartbeat'
REQUEST_PARTICIPANTS = 'request-participants'
PARTICIPANTS_LIST = 'participants-list'
MINECRAFT_UPDATE = 'minecraft-update'

SIGNAL_TYPES = frozenset({OFFER, ANSWER, ICE_CANDIDATE})


class MalformedMessage(ValueError):
    """Inbound frame that is not a JSON object with a string 'type'."""


def parse_message(raw) -> dict:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError, RecursionError) as e:
        raise MalformedMessage(f'not valid JSON: {e}') from e
    if not isinstance(data, dict):
        raise MalformedMessage(f'expected an object, got {type(data).__name__}')
    if not isinstance(data.get('type'), str):
        raise MalformedMessage('missing message type')
    return data


def encode(msg: dict) -> str:
    return json.dumps(msg)


def join_notice(handle: str) -> dict:
    return {'type': JOIN, 'gamertag': handle}


def leave_notice(handle: str) -> dict:
    return {'type': LEAVE, 'gamertag': handle}


def participants_list(handles) -> dict:
    return {'type': PARTICIPANTS_LIST, 'list': list(handles)}


def snapshot_update(blob) -> dict:
    return {'type': MINECRAFT_UPDATE, 'data': blob}
