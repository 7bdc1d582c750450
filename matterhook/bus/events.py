"""Records decoded from the Matterbridge stream."""

import json
from dataclasses import dataclass, fields
from typing import Any

from matterhook.errors import RecordDecodeError


@dataclass(frozen=True)
class Message:
    """A chat message received from the gateway.

    Field order matches the wire object sent to the webhook.
    """

    text: str = ""
    channel: str = ""
    username: str = ""
    userid: str = ""
    avatar: str = ""
    account: str = ""
    event: str = ""           # Non-empty for join/leave and other control events
    protocol: str = ""
    gateway: str = ""
    parent_id: str = ""
    timestamp: str = ""
    id: str = ""

    @property
    def is_event(self) -> bool:
        return self.event != ""

    def to_dict(self) -> dict[str, str]:
        """Wire representation, keys in declaration order."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class GatewayEvent:
    """A control event (join, leave, ...) that must never be forwarded."""

    name: str
    record: Message


Record = Message | GatewayEvent

_FIELD_NAMES = tuple(f.name for f in fields(Message))


def decode_record(line: str | bytes) -> Record:
    """Decode one stream line into a chat message or a gateway event.

    Unknown keys are ignored and missing or null keys become empty strings.
    Raises RecordDecodeError for anything that is not a JSON object of
    string fields.
    """
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise RecordDecodeError(f"invalid utf-8: {e}", repr(line)) from e

    try:
        data: Any = json.loads(line)
    except json.JSONDecodeError as e:
        raise RecordDecodeError(f"invalid json: {e}", line) from e

    if not isinstance(data, dict):
        raise RecordDecodeError(
            f"expected a json object, got {type(data).__name__}", line
        )

    values: dict[str, str] = {}
    for name in _FIELD_NAMES:
        value = data.get(name)
        if value is None:
            continue
        if not isinstance(value, str):
            raise RecordDecodeError(
                f"field {name!r} must be a string, got {type(value).__name__}", line
            )
        values[name] = value

    msg = Message(**values)
    if msg.is_event:
        return GatewayEvent(name=msg.event, record=msg)
    return msg
