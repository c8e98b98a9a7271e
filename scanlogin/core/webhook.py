"""
Webhook codec: signature verification for the platform callback and parsing
of the XML event payloads it delivers.
"""

import enum
import hashlib
import hmac
from xml.etree.ElementTree import ParseError

import defusedxml.ElementTree as ET
from defusedxml import DefusedXmlException
from pydantic import BaseModel

SUBSCRIBE_SCENE_PREFIX = "qrscene_"


class InvalidEvent(Exception):
    pass


class EventKind(str, enum.Enum):
    SUBSCRIBED = "subscribe"
    SCANNED = "scan"
    OTHER = "other"


class InboundEvent(BaseModel):
    to_user: str = ""
    subject_id: str = ""
    create_time: int = 0
    msg_type: str = ""
    event: str = ""
    scene_key: str = ""
    ticket: str = ""

    @property
    def kind(self) -> EventKind:
        if self.msg_type.strip().lower() != "event":
            return EventKind.OTHER

        match self.event.strip().lower():
            case "subscribe":
                return EventKind.SUBSCRIBED
            case "scan":
                return EventKind.SCANNED
            case _:
                return EventKind.OTHER

    def scene(self) -> str:
        """
        The scene this event refers to. Subscribe events carry the scene with
        a `qrscene_` prefix; scan events (already subscribed users) carry it
        bare.
        """
        key = self.scene_key.strip()

        if self.kind == EventKind.SUBSCRIBED:
            return key.removeprefix(SUBSCRIBE_SCENE_PREFIX)

        return key


def signature_for(token: str, timestamp: str, nonce: str) -> str:
    parts = sorted([token, timestamp, nonce])
    return hashlib.sha1("".join(parts).encode("utf-8")).hexdigest()


def verify_signature(
    token: str | None,
    signature: str | None,
    timestamp: str | None,
    nonce: str | None,
) -> bool:
    """
    Check a platform callback signature: the SHA-1 of the sorted concatenation
    of our shared token, the timestamp and the nonce.
    """
    if not token or not signature or not timestamp or not nonce:
        return False

    expected = signature_for(token=token, timestamp=timestamp, nonce=nonce)

    return hmac.compare_digest(expected, signature)


def _text(root, tag: str) -> str:
    node = root.find(tag)

    if node is None or node.text is None:
        return ""

    return node.text.strip()


def parse_event(body: bytes | str) -> InboundEvent:
    """
    Parse an event-delivery body into an `InboundEvent`.

    Raises
    ------
    InvalidEvent
        If the body is not well formed XML, or is an unsafe document.
    """
    try:
        root = ET.fromstring(body)
    except (ParseError, DefusedXmlException) as e:
        raise InvalidEvent(f"Unable to parse event payload: {e}")

    create_time = _text(root, "CreateTime")

    return InboundEvent(
        to_user=_text(root, "ToUserName"),
        subject_id=_text(root, "FromUserName"),
        create_time=int(create_time) if create_time.isdigit() else 0,
        msg_type=_text(root, "MsgType"),
        event=_text(root, "Event"),
        scene_key=_text(root, "EventKey"),
        ticket=_text(root, "Ticket"),
    )
