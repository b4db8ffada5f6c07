"""ZMQ multipart framing for published messages.

    topic_with_trailing_nul, payload

ZeroMQ subscriptions are prefix matches on the first frame. Terminating
the topic with a NUL, which can never appear in a topic name, turns the
prefix match into an exact match: "a/b" does not pick up "a/bc".
"""

from __future__ import annotations

from typing import Sequence, Tuple

_TERMINATOR = b"\0"


def topic_frame(topic: str) -> bytes:
    """Encode a topic as its first-frame (and subscription) form."""

    return topic.encode() + _TERMINATOR


def to_frames(topic: str, payload: bytes) -> Tuple[bytes, bytes]:
    return (topic_frame(topic), bytes(payload))


def from_frames(parts: Sequence[bytes]) -> Tuple[str, bytes]:
    if len(parts) != 2:
        raise ValueError(f"invalid PUB message: expected 2 frames, got {len(parts)}")

    topic = parts[0]
    if not topic.endswith(_TERMINATOR):
        raise ValueError("invalid PUB message: unterminated topic frame")

    return topic[:-1].decode(), parts[1]
