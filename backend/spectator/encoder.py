"""
MessagePack wire format for spectator frames.

Snapshots are plain JSON-compatible dicts (the persisted game record), so
encoding is a direct ``packb``. Decoding is bounded so a viewer client can
safely read frames from an untrusted host.
"""

from typing import Any

import msgpack

from spectator.hub import UPDATE_MESSAGE_TYPE


class DecodeError(Exception):
    """Frame is not a MessagePack map within the size limits."""


# A snapshot carries every player's photo as a data URL, hence the large string limit.
MAX_FRAME_BYTES = 4 * 1024 * 1024
_UNPACK_LIMITS = {
    "max_str_len": 1024 * 1024,
    "max_bin_len": 64 * 1024,
    "max_array_len": 4096,  # rummy games can run to hundreds of rounds
    "max_map_len": 1024,
    "max_ext_len": 1024,
}


def encode(snapshot: dict[str, Any]) -> bytes:
    return msgpack.packb(snapshot)


def decode(frame: bytes) -> dict[str, Any]:
    """Decode one frame into a dict. Raises DecodeError for oversized, malformed or non-map frames."""
    if len(frame) > MAX_FRAME_BYTES:
        raise DecodeError(f"frame of {len(frame)} bytes exceeds {MAX_FRAME_BYTES}")
    try:
        payload = msgpack.unpackb(frame, raw=False, **_UNPACK_LIMITS)
    except (msgpack.UnpackException, ValueError) as exc:
        raise DecodeError(f"malformed frame: {exc}") from exc
    if not isinstance(payload, dict):
        raise DecodeError(f"frame holds {type(payload).__name__}, not a map")
    return payload


def decode_update(frame: bytes) -> dict[str, Any]:
    """Decode an UPDATE frame and return the game record it carries."""
    payload = decode(frame)
    if payload.get("type") != UPDATE_MESSAGE_TYPE or not isinstance(payload.get("game"), dict):
        raise DecodeError(f"not an update frame: type={payload.get('type')!r}")
    return payload["game"]
