"""OSC packet helpers on top of python-osc.

Only the small subset TotalMix needs is covered: one-argument messages going
out, bundles and lone messages coming in.
"""

from __future__ import annotations

import struct
from collections.abc import Iterator

from pythonosc import osc_bundle, osc_message
from pythonosc.osc_bundle import OscBundle
from pythonosc.osc_bundle_builder import IMMEDIATELY, OscBundleBuilder
from pythonosc.osc_message import OscMessage
from pythonosc.osc_message_builder import BuildError, OscMessageBuilder
from pythonosc.parsing import osc_types

from pytotalmix.exceptions import ArgumentTypeMismatchError, MalformedPacketError

OscPacket = OscBundle | OscMessage

_PARSE_ERRORS: tuple[type[Exception], ...] = (
    osc_types.ParseError,
    osc_message.ParseError,
    osc_bundle.ParseError,
    struct.error,
    IndexError,
    ValueError,
)


def to_wire_precision(value: float) -> float:
    """Round ``value`` to the 32-bit float an ``f`` argument carries.

    Device echoes arrive at this precision, so values compared against them
    must be rounded the same way.
    """
    return struct.unpack(">f", struct.pack(">f", value))[0]


def build_message(address: str, value: float | str) -> OscMessage:
    """Build a message carrying a single float (``f``) or string (``s``) argument."""
    builder = OscMessageBuilder(address=address)
    if isinstance(value, str):
        builder.add_arg(value, OscMessageBuilder.ARG_TYPE_STRING)
    else:
        builder.add_arg(float(value), OscMessageBuilder.ARG_TYPE_FLOAT)
    try:
        return builder.build()
    except BuildError as exc:
        raise ValueError(f"Cannot build OSC message for {address!r}: {exc}") from exc


def build_bundle(*contents: OscPacket, timestamp: float = IMMEDIATELY) -> OscBundle:
    """Build a bundle from messages (or nested bundles) in order."""
    builder = OscBundleBuilder(timestamp)
    for content in contents:
        builder.add_content(content)
    return builder.build()


def decode_packet(data: bytes) -> OscPacket:
    """Decode a datagram into a bundle or a lone message.

    Raises
    ------
    MalformedPacketError
        If the datagram is neither, or is truncated/corrupt.
    """
    try:
        if OscBundle.dgram_is_bundle(data):
            return OscBundle(data)
        if OscMessage.dgram_is_message(data):
            return OscMessage(data)
    except _PARSE_ERRORS as exc:
        raise MalformedPacketError(f"Could not decode OSC datagram: {exc}", data=data) from exc
    raise MalformedPacketError(f"Datagram is not an OSC packet ({len(data)} bytes)", data=data)


def iter_messages(bundle: OscBundle) -> Iterator[OscMessage]:
    """Yield every message in ``bundle`` in order, descending into nested bundles."""
    for content in bundle:
        if isinstance(content, OscBundle):
            yield from iter_messages(content)
        else:
            yield content


def extract_float(message: OscMessage) -> float:
    """Return the single float argument of ``message``."""
    value = message.params[0]
    # bool is an int subclass and never a float, so 'T'/'F' arguments are rejected here too.
    if not isinstance(value, float):
        raise ArgumentTypeMismatchError(
            f"Expected float argument for {message.address}, got {type(value).__name__}",
            address=message.address,
        )
    return value


def extract_string(message: OscMessage) -> str:
    """Return the single string argument of ``message``."""
    value = message.params[0]
    if not isinstance(value, str):
        raise ArgumentTypeMismatchError(
            f"Expected string argument for {message.address}, got {type(value).__name__}",
            address=message.address,
        )
    return value
