"""
Wire codec for the KuCoin Futures public websocket.

Inbound text frames are decoded into one of Welcome, Ack or MarketDelta.
Anything else raises DecodeError, which the session driver logs and skips.

Price and quantity may arrive as JSON strings or numeric literals; both are
normalized here so the order book only ever sees Decimal prices and int
quantities.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Union

import orjson

from ..errors import DecodeError
from ..types import Ack, MarketDelta, PriceLevel, Welcome

Decoded = Union[Welcome, Ack, MarketDelta]

ACK_TYPES = frozenset({"ack", "pong"})


def json_loads(data: bytes | str) -> Any:
    return orjson.loads(data)


def json_dumps(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def parse_price(value: Any) -> Decimal:
    """String or numeric literal -> positive finite Decimal in canonical form.

    "100", "100.0" and 100.0 all come back as Decimal("100"), so a level keeps
    one spelling whichever form the server used.
    """
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError(f"invalid price: {value!r}")
    try:
        price = Decimal(str(value).strip())
        if not price.is_finite() or price <= 0:
            raise ValueError(f"price must be finite and > 0: {value!r}")
        price = price.normalize()
        if price.as_tuple().exponent > 0:
            # normalize() turns 100 into 1E+2
            price = price.quantize(Decimal(1))
    except InvalidOperation as exc:
        raise ValueError(f"invalid price: {value!r}") from exc
    return price


def parse_quantity(value: Any) -> int:
    """Integer literal or digit string -> non-negative int."""
    if isinstance(value, bool):
        raise ValueError(f"invalid quantity: {value!r}")
    if isinstance(value, int):
        qty = value
    elif isinstance(value, str) and value.strip().isdigit():
        qty = int(value.strip())
    else:
        raise ValueError(f"invalid quantity: {value!r}")
    if qty < 0:
        raise ValueError(f"quantity must be >= 0: {value!r}")
    return qty


def _parse_levels(raw_levels: Any, name: str) -> tuple[PriceLevel, ...]:
    if not isinstance(raw_levels, list):
        raise ValueError(f"'{name}' must be a list")
    levels = []
    for pair in raw_levels:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise ValueError(f"invalid {name} level: {pair!r}")
        levels.append(PriceLevel(parse_price(pair[0]), parse_quantity(pair[1])))
    return tuple(levels)


def _decode_market(msg: dict) -> MarketDelta:
    topic = msg.get("topic")
    subject = msg.get("subject")
    data = msg.get("data")
    if not isinstance(topic, str) or not isinstance(subject, str):
        raise ValueError("missing topic or subject")
    if not isinstance(data, dict):
        raise ValueError("missing data object")

    ts = data.get("ts")
    if isinstance(ts, bool) or not isinstance(ts, int) or ts < 0:
        raise ValueError(f"invalid ts: {ts!r}")

    return MarketDelta(
        topic=topic,
        subject=subject,
        bids=_parse_levels(data.get("bids"), "bids"),
        asks=_parse_levels(data.get("asks"), "asks"),
        timestamp_ms=ts,
    )


def decode(raw: str | bytes) -> Decoded:
    """
    Decode one text frame.

    Raises DecodeError carrying the raw payload on any shape mismatch.
    """
    try:
        msg = json_loads(raw)
    except orjson.JSONDecodeError as exc:
        raise DecodeError(f"not JSON: {exc}", raw) from exc

    if not isinstance(msg, dict):
        raise DecodeError("expected a JSON object", raw)

    msg_type = msg.get("type")
    try:
        if msg_type == "message":
            return _decode_market(msg)

        if msg_type == "welcome":
            conn_id = msg.get("id")
            if not isinstance(conn_id, str) or not conn_id:
                raise ValueError("welcome without connection id")
            return Welcome(connection_id=conn_id, type=msg_type)

        if msg_type in ACK_TYPES:
            return Ack(id=str(msg.get("id", "")), type=msg_type)

        if msg_type == "error":
            raise ValueError(f"server error {msg.get('code')}: {msg.get('data')}")

    except ValueError as exc:
        raise DecodeError(str(exc), raw) from exc

    raise DecodeError(f"unknown message type: {msg_type!r}", raw)


def encode_subscribe(connection_id: str, topic: str) -> str:
    return json_dumps({
        "id": connection_id,
        "type": "subscribe",
        "topic": topic,
        "response": True,
    })


def encode_ping(connection_id: str) -> str:
    return json_dumps({"id": connection_id, "type": "ping"})
