from decimal import Decimal

import orjson
import pytest

from book_stream.datafeed.decoder import (
    decode,
    encode_ping,
    encode_subscribe,
    parse_price,
    parse_quantity,
)
from book_stream.errors import DecodeError
from book_stream.types import Ack, MarketDelta, PriceLevel, Welcome

TOPIC = "/contractMarket/level2Depth5:ETHUSDTM"


def market_payload(**data_overrides) -> dict:
    data = {"bids": [["2500.5", 10]], "asks": [["2501", "7"]], "ts": 1700000000123}
    data.update(data_overrides)
    return {"type": "message", "topic": TOPIC, "subject": "level2", "data": data}


def dumps(obj) -> str:
    return orjson.dumps(obj).decode()


def test_decode_welcome():
    msg = decode('{"id": "hQvf8jkno", "type": "welcome"}')
    assert msg == Welcome(connection_id="hQvf8jkno", type="welcome")


@pytest.mark.parametrize("kind", ["ack", "pong"])
def test_decode_ack_and_pong(kind):
    msg = decode(dumps({"id": "abc", "type": kind}))
    assert msg == Ack(id="abc", type=kind)


def test_decode_market_message():
    msg = decode(dumps(market_payload()))
    assert isinstance(msg, MarketDelta)
    assert msg.topic == TOPIC
    assert msg.subject == "level2"
    assert msg.bids == (PriceLevel(Decimal("2500.5"), 10),)
    assert msg.asks == (PriceLevel(Decimal("2501"), 7),)
    assert msg.timestamp_ms == 1700000000123


def test_string_and_numeric_pairs_normalize_identically():
    as_strings = decode(dumps(market_payload(bids=[["2500", "10"]], asks=[])))
    as_numbers = decode(dumps(market_payload(bids=[[2500, 10]], asks=[])))
    as_float = decode(dumps(market_payload(bids=[[2500.0, 10]], asks=[])))
    assert as_strings.bids == as_numbers.bids == as_float.bids


def test_decode_accepts_bytes():
    msg = decode(dumps(market_payload()).encode())
    assert isinstance(msg, MarketDelta)


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "",
        "[1, 2, 3]",
        '"welcome"',
        '{"type": "mystery"}',
        '{"id": "x"}',
        '{"type": "welcome"}',
        '{"type": "welcome", "id": ""}',
        '{"type": "error", "code": 401, "data": "token is invalid"}',
    ],
)
def test_decode_rejects_bad_payloads(raw):
    with pytest.raises(DecodeError) as excinfo:
        decode(raw)
    assert excinfo.value.raw == raw


@pytest.mark.parametrize(
    "overrides",
    [
        {"bids": "nope"},
        {"asks": None},
        {"bids": [["2500"]]},
        {"bids": [["2500", 1, 2]]},
        {"bids": [["2500", -1]]},
        {"bids": [["2500", 1.5]]},
        {"bids": [["2500", "1.5"]]},
        {"bids": [["2500", True]]},
        {"bids": [["0", 1]]},
        {"bids": [["-5", 1]]},
        {"bids": [["abc", 1]]},
        {"bids": [[None, 1]]},
        {"ts": "123"},
        {"ts": -1},
    ],
)
def test_decode_rejects_shape_mismatches(overrides):
    with pytest.raises(DecodeError):
        decode(dumps(market_payload(**overrides)))


def test_decode_rejects_missing_data_and_topic():
    payload = market_payload()
    del payload["data"]
    with pytest.raises(DecodeError):
        decode(dumps(payload))

    payload = market_payload()
    del payload["topic"]
    with pytest.raises(DecodeError):
        decode(dumps(payload))


def test_zero_quantity_is_valid():
    msg = decode(dumps(market_payload(bids=[["2500", "0"]])))
    assert msg.bids == (PriceLevel(Decimal("2500"), 0),)


def test_parse_price_and_quantity():
    assert parse_price(" 1.50 ") == Decimal("1.5")
    assert parse_quantity("42") == 42
    with pytest.raises(ValueError):
        parse_price("NaN")
    with pytest.raises(ValueError):
        parse_price(False)
    with pytest.raises(ValueError):
        parse_quantity(False)


@pytest.mark.parametrize(
    "raw, text",
    [("100", "100"), ("100.0", "100"), (100.0, "100"), (10000, "10000"), ("2500.50", "2500.5"), ("0.0100", "0.01")],
)
def test_parse_price_uses_one_spelling(raw, text):
    assert str(parse_price(raw)) == text


def test_encode_subscribe():
    msg = orjson.loads(encode_subscribe("conn-1", TOPIC))
    assert msg == {"id": "conn-1", "type": "subscribe", "topic": TOPIC, "response": True}


def test_encode_ping():
    assert orjson.loads(encode_ping("conn-1")) == {"id": "conn-1", "type": "ping"}
