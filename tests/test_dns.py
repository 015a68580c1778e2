import socket
import struct

import pytest

from alarmpoint.dns import DnsServer

GATEWAY = "192.168.4.1"
QNAME = b"\x07example\x03com\x00"


def make_query(flags=0x0100, qdcount=1, qname=QNAME, query_id=0x1234):
    header = struct.pack(">HHHHHH", query_id, flags, qdcount, 0, 0, 0)
    return header + qname + b"\x00\x01\x00\x01"


@pytest.fixture
def server():
    return DnsServer(GATEWAY)


def test_reply_layout(server):
    query = make_query()
    reply = server.handle(query)
    assert reply[:2] == b"\x12\x34"
    assert reply[2:4] == b"\x84\x80"
    assert struct.unpack(">HHHH", reply[4:12]) == (1, 1, 0, 0)
    assert reply[12:len(query)] == query[12:]
    assert reply[len(query):] == bytes([0xC0, 0x0C, 0, 1, 0, 1, 0, 0, 0, 60, 0, 4]) + socket.inet_aton(GATEWAY)
    assert len(reply) == len(query) + 16


def test_trailing_records_are_dropped(server):
    query = make_query()
    reply = server.handle(query + b"\xAA" * 20)
    assert reply == server.handle(query)


@pytest.mark.parametrize("flags", [0x8000, 0x0800, 0x2000])
def test_responses_and_non_standard_queries_ignored(server, flags):
    assert server.handle(make_query(flags=flags)) is None


def test_zero_questions_ignored(server):
    assert server.handle(make_query(qdcount=0)) is None


def test_short_header_ignored(server):
    assert server.handle(make_query()[:11]) is None


def test_oversized_label_ignored(server):
    assert server.handle(make_query(qname=bytes([64]) + b"a" * 64 + b"\x00")) is None


def test_overlong_name_ignored(server):
    name = b"".join(bytes([60]) + b"a" * 60 for _ in range(5)) + b"\x00"
    assert server.handle(make_query(qname=name)) is None


def test_answer_uses_configured_address():
    reply = DnsServer("10.1.2.3").handle(make_query())
    assert reply[-4:] == socket.inet_aton("10.1.2.3")


def test_serve_once_replies_to_sender(server):
    address = server.bind("127.0.0.1", 0)
    client = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    client.settimeout(2)
    try:
        query = make_query(query_id=0xBEEF)
        client.sendto(query, address)
        sent = server.serve_once()
        received, _ = client.recvfrom(512)
    finally:
        client.close()
        server.close()
    assert received == sent
    assert received[:2] == b"\xBE\xEF"


def test_serve_once_requires_bind(server):
    with pytest.raises(RuntimeError):
        server.serve_once()