import ipaddress

import pytest

from alarmpoint.dhcp import (
    DHCPACK,
    DHCPDISCOVER,
    DHCPOFFER,
    DHCPRELEASE,
    DHCPREQUEST,
    MAX_IP,
    OPT_DNS,
    OPT_END,
    OPT_IP_LEASE_TIME,
    OPT_MSG_TYPE,
    OPT_ROUTER,
    OPT_SERVER_ID,
    OPT_SUBNET_MASK,
    DhcpServer,
    find_option,
)

GATEWAY = "192.168.4.1"
MASK = "255.255.255.0"
MAC_A = bytes.fromhex("020000000001")
MAC_B = bytes.fromhex("020000000002")
XID = b"\x12\x34\x56\x78"


def make_packet(mac, msg_type, requested=None, include_type=True):
    header = bytearray(236)
    header[0] = 1
    header[1] = 1
    header[2] = 6
    header[4:8] = XID
    header[28:34] = mac
    options = bytes([99, 130, 83, 99])
    if include_type:
        options += bytes([OPT_MSG_TYPE, 1, msg_type])
    else:
        options += bytes([12, 1, 0x41])
    if requested is not None:
        options += bytes([50, 4]) + ipaddress.IPv4Address(requested).packed
    options += bytes([OPT_END])
    return bytes(header) + options


def yiaddr(reply):
    return str(ipaddress.IPv4Address(reply[16:20]))


@pytest.fixture
def server():
    return DhcpServer(GATEWAY, MASK, clock=lambda: 0)


def test_discover_gets_offer_with_all_options(server):
    reply = server.handle(make_packet(MAC_A, DHCPDISCOVER))
    options = reply[240:]
    gw = ipaddress.IPv4Address(GATEWAY).packed
    assert reply[0] == DHCPOFFER
    assert reply[4:8] == XID
    assert reply[28:34] == MAC_A
    assert yiaddr(reply) == "192.168.4.16"
    assert find_option(options, OPT_MSG_TYPE) == bytes([DHCPOFFER])
    assert find_option(options, OPT_SERVER_ID) == gw
    assert find_option(options, OPT_SUBNET_MASK) == ipaddress.IPv4Address(MASK).packed
    assert find_option(options, OPT_ROUTER) == gw
    assert find_option(options, OPT_DNS) == gw
    assert find_option(options, OPT_IP_LEASE_TIME) == (24 * 60 * 60).to_bytes(4, "big")
    assert reply[-1] == OPT_END
    assert reply[236:240] == bytes([99, 130, 83, 99])


def test_request_is_acknowledged_and_recorded(server):
    offer = server.handle(make_packet(MAC_A, DHCPDISCOVER))
    address = yiaddr(offer)
    ack = server.handle(make_packet(MAC_A, DHCPREQUEST, requested=address))
    assert find_option(ack[240:], OPT_MSG_TYPE) == bytes([DHCPACK])
    assert yiaddr(ack) == address
    assert server.leases[0].mac == MAC_A
    assert not server.leases[0].free


def test_known_mac_keeps_address_and_next_client_gets_next(server):
    first = server.handle(make_packet(MAC_A, DHCPDISCOVER))
    server.handle(make_packet(MAC_A, DHCPREQUEST, requested=yiaddr(first)))
    again = server.handle(make_packet(MAC_A, DHCPDISCOVER))
    other = server.handle(make_packet(MAC_B, DHCPDISCOVER))
    assert yiaddr(again) == yiaddr(first)
    assert other[19] == first[19] + 1


def test_request_for_taken_address_is_ignored(server):
    offer = server.handle(make_packet(MAC_A, DHCPDISCOVER))
    server.handle(make_packet(MAC_A, DHCPREQUEST, requested=yiaddr(offer)))
    assert server.handle(make_packet(MAC_B, DHCPREQUEST, requested=yiaddr(offer))) is None
    assert server.leases[0].mac == MAC_A


@pytest.mark.parametrize("requested", ["10.0.0.16", "192.168.4.24", "192.168.4.15"])
def test_request_outside_pool_is_ignored(server, requested):
    assert server.handle(make_packet(MAC_A, DHCPREQUEST, requested=requested)) is None
    assert all(lease.free for lease in server.leases)


def test_request_without_requested_ip_is_ignored(server):
    assert server.handle(make_packet(MAC_A, DHCPREQUEST)) is None


def test_short_packet_is_ignored(server):
    assert server.handle(make_packet(MAC_A, DHCPDISCOVER)[:242]) is None


def test_missing_message_type_is_ignored(server):
    assert server.handle(make_packet(MAC_A, DHCPDISCOVER, include_type=False)) is None


def test_other_message_types_are_ignored(server):
    assert server.handle(make_packet(MAC_A, DHCPRELEASE)) is None


def test_full_pool_ignores_new_client(server):
    for n in range(MAX_IP):
        mac = bytes([2, 0, 0, 0, 1, n])
        offer = server.handle(make_packet(mac, DHCPDISCOVER))
        assert server.handle(make_packet(mac, DHCPREQUEST, requested=yiaddr(offer))) is not None
    assert server.handle(make_packet(MAC_B, DHCPDISCOVER)) is None
    assert len({lease.mac for lease in server.leases}) == MAX_IP


def test_expired_lease_is_reused():
    now = [0]
    server = DhcpServer(GATEWAY, MASK, clock=lambda: now[0])
    offer = server.handle(make_packet(MAC_A, DHCPDISCOVER))
    server.handle(make_packet(MAC_A, DHCPREQUEST, requested=yiaddr(offer)))

    now[0] = 1000
    fresh = server.handle(make_packet(MAC_B, DHCPDISCOVER))
    assert fresh[19] == offer[19] + 1

    now[0] = 2 ** 31
    reused = server.handle(make_packet(MAC_B, DHCPDISCOVER))
    assert yiaddr(reused) == yiaddr(offer)
    assert server.leases[0].free


def test_find_option():
    options = bytes([12, 2, 0x61, 0x62, OPT_MSG_TYPE, 1, DHCPREQUEST, OPT_END, OPT_MSG_TYPE, 1, 9])
    assert find_option(options, OPT_MSG_TYPE) == bytes([DHCPREQUEST])
    assert find_option(options, 12) == b"ab"
    assert find_option(options, OPT_SERVER_ID) is None
    assert find_option(b"", OPT_MSG_TYPE) is None


def test_invalid_address_raises():
    with pytest.raises(ValueError):
        DhcpServer("not-an-ip", MASK)


def test_bind_and_close():
    server = DhcpServer(GATEWAY, MASK)
    address = server.bind("127.0.0.1", 0)
    assert address[0] == "127.0.0.1"
    server.close()
    with pytest.raises(RuntimeError):
        server.serve_once()