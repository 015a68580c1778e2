"""A minimal DHCP server that hands out a small pool of addresses on one subnet."""

from __future__ import annotations

import ipaddress
import logging
import socket
import time
from dataclasses import dataclass
from typing import Callable

log = logging.getLogger(__name__)

DHCPDISCOVER = 1
DHCPOFFER = 2
DHCPREQUEST = 3
DHCPDECLINE = 4
DHCPACK = 5
DHCPNACK = 6
DHCPRELEASE = 7
DHCPINFORM = 8

OPT_PAD = 0
OPT_SUBNET_MASK = 1
OPT_ROUTER = 3
OPT_DNS = 6
OPT_HOST_NAME = 12
OPT_REQUESTED_IP = 50
OPT_IP_LEASE_TIME = 51
OPT_MSG_TYPE = 53
OPT_SERVER_ID = 54
OPT_PARAM_REQUEST_LIST = 55
OPT_MAX_MSG_SIZE = 57
OPT_VENDOR_CLASS_ID = 60
OPT_CLIENT_ID = 61
OPT_END = 255

SERVER_PORT = 67
CLIENT_PORT = 68

DEFAULT_LEASE_TIME_S = 24 * 60 * 60

MAC_LEN = 6
BASE_IP = 16
MAX_IP = 8

MESSAGE_SIZE = 548
MIN_SIZE = 240 + 3
OPTIONS_OFFSET = 236
OPTIONS_SCAN_LIMIT = 308

_YIADDR = 16
_CHADDR = 28
_MASK32 = 0xFFFFFFFF
_NO_MAC = bytes(MAC_LEN)


def _ticks_ms() -> int:
    return int(time.monotonic() * 1000) & _MASK32


def _signed32(value: int) -> int:
    value &= _MASK32
    return value - (1 << 32) if value & 0x80000000 else value


@dataclass
class Lease:
    """One slot of the address pool: the owning MAC and a coarse expiry tick."""

    mac: bytes = _NO_MAC
    expiry: int = 0

    @property
    def free(self) -> bool:
        return self.mac == _NO_MAC


def find_option(options: bytes | bytearray, code: int) -> bytes | None:
    """Return the data of the first option with this code, or None if absent."""
    limit = min(len(options), OPTIONS_SCAN_LIMIT)
    i = 0
    while i < limit and options[i] != OPT_END:
        if i + 1 >= len(options):
            return None
        length = options[i + 1]
        if options[i] == code:
            return bytes(options[i + 2:i + 2 + length])
        i += 2 + length
    return None


def _option(code: int, data: bytes) -> bytes:
    return bytes((code, len(data))) + data


class DhcpServer:
    """Answers DISCOVER with OFFER and REQUEST with ACK for a pool of MAX_IP addresses."""

    def __init__(self, ip, netmask, clock: Callable[[], int] | None = None) -> None:
        self.ip = ipaddress.IPv4Address(ip)
        self.netmask = ipaddress.IPv4Address(netmask)
        self.clock = clock or _ticks_ms
        self.leases = [Lease() for _ in range(MAX_IP)]
        self._sock: socket.socket | None = None

    def _now(self) -> int:
        return self.clock() & _MASK32

    def _offer(self, mac: bytes) -> int | None:
        now = self._now()
        chosen = None
        for index, lease in enumerate(self.leases):
            if lease.mac == mac:
                chosen = index
                break
            if chosen is None:
                if lease.free:
                    chosen = index
                expiry = ((lease.expiry << 16) | 0xFFFF) & _MASK32
                if _signed32(expiry - now) < 0:
                    lease.mac = _NO_MAC
                    chosen = index
        return chosen

    def _acknowledge(self, mac: bytes, options: bytes) -> int | None:
        requested = find_option(options, OPT_REQUESTED_IP)
        if requested is None or len(requested) < 4:
            return None
        if requested[:3] != self.ip.packed[:3]:
            return None
        index = (requested[3] - BASE_IP) & 0xFF
        if index >= MAX_IP:
            return None
        lease = self.leases[index]
        if lease.mac == mac:
            pass
        elif lease.free:
            lease.mac = mac
        else:
            return None
        lease.expiry = (((self._now() + DEFAULT_LEASE_TIME_S * 1000) & _MASK32) >> 16) & 0xFFFF
        return index

    def handle(self, packet: bytes) -> bytes | None:
        """Build the reply to one client message, or None if it is to be ignored."""
        if len(packet) < MIN_SIZE:
            return None
        msg = bytearray(packet[:MESSAGE_SIZE])
        msg[0] = DHCPOFFER
        msg[_YIADDR:_YIADDR + 4] = self.ip.packed
        options = bytes(msg[OPTIONS_OFFSET + 4:])
        msg_type = find_option(options, OPT_MSG_TYPE)
        if not msg_type:
            return None
        mac = bytes(msg[_CHADDR:_CHADDR + MAC_LEN])

        if msg_type[0] == DHCPDISCOVER:
            index = self._offer(mac)
            reply_type = DHCPOFFER
        elif msg_type[0] == DHCPREQUEST:
            index = self._acknowledge(mac, options)
            reply_type = DHCPACK
        else:
            return None
        if index is None:
            return None

        msg[_YIADDR + 3] = BASE_IP + index
        if reply_type == DHCPACK:
            log.info("DHCPS: client connected: MAC=%s IP=%s",
                     mac.hex(":"), ipaddress.IPv4Address(bytes(msg[_YIADDR:_YIADDR + 4])))

        reply = bytearray(msg[:OPTIONS_OFFSET + 4])
        reply += _option(OPT_MSG_TYPE, bytes((reply_type,)))
        reply += _option(OPT_SERVER_ID, self.ip.packed)
        reply += _option(OPT_SUBNET_MASK, self.netmask.packed)
        reply += _option(OPT_ROUTER, self.ip.packed)
        reply += _option(OPT_DNS, self.ip.packed)
        reply += _option(OPT_IP_LEASE_TIME, DEFAULT_LEASE_TIME_S.to_bytes(4, "big"))
        reply.append(OPT_END)
        return bytes(reply)

    def bind(self, host: str = "0.0.0.0", port: int = SERVER_PORT) -> tuple[str, int]:
        """Open the UDP socket and return the address it is bound to."""
        self.close()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind((host, port))
        except OSError:
            sock.close()
            raise
        self._sock = sock
        return sock.getsockname()

    def serve_once(self) -> bytes | None:
        """Receive one message and broadcast the reply, if any."""
        if self._sock is None:
            raise RuntimeError("server is not bound")
        data, _ = self._sock.recvfrom(65535)
        reply = self.handle(data)
        if reply is not None:
            self._sock.sendto(reply, ("255.255.255.255", CLIENT_PORT))
        return reply

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def __enter__(self) -> "DhcpServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()