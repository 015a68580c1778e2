"""A captive DNS server that answers every A query with its own address."""

from __future__ import annotations

import ipaddress
import logging
import socket
import struct

log = logging.getLogger(__name__)

SERVER_PORT = 53
MAX_MESSAGE_SIZE = 300
HEADER_SIZE = 12
MAX_LABEL_LENGTH = 63
MAX_NAME_LENGTH = 255
ANSWER_TTL = 60

_QR = 1 << 15
_AA = 1 << 10
_RA = 1 << 7
_ANSWER_SIZE = 16


class DnsServer:
    """Replies to any standard query with a single A record pointing at ip."""

    def __init__(self, ip) -> None:
        self.ip = ipaddress.IPv4Address(ip)
        self._sock: socket.socket | None = None

    def handle(self, packet: bytes) -> bytes | None:
        """Build the reply to one query, or None if it is to be ignored."""
        msg = bytes(packet[:MAX_MESSAGE_SIZE])
        if len(msg) < HEADER_SIZE:
            return None
        flags, question_count = struct.unpack_from(">HH", msg, 2)
        if (flags >> 15) & 0x1:
            return None
        if (flags >> 11) & 0xF:
            return None
        if question_count < 1:
            return None

        pos = HEADER_SIZE
        while pos < len(msg):
            label_length = msg[pos]
            pos += 1
            if label_length == 0:
                break
            if label_length > MAX_LABEL_LENGTH:
                return None
            pos += label_length
        if pos - HEADER_SIZE > MAX_NAME_LENGTH:
            return None
        pos += 4  # QTYPE and QCLASS
        if pos + _ANSWER_SIZE > MAX_MESSAGE_SIZE:
            return None

        question = msg[HEADER_SIZE:pos].ljust(pos - HEADER_SIZE, b"\x00")
        header = msg[:2] + struct.pack(">HHHHH", _QR | _AA | _RA, 1, 1, 0, 0)
        answer = struct.pack(">BBHHIH", 0xC0, HEADER_SIZE, 1, 1, ANSWER_TTL, 4) + self.ip.packed
        return header + question + answer

    def bind(self, host: str = "0.0.0.0", port: int = SERVER_PORT) -> tuple[str, int]:
        """Open the UDP socket and return the address it is bound to."""
        self.close()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((host, port))
        except OSError as exc:
            sock.close()
            log.error("dns failed to bind to port %d: %s", port, exc)
            raise
        self._sock = sock
        return sock.getsockname()

    def serve_once(self) -> bytes | None:
        """Receive one query and send the reply back to its sender, if any."""
        if self._sock is None:
            raise RuntimeError("server is not bound")
        data, source = self._sock.recvfrom(65535)
        reply = self.handle(data)
        if reply is not None:
            self._sock.sendto(reply, source)
        return reply

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def __enter__(self) -> "DnsServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()