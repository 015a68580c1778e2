"""Alarm controller and its HTTP control page, served on the access point's gateway address."""

from __future__ import annotations

import argparse
import logging
import re
import selectors
import socket
import sys
import threading
import time
from typing import Callable

from .dhcp import DhcpServer
from .dns import DnsServer
from .ssd1306 import WIDTH, draw_string

log = logging.getLogger(__name__)

RED_LED_GPIO = 13
PWM_GPIO = 21
I2C_SDA = 14
I2C_SCL = 15

PWM_FREQ_HZ = 1000
CLOCK_DIV = 2.0
PWM_WRAP = int(125_000_000 / (PWM_FREQ_HZ * CLOCK_DIV)) & 0xFFFF
BUZZER_DUTY = PWM_WRAP // 2
BEEP_DURATION_S = 0.200
BEEP_INTERVAL_S = 0.100

WIFI_SSID = "alarmeresidencial"
TCP_PORT = 80
GATEWAY = "192.168.4.1"
NETMASK = "255.255.255.0"

POLL_INTERVAL_S = 0.010
IDLE_TIMEOUT_S = 5.0
REQUEST_LIMIT = 127
RESULT_LIMIT = 255
HEADER_LIMIT = 127

ALARM_CONTROL = "/alarm"
CHAR_WIDTH = 6
LINE1_Y = 20
LINE2_Y = 30

HTTP_RESPONSE_HEADERS = (
    "HTTP/1.1 {status} OK\nContent-Length: {length}\n"
    "Content-Type: text/html; charset=utf-8\nConnection: close\n\n"
)
HTTP_RESPONSE_REDIRECT = "HTTP/1.1 302 Redirect\nLocation: http://{host}" + ALARM_CONTROL + "\n\n"
ALARM_CONTROL_BODY = (
    '<html><body style="text-align:center;margin-top:50px">'
    "<h1>Alarme</h1>"
    "<p>{status}</p>"
    '<a href="?alarm={toggle}" style="background:#4CAF50;color:white;'
    'padding:5px 10px;text-decoration:none">{label}</a>'
    "</body></html>"
)

_ALARM_PARAM = re.compile(r"alarm=\s*([+-]?\d+)")


def render_message(buffer: bytearray, line1: str | None, line2: str | None) -> None:
    """Blank the frame buffer and draw up to two centred lines of text into it."""
    buffer[:] = bytes(len(buffer))
    for text, y in ((line1, LINE1_Y), (line2, LINE2_Y)):
        if text:
            x = (WIDTH - len(text) * CHAR_WIDTH) // 2
            draw_string(buffer, x, y, text)


class AlarmController:
    """Blinks the LED and beeps the buzzer while the alarm is active."""

    def __init__(
        self,
        led: Callable[[bool], None],
        buzzer: Callable[[int], None],
        display: Callable[[str, str], None] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.led = led
        self.buzzer = buzzer
        self.display = display or (lambda line1, line2: None)
        self.clock = clock or time.monotonic
        self.active = False
        self.led_on = False
        self.beep_active = False
        now = self.clock()
        self.next_toggle = now
        self.beep_end = now

    def set_active(self, active: bool) -> None:
        self.active = bool(active)
        log.info("Alarme %s", "ativado" if self.active else "desativado")

    def update(self) -> None:
        """Advance the blink/beep cycle and refresh the display."""
        if not self.active:
            self.led(False)
            self.buzzer(0)
            self.beep_active = False
            self.display("Sistema", "em repouso")
            return

        now = self.clock()
        if now >= self.next_toggle:
            self.led_on = not self.led_on
            self.led(self.led_on)
            if self.led_on:
                self.buzzer(BUZZER_DUTY)
                self.beep_active = True
                self.beep_end = now + BEEP_DURATION_S
            else:
                self.buzzer(0)
                self.beep_active = False
            self.next_toggle = now + BEEP_INTERVAL_S

        if self.beep_active and now >= self.beep_end:
            self.buzzer(0)
            self.beep_active = False

        self.display("ALARME", "EVACUAR")


def alarm_control_content(path: str, params: str | None, controller: AlarmController) -> str:
    """Apply an ``alarm=N`` parameter and return the control page, or '' for other paths."""
    if not path.startswith(ALARM_CONTROL):
        return ""
    if params:
        match = _ALARM_PARAM.match(params)
        if match:
            controller.set_active(int(match.group(1)) != 0)
    if controller.active:
        return ALARM_CONTROL_BODY.format(status="ATIVADO", toggle=0, label="Desligar")
    return ALARM_CONTROL_BODY.format(status="DESATIVADO", toggle=1, label="Ligar")


def _split_request(request: str) -> tuple[str, str | None]:
    question = request.find("?")
    if question < 0:
        return request, None
    space = request.find(" ")
    path_end = question if space < 0 else min(question, space)
    params = request[question + 1:]
    if space > question:
        params = request[question + 1:space]
    return request[:path_end], params


def handle_request(data: bytes, controller: AlarmController, gateway: str = GATEWAY) -> bytes | None:
    """Answer one chunk of request data.

    Returns the full response, b'' when the data is not a GET (nothing to send),
    or None when the connection is to be dropped without a reply.
    """
    text = bytes(data[:REQUEST_LIMIT]).split(b"\0", 1)[0].decode("latin-1")
    if not text.startswith("GET"):
        return b""
    path, params = _split_request(text[len("GET") + 1:])
    result = alarm_control_content(path, params, controller).encode("utf-8")
    log.debug("Request: %s?%s", path, params)
    if len(result) > RESULT_LIMIT:
        log.warning("Too much result data %d", len(result))
        return None
    if result:
        headers = HTTP_RESPONSE_HEADERS.format(status=200, length=len(result)).encode("ascii")
        if len(headers) > HEADER_LIMIT:
            log.warning("Too much header data %d", len(headers))
            return None
        return headers + result
    redirect = HTTP_RESPONSE_REDIRECT.format(host=gateway).encode("ascii")[:HEADER_LIMIT]
    log.debug("Sending redirect %s", redirect)
    return redirect


class AlarmServer:
    """Single-threaded HTTP server that also drives the alarm between requests."""

    def __init__(self, controller: AlarmController, gateway: str = GATEWAY, port: int = TCP_PORT) -> None:
        self.controller = controller
        self.gateway = gateway
        self._stop = threading.Event()
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind(("", port))
            listener.listen(1)
        except OSError:
            listener.close()
            raise
        listener.setblocking(False)
        self._listener = listener
        self.server_address = listener.getsockname()
        self._clients: dict[socket.socket, float] = {}
        log.info("starting server on port %d", self.server_address[1])

    def _drop(self, selector: selectors.BaseSelector, conn: socket.socket) -> None:
        self._clients.pop(conn, None)
        try:
            selector.unregister(conn)
        except (KeyError, ValueError):
            pass
        conn.close()

    def _accept(self, selector: selectors.BaseSelector) -> None:
        try:
            conn, _ = self._listener.accept()
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            log.warning("failure in accept: %s", exc)
            return
        conn.settimeout(IDLE_TIMEOUT_S)
        selector.register(conn, selectors.EVENT_READ)
        self._clients[conn] = time.monotonic()
        log.debug("client connected")

    def _service(self, selector: selectors.BaseSelector, conn: socket.socket) -> None:
        try:
            data = conn.recv(4096)
        except OSError as exc:
            log.debug("client error %s", exc)
            self._drop(selector, conn)
            return
        if not data:
            log.debug("connection closed")
            self._drop(selector, conn)
            return
        reply = handle_request(data, self.controller, self.gateway)
        if reply is None:
            self._drop(selector, conn)
        elif reply:
            try:
                conn.sendall(reply)
            except OSError as exc:
                log.warning("failed to write response data: %s", exc)
            self._drop(selector, conn)
        else:
            self._clients[conn] = time.monotonic()

    def serve_forever(self) -> None:
        """Serve requests and update the alarm until shutdown() is called."""
        selector = selectors.DefaultSelector()
        selector.register(self._listener, selectors.EVENT_READ)
        try:
            while not self._stop.is_set():
                self.controller.update()
                for key, _ in selector.select(POLL_INTERVAL_S):
                    if key.fileobj is self._listener:
                        self._accept(selector)
                    else:
                        self._service(selector, key.fileobj)
                deadline = time.monotonic() - IDLE_TIMEOUT_S
                for conn, last in list(self._clients.items()):
                    if last < deadline:
                        self._drop(selector, conn)
        finally:
            for conn in list(self._clients):
                self._drop(selector, conn)
            selector.close()
            self._listener.close()

    def shutdown(self) -> None:
        """Ask serve_forever() to stop after its current iteration."""
        self._stop.set()

    def __enter__(self) -> "AlarmServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
        self._listener.close()


class _ConsoleOutputs:
    """Stand-ins for the LED, buzzer and OLED that log state changes."""

    def __init__(self) -> None:
        self._led: bool | None = None
        self._buzzer: int | None = None
        self._message: tuple[str, str] | None = None

    def led(self, on: bool) -> None:
        if on != self._led:
            self._led = on
            log.debug("LED %s", "on" if on else "off")

    def buzzer(self, level: int) -> None:
        if level != self._buzzer:
            self._buzzer = level
            log.debug("buzzer level %d", level)

    def display(self, line1: str, line2: str) -> None:
        if (line1, line2) != self._message:
            self._message = (line1, line2)
            log.info("display: %s / %s", line1, line2)


def _run_udp(server) -> None:
    while True:
        try:
            server.serve_once()
        except (OSError, RuntimeError):
            return


def _watch_stdin(server: AlarmServer) -> None:
    for line in sys.stdin:
        if line.strip().lower() == "d":
            server.shutdown()
            return


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="alarmpoint", description="Alarm control over HTTP.")
    parser.add_argument("--port", type=int, default=TCP_PORT)
    parser.add_argument("--gateway", default=GATEWAY)
    parser.add_argument("--netmask", default=NETMASK)
    parser.add_argument("--dhcp", action="store_true", help="also run the DHCP server")
    parser.add_argument("--dns", action="store_true", help="also run the captive DNS server")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    outputs = _ConsoleOutputs()
    controller = AlarmController(outputs.led, outputs.buzzer, outputs.display)
    outputs.display("Iniciando", "sistema...")

    udp_servers = []
    if args.dhcp:
        udp_servers.append(DhcpServer(args.gateway, args.netmask))
    if args.dns:
        udp_servers.append(DnsServer(args.gateway))
    for udp in udp_servers:
        try:
            udp.bind()
        except OSError as exc:
            log.error("failed to start %s: %s", type(udp).__name__, exc)
            continue
        threading.Thread(target=_run_udp, args=(udp,), daemon=True).start()

    try:
        server = AlarmServer(controller, args.gateway, args.port)
    except OSError as exc:
        log.error("failed to open server: %s", exc)
        for udp in udp_servers:
            udp.close()
        return 1

    log.info("Access Point criado: '%s'", WIFI_SSID)
    log.info("Conecte-se e acesse: http://%s", args.gateway)
    threading.Thread(target=_watch_stdin, args=(server,), daemon=True).start()
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        for udp in udp_servers:
            udp.close()
        controller.set_active(False)
        controller.update()
    log.info("Sistema de alarme desligado")
    return 0